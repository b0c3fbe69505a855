"""
Schema validation for params and responses.

Wraps the validation library (pydantic) behind a small capability:
- ValidationSchema.validate(value) -> ValidationResult(error, value)
- Field-level errors are reported as a ContractViolation with one
  violation per failing field

Violations raised during a request are converted into the standard
error envelope by the compiled route (see compiler.py).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import TypeAdapter, ValidationError


@dataclass
class ContractViolation(Exception):
    """Raised when contract is violated."""
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    code: str = "CONTRACT_VIOLATION"
    status_code: int = 400

    def __str__(self):
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "message": self.message,
            "details": self.details,
        }


class RequestValidationError(ContractViolation):
    """Request params/body failed validation. Reported as 400."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details or {}, "INVALID_PARAMS", 400)


class ResponseValidationError(ContractViolation):
    """Handler output does not match its declared response. Reported as 500."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details or {}, "RESPONSE_SCHEMA_MISMATCH", 500)


class ValidationResult(NamedTuple):
    error: Optional[ContractViolation]
    value: Any


def _format_location(loc) -> str:
    parts = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        else:
            parts.append(f".{item}" if parts else str(item))
    return "".join(parts)


def violations_from(exc: ValidationError) -> List[Dict[str, Any]]:
    """Flatten a pydantic ValidationError into violation dicts."""
    violations = []
    for err in exc.errors(include_url=False):
        violations.append({
            "field": _format_location(err.get("loc", ())),
            "error": err.get("type", "invalid"),
            "message": err.get("msg", ""),
        })
    return violations


def format_message(violations: List[Dict[str, Any]]) -> str:
    """
    Build the client-facing message from the first violation.

    Examples:
        '"params.id" Field required'
        '"total" Input should be a valid number'
    """
    if not violations:
        return "Validation failed"
    first = violations[0]
    if first["field"]:
        return f'"{first["field"]}" {first["message"]}'
    return first["message"]


class ValidationSchema:
    """
    Executable validation schema compiled from a descriptor.

    Attributes:
        descriptor: The SchemaDescriptor this schema was compiled from
        adapter: pydantic TypeAdapter doing the actual work
    """

    def __init__(self, descriptor, adapter: TypeAdapter, error_cls=ContractViolation):
        self.descriptor = descriptor
        self.adapter = adapter
        self.error_cls = error_cls

    def validate(self, value: Any) -> ValidationResult:
        """
        Validate (and coerce) a value.

        Returns:
            ValidationResult with error=None and the coerced plain value on
            success, or the violation and the untouched input on failure.
        """
        try:
            validated = self.adapter.validate_python(value)
        except ValidationError as e:
            violations = violations_from(e)
            error = self.error_cls(
                format_message(violations),
                {"violations": violations},
            )
            return ValidationResult(error, value)

        plain = self.adapter.dump_python(validated, by_alias=True, exclude_unset=True)
        return ValidationResult(None, plain)
