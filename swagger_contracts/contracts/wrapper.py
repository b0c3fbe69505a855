"""
Validation middleware synthesized from a handler's declarations.

Per handler:
1. request_validator() merges every ParameterBinding into one composite
   schema (query / params / body / formData / headers), validates once,
   then replaces ctx.params, ctx.query and ctx.body with validated values
2. response_validator() wraps the rest of the chain: after the handler,
   validates ctx.result against the binding registered for ctx.status
3. handler_middleware() adapts a plain handler(ctx) to the chain

Middleware signature is fn(ctx, call_next); compose() chains them.

Usage:
    chain = compose([*entry.middlewares,
                     request_validator(entry, models),
                     response_validator(entry, models),
                     handler_middleware(entry.handler)])
    chain(ctx)
"""

import copy
import dataclasses
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional

from flask import Response, jsonify
from pydantic import BaseModel
from werkzeug.datastructures import MultiDict

from .bridge import SchemaTranslationError, to_validation
from .descriptor import Object, Primitive, SchemaDescriptor
from .registry import HandlerEntry, ParamIn
from .validate import (
    ContractViolation,
    RequestValidationError,
    ResponseValidationError,
    ValidationSchema,
)


logger = logging.getLogger('swagger_contracts.contracts')

Middleware = Callable[['RequestContext', Callable[[], Any]], Any]

_BUCKETS = {
    ParamIn.QUERY: 'query',
    ParamIn.PATH: 'params',
    ParamIn.FORM_DATA: 'formData',
    ParamIn.HEADER: 'headers',
}


def _flatten(multi: Optional[MultiDict]) -> Dict[str, Any]:
    """MultiDict -> dict; repeated keys become lists."""
    if not multi:
        return {}
    return {k: v[0] if len(v) == 1 else v for k, v in multi.lists()}


class RequestContext:
    """
    Request-scoped state handed through the middleware chain.

    Request side: params (path), query, body, files, headers (lowercase).
    Response side: status, result, response_headers.
    """

    def __init__(
        self,
        params: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
        body: Any = None,
        files: Optional[Dict[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        is_multipart: bool = False,
        request=None,
    ):
        self.request = request
        self.params = dict(params or {})
        self.query = dict(query or {})
        self.body = body
        self.files = dict(files or {})
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.is_multipart = is_multipart

        self.status = 200
        self.result = None
        self.response_headers: Dict[str, str] = {}

    @classmethod
    def from_request(cls, request, view_args: Optional[Dict[str, Any]] = None) -> 'RequestContext':
        """Build a context from the current Flask request."""
        is_multipart = request.mimetype == 'multipart/form-data'
        if is_multipart:
            body = _flatten(request.form)
        elif request.is_json:
            body = request.get_json(silent=True)
        elif request.form:
            body = _flatten(request.form)
        else:
            body = None

        return cls(
            params=view_args,
            query=_flatten(request.args),
            body=body,
            files=_flatten(request.files),
            headers=dict(request.headers.items()),
            is_multipart=is_multipart,
            request=request,
        )

    def set_result(self, result: Any) -> None:
        """Accept Flask-style handler returns: body, (body, status), (body, status, headers)."""
        status = None
        if isinstance(result, tuple):
            if len(result) >= 3:
                self.response_headers.update(result[2] or {})
            if len(result) >= 2:
                status = int(result[1])
            result = result[0]
        if status is None and isinstance(result, Response):
            status = result.status_code
        if status is not None:
            self.status = status
        self.result = result

    def make_response(self) -> Response:
        """Render ctx.result with ctx.status. Requires an app context."""
        result = self.result
        if isinstance(result, Response):
            response = result
        elif result is None:
            response = Response('')
        elif isinstance(result, (str, bytes)):
            response = Response(result)
        else:
            response = jsonify(result)
        response.status_code = self.status
        for name, value in self.response_headers.items():
            response.headers[name] = value
        return response


def compose(middlewares: List[Middleware]) -> Callable[..., Any]:
    """
    Chain middleware(ctx, call_next) into one callable(ctx[, call_next]).

    Each middleware decides whether and when to call the rest of the chain.
    """
    middlewares = [m for m in middlewares if m is not None]

    def run(ctx: RequestContext, call_next: Optional[Callable[[], Any]] = None):
        index = -1

        def dispatch(i: int):
            nonlocal index
            if i <= index:
                raise RuntimeError("call_next() called multiple times")
            index = i
            if i == len(middlewares):
                return call_next() if call_next else None
            return middlewares[i](ctx, lambda: dispatch(i + 1))

        return dispatch(0)

    return run


def _compile(
    spec: SchemaDescriptor,
    models: Mapping[str, SchemaDescriptor],
    allow_unknown: bool,
    error_cls,
    handler_key: str,
) -> Optional[ValidationSchema]:
    try:
        return to_validation(spec, models, allow_unknown=allow_unknown, error_cls=error_cls)
    except SchemaTranslationError as e:
        logger.error(
            f"Schema for handler '{handler_key}' cannot be compiled, leaving it unvalidated: {e}",
            extra={"event": "schema_compile_failed", "handler": handler_key},
        )
        return None


def _binding_schema(binding, models, handler_key: str) -> SchemaDescriptor:
    spec = dataclasses.replace(binding.schema, required=binding.required)
    if _compile(spec, models, True, RequestValidationError, handler_key) is None:
        return Primitive(kind='any', required=binding.required)
    return spec


def request_validator(entry: HandlerEntry, models: Mapping[str, SchemaDescriptor]) -> Optional[Middleware]:
    """
    Build the request validator for a handler, or None without parameters.

    All bindings are validated together exactly once. Unknown keys pass
    through unchanged.
    """
    if not entry.parameters:
        return None

    buckets: Dict[str, Dict[str, SchemaDescriptor]] = {name: {} for name in _BUCKETS.values()}
    body_schema: SchemaDescriptor = Primitive(kind='any')
    form_names = []

    for binding in entry.parameters:
        spec = _binding_schema(binding, models, entry.key)
        if binding.location == ParamIn.BODY:
            body_schema = spec
            continue
        name = binding.name.lower() if binding.location == ParamIn.HEADER else binding.name
        buckets[_BUCKETS[binding.location]][name] = spec
        if binding.location == ParamIn.FORM_DATA:
            form_names.append(binding.name)

    composite = Object(
        {
            'query': Object(buckets['query'], required=True),
            'params': Object(buckets['params'], required=True),
            'formData': Object(buckets['formData'], required=True),
            'headers': Object(buckets['headers'], required=True),
            'body': body_schema,
        },
        required=True,
    )
    schema = _compile(composite, models, True, RequestValidationError, entry.key)
    if schema is None:
        return None

    def validate_request(ctx: RequestContext, call_next):
        body = ctx.body
        form_data = {}
        if ctx.is_multipart:
            form_data = dict(body or {})
            for name in form_names:
                if name in ctx.files:
                    form_data[name] = ctx.files[name]
            body = None

        value = {
            'query': ctx.query,
            'params': ctx.params,
            'formData': form_data,
            'headers': ctx.headers,
        }
        if body is not None:
            value['body'] = body

        error, validated = schema.validate(value)
        if error:
            logger.info(
                f"Request validation failed: handler={entry.key} message={error.message}",
                extra={"event": "request_invalid", "handler": entry.key, "details": error.details},
            )
            raise error

        ctx.params = validated['params']
        ctx.query = validated['query']
        if ctx.is_multipart:
            ctx.body = validated['formData']
        else:
            ctx.body = validated.get('body')
        return call_next()

    return validate_request


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode='json')
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def to_plain(value: Any) -> Any:
    """JSON round-trip to strip non-plain values; unserializable input is returned as-is."""
    try:
        return json.loads(json.dumps(value, default=_json_default))
    except (TypeError, ValueError):
        return value


def response_validator(entry: HandlerEntry, models: Mapping[str, SchemaDescriptor]) -> Optional[Middleware]:
    """
    Build the response validator for a handler, or None without responses.

    Runs the rest of the chain first. Only status codes with a registered
    ResponseBinding are validated.
    """
    if not entry.responses:
        return None

    schemas = {}
    for code, binding in entry.responses.items():
        schema = _compile(binding.schema, models, False, ResponseValidationError, entry.key)
        if schema is not None:
            schemas[code] = schema

    def validate_response(ctx: RequestContext, call_next):
        result = call_next()

        schema = schemas.get(ctx.status)
        if schema is None:
            return result

        body = ctx.result
        if isinstance(body, Response):
            body = body.get_json(silent=True)
            if body is None:
                logger.debug(f"Non-JSON response from '{entry.key}', skipping validation")
                return result

        body = to_plain(body)
        descriptor = schema.descriptor
        if body is None and descriptor.has_default:
            ctx.result = copy.deepcopy(descriptor.default)
            return result
        if body is None and not descriptor.required:
            return result

        error, value = schema.validate(body)
        if error:
            _log_violation(entry.key, error, stage="response")
            raise error
        if isinstance(ctx.result, Response):
            # keep the handler's headers, cookies and mimetype
            ctx.result.set_data(jsonify(value).get_data())
        else:
            ctx.result = value
        return result

    return validate_response


def handler_middleware(handler: Callable, decorator: Optional[Callable] = None, summary: str = '') -> Middleware:
    """
    Terminal middleware calling handler(ctx).

    With ``decorator``, the call is delegated to
    decorator(handler, ctx, call_next, summary), which must return the
    handler's result.
    """
    def call_handler(ctx: RequestContext, call_next):
        if decorator is not None:
            result = decorator(handler, ctx, call_next, summary)
        else:
            result = handler(ctx)
        if result is not None:
            ctx.set_result(result)
        return ctx.result

    call_handler.__name__ = getattr(handler, '__name__', 'handler')
    return call_handler


def _log_violation(handler_key: str, violation: ContractViolation, stage: str = "params") -> None:
    """Log contract violation for observability."""
    logger.warning(
        f"Contract violation: handler={handler_key} stage={stage} "
        f"message={violation.message}",
        extra={
            "event": "contract_violation",
            "handler": handler_key,
            "stage": stage,
            "details": violation.details,
        }
    )
