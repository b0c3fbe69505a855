"""
Controller / schema discovery.

Resolves a glob pattern to Python files, imports each one and returns the
values the compiler understands:
- descriptors (or @definition models) carrying an id -> definitions
- Controller instances (is_swagger_controller marker) -> routes

Discovery finishes completely before SwaggerRouter.load() reads anything.
"""

import glob
import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, List

from .descriptor import is_descriptor


logger = logging.getLogger('swagger_contracts.contracts.discovery')


def is_controller(value: Any) -> bool:
    return not isinstance(value, type) and getattr(value, 'is_swagger_controller', False) is True


def is_definition(value: Any) -> bool:
    if is_descriptor(value):
        return bool(value.id)
    return isinstance(value, type) and bool(getattr(value, '__definition_id__', None))


def load_module(path: Path) -> ModuleType:
    """Import a file as a module named after its path."""
    module_name = '_swagger_discovered_' + '_'.join(path.with_suffix('').parts[-3:]).replace('-', '_')
    existing = sys.modules.get(module_name)
    if existing is not None and getattr(existing, '__file__', None) == str(path):
        return existing

    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load module from {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module


def discover(pattern: str) -> List[Any]:
    """
    Import every file matching ``pattern`` and collect controllers/definitions.

    Args:
        pattern: glob pattern (``**`` supported), e.g. "app/controllers/**/*.py"

    Returns:
        Discovered values in file order, then module attribute order
    """
    values = []
    seen = set()
    for file_name in sorted(glob.glob(pattern, recursive=True)):
        path = Path(file_name).resolve()
        if path.suffix != '.py' or path.name == '__init__.py':
            continue

        module = load_module(path)
        found = [
            value for name, value in vars(module).items()
            if not name.startswith('_') and (is_controller(value) or is_definition(value))
        ]
        if not found:
            logger.warning(f"No controller or schema exported by '{path.name}'")
            continue

        for value in found:
            if id(value) in seen:
                continue
            seen.add(id(value))
            values.append(value)
            logger.info("discovered %s in %s", type(value).__name__, path.name)

    return values
