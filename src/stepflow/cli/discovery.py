"""Discovery of flows in files, directories and importable modules."""

from __future__ import annotations

import importlib
import importlib.util
import logging
from pathlib import Path
from types import ModuleType
from typing import Any

from stepflow.errors import FlowLoadError
from stepflow.flow import Flow

logger = logging.getLogger(__name__)


def _load_file(path: Path) -> ModuleType:
    """Execute a flows file as a standalone module, outside ``sys.modules``."""
    spec = importlib.util.spec_from_file_location(path.stem, path)
    if spec is None or spec.loader is None:
        raise FlowLoadError(message=f"Cannot load flows from {path}", target=str(path))

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise FlowLoadError(
            message=f"Error while importing {path}: {e}",
            cause=e,
            target=str(path),
        ) from e
    return module


def _import_module(name: str) -> ModuleType:
    try:
        return importlib.import_module(name)
    except ImportError as e:
        raise FlowLoadError(
            message=f"No such file or module: {name}",
            cause=e,
            target=name,
        ) from e


def flows_in_module(module: ModuleType) -> list[Flow]:
    """Module-level flows, in definition order.

    Lists and tuples of flows (as built by ``tabular_flow``) are expanded.
    """
    found: list[Flow] = []
    for attr_name, value in vars(module).items():
        if attr_name.startswith("_"):
            continue
        if isinstance(value, Flow):
            found.append(value)
        elif isinstance(value, (list, tuple)) and value and all(isinstance(v, Flow) for v in value):
            found.extend(value)
    found.sort(key=lambda f: f.line)
    return found


def modules_for_target(target: str) -> list[ModuleType]:
    """Import the module(s) a CLI target refers to.

    A target is a ``.py`` file, a directory (every ``*.py`` file in it not
    starting with ``_``) or a dotted module name.
    """
    path = Path(target)
    if path.is_dir():
        files = sorted(p for p in path.glob("*.py") if not p.name.startswith("_"))
        return [_load_file(p) for p in files]
    if path.is_file():
        return [_load_file(path)]
    if target.endswith(".py"):
        raise FlowLoadError(message=f"File not found: {target}", target=target)
    return [_import_module(target)]


def discover_flows(targets: list[str] | tuple[str, ...]) -> list[Flow]:
    """Collect the flows of every target, without duplicates."""
    flows: list[Flow] = []
    seen: set[int] = set()
    for target in targets:
        for module in modules_for_target(target):
            module_flows = flows_in_module(module)
            logger.debug("Found %d flow(s) in %s", len(module_flows), module.__name__)
            for found in module_flows:
                if id(found) not in seen:
                    seen.add(id(found))
                    flows.append(found)
    return flows


def describe_flow(f: Flow) -> dict[str, Any]:
    return {
        "title": f.title,
        "description": f.description,
        "module": f.module,
        "line": f.line,
        "steps": len(f.steps),
    }
