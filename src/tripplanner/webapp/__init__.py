"""Trip planner web application package.

``tripplanner.webapp.config`` can be imported on its own; the FastAPI
application (and with it the database engine) is only loaded on first
attribute access, e.g. ``uvicorn tripplanner.webapp:app``.
"""
from __future__ import annotations

from importlib import import_module
from types import ModuleType
from typing import Any, List

_IMPL_MODULE: ModuleType | None = None

__all__: List[str] = ["app"]


def _load_impl() -> ModuleType:
    global _IMPL_MODULE
    if _IMPL_MODULE is not None:
        return _IMPL_MODULE
    module = import_module(".application", __name__)
    _IMPL_MODULE = module
    module_all = getattr(module, "__all__", ())
    __all__.extend(name for name in module_all if name not in __all__)
    return module


def __getattr__(name: str) -> Any:
    if name.startswith("__"):
        raise AttributeError(name)
    return getattr(_load_impl(), name)


def __dir__() -> List[str]:
    names = set(globals()) | set(__all__)
    return sorted(names | set(dir(_load_impl())))
