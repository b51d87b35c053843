from __future__ import annotations

import importlib
import pkgutil
from typing import Iterable, List

from fastapi import APIRouter


MODULES_PACKAGE = "linktherapy.modules"


def iter_submodules(package: str) -> Iterable[str]:
    pkg = importlib.import_module(package)
    for m in pkgutil.iter_modules(pkg.__path__):
        if m.ispkg:
            yield f"{package}.{m.name}"


def _import_optional(dotted: str):
    try:
        return importlib.import_module(dotted)
    except ModuleNotFoundError as exc:
        # Only tolerate the optional module itself being absent
        if exc.name != dotted:
            raise
        return None


def exported_routers(router_mod) -> List[APIRouter]:
    """`router` first, then any other attribute named `*_router`, each once."""
    names = ["router"] + sorted(
        name for name in vars(router_mod) if name.endswith("_router") and name != "router"
    )
    found: List[APIRouter] = []
    for name in names:
        candidate = getattr(router_mod, name, None)
        if isinstance(candidate, APIRouter) and all(candidate is not r for r in found):
            found.append(candidate)
    return found


def collect_routers() -> List[APIRouter]:
    routers: List[APIRouter] = []
    for mod in iter_submodules(MODULES_PACKAGE):
        # Models must be registered before the schema is created
        _import_optional(f"{mod}.models")
        router_mod = _import_optional(f"{mod}.router")
        if router_mod is None:
            continue
        routers.extend(exported_routers(router_mod))
    return routers
