from __future__ import annotations

"""Count loads, stores and bytes moved per function."""

import logging

from itanium_demangler import parse as parse_mangled

from .cache import AnalysisCache
from .datalayout import DataLayout, TypeSizeError
from .models import LOAD, STORE, Function, FunctionAnalysis

log = logging.getLogger(__name__)


def demangle(name: str) -> str:
    """Best-effort demangling; returns the input when it does not apply."""
    try:
        node = parse_mangled(name)
    except Exception as exc:  # unsupported or malformed encodings
        log.debug("cannot demangle %s: %s", name, exc)
        return name
    if node is None:
        return name
    return str(node)


def walk_function(function: Function, layout: DataLayout) -> FunctionAnalysis:
    """Single pass over every instruction of every block.

    bytes is the sum of the allocation sizes of loaded types and stored
    value types. Calls and all other instructions are not counted.
    """
    loads = 0
    stores = 0
    total = 0
    for inst in function.instructions():
        if inst.kind == LOAD:
            loads += 1
        elif inst.kind == STORE:
            stores += 1
        else:
            continue
        try:
            total += layout.alloc_size(inst.type)
        except TypeSizeError as exc:
            raise TypeSizeError(f"{function.name}: line {inst.line}: {exc}") from exc
    return FunctionAnalysis(
        mangled_name=function.name,
        demangled_name=demangle(function.name),
        loads=loads,
        stores=stores,
        bytes=total,
    )


def analyze_function(
    function: Function,
    cache: AnalysisCache,
    layout: DataLayout,
) -> FunctionAnalysis:
    """Return the function's analysis, walking it only on a cache miss."""
    return cache.get_or_compute(function, lambda fn: walk_function(fn, layout))
