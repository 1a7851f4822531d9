from __future__ import annotations

"""Dataclasses for the compiled module graph and analysis results.

The module graph (Module -> Function -> BasicBlock -> Instruction) is built by
the IR reader and treated as read-only by the analysis. FunctionAnalysis is
the per-function record handed to the output sinks.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Sequence

LOAD = "load"
STORE = "store"
CALL = "call"
OTHER = "other"


@dataclass(frozen=True)
class SourceLocation:
    """File record attached to a function's debug subprogram."""
    directory: str
    filename: str


@dataclass(frozen=True)
class Instruction:
    """One instruction, reduced to what the analysis consumes.

    type: loaded type for loads, stored value type for stores, else None.
    callee: statically known callee name for direct calls, else None.
    """
    kind: str
    type: Optional[str] = None
    callee: Optional[str] = None
    line: int = 0


@dataclass(frozen=True)
class BasicBlock:
    """Basic block record: label plus ordered instructions."""
    label: str
    instructions: Sequence[Instruction]


@dataclass(frozen=True)
class Function:
    """Function definition or declaration from the module."""
    name: str
    blocks: Sequence[BasicBlock] = ()
    is_declaration: bool = False
    location: Optional[SourceLocation] = None

    @property
    def key(self) -> str:
        """Identity used for cache and call-count keying."""
        return self.name

    def instructions(self) -> Iterator[Instruction]:
        """Yield every instruction, block order then intra-block order."""
        for block in self.blocks:
            yield from block.instructions


@dataclass(frozen=True)
class Module:
    """Compiled module: data layout, named types and functions in order."""
    name: str
    data_layout: str = ""
    functions: Sequence[Function] = ()
    types: Dict[str, str] = field(default_factory=dict)

    def get_function(self, name: str) -> Optional[Function]:
        """Return the function with the given symbol name, if any."""
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None


@dataclass(frozen=True)
class FunctionAnalysis:
    """Per-function memory access counts."""
    mangled_name: str
    demangled_name: str
    loads: int = 0
    stores: int = 0
    bytes: int = 0

    def as_record(self) -> dict:
        """Return the output record with keys in emission order."""
        return {
            "Function Name (Demangled)": self.demangled_name,
            "Function Name (Mangled)": self.mangled_name,
            "Loads": self.loads,
            "Stores": self.stores,
            "Bytes": self.bytes,
        }
