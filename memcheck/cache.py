from __future__ import annotations

"""Per-run memo of function analyses."""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .models import Function, FunctionAnalysis


@dataclass
class AnalysisCache:
    """Maps function identity to its computed analysis.

    One cache lives for one module run and is shared by every function in
    it. Single-threaded: lookup and insert are not atomic together.
    """
    entries: Dict[str, FunctionAnalysis] = field(default_factory=dict)
    hits: int = 0
    misses: int = 0

    def __contains__(self, function: Function) -> bool:
        return function.key in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, function: Function) -> Optional[FunctionAnalysis]:
        """Return the stored analysis, counting the hit or miss."""
        result = self.entries.get(function.key)
        if result is None:
            self.misses += 1
        else:
            self.hits += 1
        return result

    def store(self, function: Function, result: FunctionAnalysis) -> None:
        """Record an analysis; an existing entry is never replaced."""
        self.entries.setdefault(function.key, result)

    def get_or_compute(
        self,
        function: Function,
        compute: Callable[[Function], FunctionAnalysis],
    ) -> FunctionAnalysis:
        """Return the cached analysis, computing and storing it on a miss."""
        result = self.get(function)
        if result is not None:
            return result
        result = compute(function)
        self.store(function, result)
        return self.entries[function.key]
