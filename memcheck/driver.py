from __future__ import annotations

"""Module-level run: call counts, provenance filtering, analysis and output."""

import logging
import os
import sys
from collections import Counter
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import IO, List, Optional

from .cache import AnalysisCache
from .classifier import analyze_function
from .config import PROJECT_ROOT_ENV, AnalysisConfig
from .datalayout import DataLayout
from .models import CALL, FunctionAnalysis, Module
from .provenance import is_user_defined
from .sinks import CSV_FILE_NAME, JSON_FILE_NAME, CsvSink, JsonArraySink, print_report

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunSummary:
    """What one run produced.

    call_counts is computed for every function in the module but does not
    influence which functions are analyzed or what is written.
    """
    module: str
    analyses: List[FunctionAnalysis]
    call_counts: Counter
    csv_path: str
    json_path: str
    cache_hits: int = 0
    cache_misses: int = 0
    skipped: int = 0
    notes: List[str] = field(default_factory=list)


def count_direct_calls(module: Module) -> Counter:
    """Count direct call sites per callee across the whole module."""
    known = {fn.name for fn in module.functions}
    counts: Counter = Counter()
    for fn in module.functions:
        for inst in fn.instructions():
            if inst.kind == CALL and inst.callee is not None and inst.callee in known:
                counts[inst.callee] += 1
    return counts


def run(
    module: Module,
    config: AnalysisConfig,
    cache: Optional[AnalysisCache] = None,
    report_stream: Optional[IO[str]] = None,
) -> RunSummary:
    """Analyze every user-defined function and write both output files."""
    call_counts = count_direct_calls(module)
    log.debug("call counts for %s: %s", module.name, dict(call_counts))

    notes: List[str] = []
    if not config.project_root:
        msg = f"${PROJECT_ROOT_ENV} environment variable is not set."
        log.error(msg)
        notes.append(msg)

    layout = DataLayout.parse(module.data_layout, module.types)
    cache = AnalysisCache() if cache is None else cache
    hits_before, misses_before = cache.hits, cache.misses
    csv_path = os.path.join(config.output_dir, CSV_FILE_NAME)
    json_path = os.path.join(config.output_dir, JSON_FILE_NAME)
    analyses: List[FunctionAnalysis] = []
    skipped = 0

    with ExitStack() as stack:
        csv_sink = stack.enter_context(CsvSink(csv_path))
        json_sink = stack.enter_context(JsonArraySink(json_path))
        for fn in module.functions:
            if fn.is_declaration or not is_user_defined(fn, config.project_root):
                skipped += 1
                continue
            if fn.name in config.exclude:
                log.debug("excluded %s", fn.name)
                skipped += 1
                continue
            analysis = analyze_function(fn, cache, layout)
            if config.report:
                print_report(analysis, report_stream or sys.stderr)
            csv_sink.write(analysis)
            json_sink.write(analysis)
            analyses.append(analysis)

    log.info("%s: analyzed %d functions, skipped %d", module.name, len(analyses), skipped)
    return RunSummary(
        module=module.name,
        analyses=analyses,
        call_counts=call_counts,
        csv_path=csv_path,
        json_path=json_path,
        cache_hits=cache.hits - hits_before,
        cache_misses=cache.misses - misses_before,
        skipped=skipped,
        notes=notes,
    )
