from __future__ import annotations

"""Run configuration: project root, output directory and filters."""

import os
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Mapping, Optional

PROJECT_ROOT_ENV = "SCOP_ROOT"


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings for one module run.

    project_root: source tree whose functions are analyzed; None or empty
    means no function qualifies.
    output_dir: directory receiving the CSV and JSON files.
    exclude: mangled names skipped even when user-defined.
    report: write the per-function block to stderr.
    """
    project_root: Optional[str] = None
    output_dir: str = "."
    exclude: FrozenSet[str] = frozenset()
    report: bool = True

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        project_root: Optional[str] = None,
        output_dir: str = ".",
        exclude: Iterable[str] = (),
        report: bool = True,
    ) -> "AnalysisConfig":
        """Build a config, reading the project root from $SCOP_ROOT unless given."""
        env = os.environ if environ is None else environ
        if project_root is None:
            project_root = env.get(PROJECT_ROOT_ENV)
        return cls(
            project_root=project_root,
            output_dir=output_dir,
            exclude=frozenset(exclude),
            report=report,
        )
