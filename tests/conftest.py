"""
Pytest configuration and shared fixtures for memcheck tests.
"""

import logging
from textwrap import dedent

import pytest

from memcheck.config import AnalysisConfig
from memcheck.datalayout import DataLayout
from memcheck.parser import parse_module

X86_64_LAYOUT = "e-m:e-p270:32:32-p271:32:32-p272:64:64-i64:64-i128:128-f80:128-n8:16:32:64-S128"

HEADER = f"""\
; ModuleID = 'test.c'
source_filename = "test.c"
target datalayout = "{X86_64_LAYOUT}"
target triple = "x86_64-unknown-linux-gnu"
"""

ADD_FUNCTION = """\
define dso_local i32 @add(i32 noundef %0, i32 noundef %1) #0 !dbg !10 {
  %3 = alloca i32, align 4
  store i32 %0, ptr %3, align 4
  %4 = load i32, ptr %3, align 4, !dbg !15
  %5 = load i32, ptr %3, align 4, !dbg !16
  %6 = add nsw i32 %4, %5, !dbg !17
  ret i32 %6, !dbg !18
}
"""


def debug_metadata(directory: str, filename: str, subprograms: dict) -> str:
    """Build DIFile/DISubprogram records; subprograms maps id -> name."""
    lines = [
        "!llvm.dbg.cu = !{!0}",
        "!0 = distinct !DICompileUnit(language: DW_LANG_C11, file: !1, producer: \"clang\", "
        "isOptimized: false, runtimeVersion: 0, emissionKind: FullDebug)",
        f'!1 = !DIFile(filename: "{filename}", directory: "{directory}")',
    ]
    for node_id, name in subprograms.items():
        lines.append(
            f'!{node_id} = distinct !DISubprogram(name: "{name}", scope: !1, file: !1, '
            f"line: 1, type: !2, scopeLine: 1, spFlags: DISPFlagDefinition, unit: !0)"
        )
    lines.append("!2 = !DISubroutineType(types: !3)")
    lines.append("!3 = !{null}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_ir():
    """Factory fixture assembling a module from function bodies and metadata."""

    def _make(*bodies: str, directory: str = "/proj", filename: str = "src/a.c", subprograms=None) -> str:
        parts = [HEADER]
        parts.extend(dedent(b) for b in bodies)
        parts.append('attributes #0 = { noinline nounwind "frame-pointer"="all" }\n')
        parts.append(debug_metadata(directory, filename, subprograms or {}))
        return "\n".join(parts)

    return _make


@pytest.fixture
def add_ir(make_ir):
    """Module with one user function `add`: two i32 loads, one i32 store."""
    return make_ir(ADD_FUNCTION, subprograms={10: "add"})


@pytest.fixture
def parse_ir():
    """Fixture to parse IR text into a Module."""

    def _parse(text: str):
        return parse_module(text, name="test.ll")

    return _parse


@pytest.fixture
def x86_layout():
    """x86-64 Linux data layout."""
    return DataLayout.parse(X86_64_LAYOUT)


@pytest.fixture
def config_for(tmp_path):
    """Factory fixture for configs writing into tmp_path."""

    def _config(project_root="/proj", **kwargs) -> AnalysisConfig:
        kwargs.setdefault("output_dir", str(tmp_path))
        kwargs.setdefault("report", False)
        return AnalysisConfig(project_root=project_root, **kwargs)

    return _config


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler changes made by the CLI's logging setup."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
