from __future__ import annotations

"""Writers for the per-function analysis outputs.

CSV rows and a JSON array are appended one function at a time; both sinks
are context managers so the files are closed on every exit path.
"""

import csv
import json
import sys
import textwrap
from typing import IO, List, Optional

from .models import FunctionAnalysis

CSV_FILE_NAME = "static_function_analysis.csv"
JSON_FILE_NAME = "static_function_analysis.json"

CSV_HEADER = [
    "'Function Name (Demangled)'",
    "'Function Name (Mangled)'",
    "'Loads'",
    "'Stores'",
    "'Bytes'",
]

SEPARATOR = "-------------------------------------------"


class CsvSink:
    """Appends one row per function after a single header row."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._file: Optional[IO[str]] = None
        self._writer = None
        self.rows = 0

    def open(self) -> "CsvSink":
        self._file = open(self.path, "w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file, lineterminator="\n")
        self._writer.writerow(CSV_HEADER)
        return self

    def write(self, analysis: FunctionAnalysis) -> None:
        """Write one function's row."""
        if self._writer is None:
            raise RuntimeError(f"{self.path} is not open")
        self._writer.writerow(
            [
                analysis.demangled_name,
                analysis.mangled_name,
                analysis.loads,
                analysis.stores,
                analysis.bytes,
            ]
        )
        self.rows += 1

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None

    def __enter__(self) -> "CsvSink":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()


class JsonArraySink:
    """Streams objects into a JSON array.

    Layout: "[\\n", objects indented by two spaces joined by ",\\n", then
    "\\n]". An empty array is written as "[\\n\\n]".
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._file: Optional[IO[str]] = None
        self.entries = 0

    def open(self) -> "JsonArraySink":
        self._file = open(self.path, "w", encoding="utf-8")
        self._file.write("[\n")
        return self

    def write(self, analysis: FunctionAnalysis) -> None:
        """Append one function's object."""
        if self._file is None:
            raise RuntimeError(f"{self.path} is not open")
        if self.entries:
            self._file.write(",\n")
        body = json.dumps(analysis.as_record(), indent=2, ensure_ascii=False)
        self._file.write(textwrap.indent(body, "  "))
        self.entries += 1

    def close(self) -> None:
        if self._file is not None:
            self._file.write("\n]")
            self._file.close()
            self._file = None

    def __enter__(self) -> "JsonArraySink":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()


def format_report(analysis: FunctionAnalysis) -> str:
    """Render the per-function diagnostic block."""
    lines: List[str] = [
        SEPARATOR,
        f" Function Name (Demangled): {analysis.demangled_name}",
        f" Function Name (Mangled): {analysis.mangled_name}",
        SEPARATOR,
        f"  'Loads': {analysis.loads}",
        f"  'Stores': {analysis.stores}",
        f"  'Bytes': {analysis.bytes}",
        SEPARATOR,
        "",
    ]
    return "\n".join(lines) + "\n"


def print_report(analysis: FunctionAnalysis, stream: Optional[IO[str]] = None) -> None:
    """Write the diagnostic block to stream (stderr by default)."""
    (stream or sys.stderr).write(format_report(analysis))
