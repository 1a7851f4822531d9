from __future__ import annotations

"""CLI entry point: per-function load/store/byte counts for an IR module."""

import argparse
import logging
import sys
from typing import List

from .config import PROJECT_ROOT_ENV, AnalysisConfig
from .datalayout import DataLayoutError, TypeSizeError
from .driver import run
from .parser import InputError, IRParseError, load_module

log = logging.getLogger("memcheck")


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr; DEBUG with --verbose, else WARNING."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


def main(argv: List[str] | None = None) -> int:
    """Entry point for the memcheck CLI."""
    parser = argparse.ArgumentParser(
        description="Count loads, stores and bytes moved by each project function in an LLVM module."
    )
    parser.add_argument("input", help="Path to a .ll or .bc module")
    parser.add_argument(
        "--project-root",
        help=f"Source tree of user functions (default: ${PROJECT_ROOT_ENV})",
    )
    parser.add_argument("--out-dir", default=".", help="Directory for the CSV and JSON outputs")
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="NAME",
        help="Skip a function by mangled name (repeatable)",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not print per-function reports")
    parser.add_argument("--show-calls", action="store_true", help="Print direct call counts")
    parser.add_argument("--llvm-dis", default="llvm-dis", help="Disassembler used for bitcode")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    config = AnalysisConfig.from_env(
        project_root=args.project_root,
        output_dir=args.out_dir,
        exclude=args.exclude,
        report=not args.quiet,
    )

    try:
        module = load_module(args.input, llvm_dis=args.llvm_dis)
        summary = run(module, config)
    except (IRParseError, DataLayoutError, TypeSizeError, InputError, OSError) as exc:
        log.error("%s: %s", args.input, exc)
        return 1

    print(f"memcheck: {summary.module}: {len(summary.analyses)} functions analyzed")
    if args.show_calls:
        print("  call counts:")
        for name, count in summary.call_counts.most_common():
            print(f"    {name}: {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
