from __future__ import annotations

"""Readers for textual LLVM IR modules.

Only the facts the analysis needs are kept: the data layout string, named
type bodies, functions with their blocks and classified instructions, and
the DISubprogram/DIFile records that locate each function's source file.
Bitcode inputs are disassembled with llvm-dis first.
"""

import logging
import re
import subprocess
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .irtypes import TypeSyntaxError, scan_type
from .models import CALL, LOAD, OTHER, STORE, BasicBlock, Function, Instruction, Module, SourceLocation

log = logging.getLogger(__name__)

BITCODE_MAGIC = b"BC\xc0\xde"

_IDENT = r'(?:"(?:[^"\\]|\\.)*"|[-A-Za-z$._0-9]+)'
_MODULE_ID_RE = re.compile(r"^;\s*ModuleID\s*=\s*'(.*)'")
_DATALAYOUT_RE = re.compile(r'^target\s+datalayout\s*=\s*"(.*)"')
_TYPEDEF_RE = re.compile(r"^(%" + _IDENT + r")\s*=\s*type\s+(.*)$")
_FUNC_NAME_RE = re.compile(r"@(" + _IDENT + r")\s*\(")
_DBG_RE = re.compile(r"!dbg\s+!(\d+)")
_METADATA_RE = re.compile(r"^!(\d+)\s*=\s*(?:distinct\s+)?(.*)$")
_LABEL_RE = re.compile(r"^(" + _IDENT + r"):")
_ASSIGN_RE = re.compile(r"^%" + _IDENT + r"\s*=\s*")
_CALLEE_RE = re.compile(r"([@%])(" + _IDENT + r")\(")
_FILE_REF_RE = re.compile(r"\bfile:\s*!(\d+)")
_HEX_ESCAPE_RE = re.compile(rb"\\([0-9A-Fa-f]{2})")


class IRParseError(ValueError):
    """Raised for IR text the reader cannot make sense of."""

    def __init__(self, line: int, message: str) -> None:
        super().__init__(f"line {line}: {message}")
        self.line = line


class InputError(RuntimeError):
    """Raised when an input file cannot be turned into IR text."""


def unescape(text: str) -> str:
    """Decode LLVM's \\XX escapes in quoted names and metadata strings."""
    raw = _HEX_ESCAPE_RE.sub(lambda m: bytes([int(m.group(1), 16)]), text.encode("utf-8"))
    return raw.decode("utf-8", errors="replace")


def _unquote(name: str) -> str:
    if len(name) >= 2 and name[0] == '"' and name[-1] == '"':
        return unescape(name[1:-1])
    return name


def strip_comment(line: str) -> str:
    """Drop a trailing `;` comment, ignoring semicolons inside quotes."""
    in_quote = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_quote = not in_quote
        elif ch == ";" and not in_quote:
            return line[:i]
    return line


def _metadata_string(body: str, key: str) -> Optional[str]:
    m = re.search(r"\b" + key + r':\s*"((?:[^"\\]|\\.)*)"', body)
    if not m:
        return None
    return unescape(m.group(1))


def _skip_words(text: str, words: Iterable[str]) -> str:
    text = text.lstrip()
    changed = True
    while changed:
        changed = False
        for word in words:
            if re.match(word + r"\b", text):
                text = text[len(word):].lstrip()
                changed = True
    return text


def classify_instruction(text: str, line: int = 0) -> Instruction:
    """Classify one instruction line as load, store, call or other."""
    body = _ASSIGN_RE.sub("", text.strip(), count=1)
    opcode, _, rest = body.partition(" ")
    if opcode == "load":
        return Instruction(LOAD, type=_operand_type(rest, line), line=line)
    if opcode == "store":
        return Instruction(STORE, type=_operand_type(rest, line), line=line)
    if opcode in ("tail", "musttail", "notail"):
        opcode, _, rest = rest.lstrip().partition(" ")
    if opcode == "call":
        m = _CALLEE_RE.search(rest)
        callee = None
        if m and m.group(1) == "@":
            callee = _unquote(m.group(2))
        return Instruction(CALL, callee=callee, line=line)
    return Instruction(OTHER, line=line)


def _operand_type(rest: str, line: int) -> str:
    rest = _skip_words(rest, ("atomic", "volatile"))
    try:
        _ty, end = scan_type(rest)
    except TypeSyntaxError as exc:
        raise IRParseError(line, str(exc)) from exc
    return rest[:end].strip()


@dataclass
class _PendingFunction:
    name: str
    is_declaration: bool
    dbg: Optional[int]
    blocks: List[BasicBlock] = field(default_factory=list)


def _header_name(header: str, line: int) -> str:
    m = _FUNC_NAME_RE.search(header)
    if not m:
        raise IRParseError(line, "function header without a name")
    return _unquote(m.group(1))


def _header_dbg(header: str) -> Optional[int]:
    m = _DBG_RE.search(header)
    return int(m.group(1)) if m else None


def _resolve_location(dbg: Optional[int], metadata: Dict[int, str]) -> Optional[SourceLocation]:
    if dbg is None:
        return None
    subprogram = metadata.get(dbg, "")
    if not subprogram.startswith("!DISubprogram("):
        return None
    m = _FILE_REF_RE.search(subprogram)
    if not m:
        return None
    file_node = metadata.get(int(m.group(1)), "")
    if not file_node.startswith("!DIFile("):
        return None
    filename = _metadata_string(file_node, "filename")
    if filename is None:
        return None
    return SourceLocation(directory=_metadata_string(file_node, "directory") or "", filename=filename)


def _read_body(lines: List[Tuple[int, str]], start: int) -> Tuple[List[BasicBlock], int]:
    """Read blocks until the closing brace; return blocks and next index."""
    blocks: List[BasicBlock] = []
    label = "entry"
    insts: List[Instruction] = []
    i = start
    while i < len(lines):
        lineno, text = lines[i]
        i += 1
        if text == "}":
            blocks.append(BasicBlock(label=label, instructions=insts))
            return blocks, i
        m = _LABEL_RE.match(text)
        if m:
            if insts or blocks or label != "entry":
                blocks.append(BasicBlock(label=label, instructions=insts))
            label = _unquote(m.group(1))
            insts = []
            continue
        insts.append(classify_instruction(text, lineno))
    last = lines[-1][0] if lines else 0
    raise IRParseError(last, "unterminated function body")


def parse_module(text: str, name: str = "<module>") -> Module:
    """Parse textual IR into a Module."""
    module_name = name
    data_layout = ""
    types: Dict[str, str] = {}
    metadata: Dict[int, str] = {}
    pending: List[_PendingFunction] = []

    lines: List[Tuple[int, str]] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        m = _MODULE_ID_RE.match(raw)
        if m and module_name == "<module>":
            module_name = m.group(1)
        stripped = strip_comment(raw).strip()
        if stripped:
            lines.append((lineno, stripped))

    i = 0
    while i < len(lines):
        lineno, line = lines[i]
        i += 1
        if line.startswith("define"):
            header = line
            while not header.endswith("{"):
                if i >= len(lines):
                    raise IRParseError(lineno, "function header without a body")
                header += " " + lines[i][1]
                i += 1
            fn = _PendingFunction(_header_name(header, lineno), False, _header_dbg(header))
            fn.blocks, i = _read_body(lines, i)
            pending.append(fn)
            continue
        if line.startswith("declare"):
            pending.append(_PendingFunction(_header_name(line, lineno), True, _header_dbg(line)))
            continue
        m = _DATALAYOUT_RE.match(line)
        if m:
            data_layout = m.group(1)
            continue
        m = _TYPEDEF_RE.match(line)
        if m:
            types[m.group(1)] = m.group(2).strip()
            continue
        m = _METADATA_RE.match(line)
        if m:
            metadata[int(m.group(1))] = m.group(2).strip()
            continue
        if line == "}" or _LABEL_RE.match(line) and not line.startswith(("@", "$", "!")):
            raise IRParseError(lineno, f"unexpected {line!r} outside a function")

    functions = [
        Function(
            name=p.name,
            blocks=tuple(p.blocks),
            is_declaration=p.is_declaration,
            location=_resolve_location(p.dbg, metadata),
        )
        for p in pending
    ]
    log.debug("parsed %s: %d functions, %d named types", module_name, len(functions), len(types))
    return Module(name=module_name, data_layout=data_layout, functions=functions, types=types)


def read_ir_text(path: str, llvm_dis: str = "llvm-dis") -> str:
    """Return IR text for a .ll file, disassembling bitcode when needed."""
    with open(path, "rb") as f:
        data = f.read()
    if not data.startswith(BITCODE_MAGIC):
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InputError(f"{path} is neither bitcode nor UTF-8 IR text: {exc}") from exc
    log.debug("disassembling bitcode %s with %s", path, llvm_dis)
    try:
        proc = subprocess.run(
            [llvm_dis, "-o", "-", path],
            text=True,
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        raise InputError(f"{llvm_dis} invocation failed: {exc}") from exc
    if proc.returncode != 0:
        raise InputError(f"{llvm_dis} failed on {path}: {proc.stderr.strip()}")
    return proc.stdout


def load_module(path: str, llvm_dis: str = "llvm-dis") -> Module:
    """Load a module from a .ll or .bc file."""
    return parse_module(read_ir_text(path, llvm_dis), name=path)
