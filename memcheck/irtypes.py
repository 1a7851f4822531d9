from __future__ import annotations

"""Reader for LLVM IR type syntax.

Types are read from IR text into small IRType trees. The IR reader uses
scan_type() to find where a type ends inside an instruction; the data layout
uses parse_type() to size it.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

FLOAT_BITS = {
    "half": 16,
    "bfloat": 16,
    "float": 32,
    "double": 64,
    "x86_fp80": 80,
    "fp128": 128,
    "ppc_fp128": 128,
}

# Sized by definition but never a load/store operand in practice.
OTHER_SIZED = {"x86_mmx": 64, "x86_amx": 8192}

UNSIZED = {"void", "label", "metadata", "token"}

_INT_RE = re.compile(r"i(\d+)\b")
_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUM_RE = re.compile(r"\d+")
_NAME_RE = re.compile(r'%(?:"(?:[^"\\]|\\.)*"|[-A-Za-z$._0-9]+)')


class TypeSyntaxError(ValueError):
    """Raised when a type cannot be read from IR text."""


@dataclass(frozen=True)
class IRType:
    """Parsed IR type.

    kind is one of int, float, ptr, vector, array, struct, named, function,
    or one of the UNSIZED keywords.
    """
    kind: str
    bits: int = 0
    count: int = 0
    elements: Tuple["IRType", ...] = ()
    name: str = ""
    packed: bool = False
    scalable: bool = False
    addrspace: int = 0

    def __str__(self) -> str:
        if self.kind == "int":
            return f"i{self.bits}"
        if self.kind in ("float", "named") or self.kind in UNSIZED:
            return self.name or self.kind
        if self.kind == "ptr":
            return "ptr" if not self.addrspace else f"ptr addrspace({self.addrspace})"
        if self.kind == "vector":
            prefix = "vscale x " if self.scalable else ""
            return f"<{prefix}{self.count} x {self.elements[0]}>"
        if self.kind == "array":
            return f"[{self.count} x {self.elements[0]}]"
        if self.kind == "struct":
            body = ", ".join(str(e) for e in self.elements)
            body = "{ " + body + " }" if body else "{}"
            return f"<{body}>" if self.packed else body
        if self.kind == "function":
            ret, params = self.elements[0], self.elements[1:]
            return f"{ret} ({', '.join(str(p) for p in params)})"
        return self.kind


class _TypeReader:
    def __init__(self, text: str, pos: int = 0) -> None:
        self.text = text
        self.pos = pos

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _peek(self) -> str:
        self._skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _expect(self, token: str) -> None:
        self._skip_ws()
        if not self.text.startswith(token, self.pos):
            raise TypeSyntaxError(f"expected {token!r} at {self.pos} in {self.text!r}")
        self.pos += len(token)

    def _number(self) -> int:
        self._skip_ws()
        m = _NUM_RE.match(self.text, self.pos)
        if not m:
            raise TypeSyntaxError(f"expected number at {self.pos} in {self.text!r}")
        self.pos = m.end()
        return int(m.group(0))

    def _addrspace(self) -> Optional[int]:
        start = self.pos
        self._skip_ws()
        if not self.text.startswith("addrspace", self.pos):
            self.pos = start
            return None
        self.pos += len("addrspace")
        self._expect("(")
        n = self._number()
        self._expect(")")
        return n

    def _elements(self, close: str) -> List[IRType]:
        elems: List[IRType] = []
        if self._peek() == close[0]:
            self._expect(close)
            return elems
        while True:
            elems.append(self.read())
            if self._peek() == ",":
                self.pos += 1
                continue
            self._expect(close)
            return elems

    def _base(self) -> IRType:
        ch = self._peek()
        if not ch:
            raise TypeSyntaxError(f"missing type in {self.text!r}")
        if ch == "{":
            self.pos += 1
            return IRType("struct", elements=tuple(self._elements("}")))
        if ch == "[":
            self.pos += 1
            n = self._number()
            self._expect("x")
            elem = self.read()
            self._expect("]")
            return IRType("array", count=n, elements=(elem,))
        if ch == "<":
            self.pos += 1
            if self._peek() == "{":
                self.pos += 1
                elems = self._elements("}")
                self._expect(">")
                return IRType("struct", elements=tuple(elems), packed=True)
            scalable = False
            if self.text.startswith("vscale", self.pos):
                self.pos += len("vscale")
                self._expect("x")
                scalable = True
            n = self._number()
            self._expect("x")
            elem = self.read()
            self._expect(">")
            return IRType("vector", count=n, elements=(elem,), scalable=scalable)
        if ch == "%":
            m = _NAME_RE.match(self.text, self.pos)
            if not m:
                raise TypeSyntaxError(f"bad type name at {self.pos} in {self.text!r}")
            self.pos = m.end()
            return IRType("named", name=m.group(0))
        m = _INT_RE.match(self.text, self.pos)
        if m:
            self.pos = m.end()
            return IRType("int", bits=int(m.group(1)))
        m = _WORD_RE.match(self.text, self.pos)
        if not m:
            raise TypeSyntaxError(f"unexpected {ch!r} at {self.pos} in {self.text!r}")
        word = m.group(0)
        self.pos = m.end()
        if word in FLOAT_BITS:
            return IRType("float", bits=FLOAT_BITS[word], name=word)
        if word in OTHER_SIZED:
            return IRType("float", bits=OTHER_SIZED[word], name=word)
        if word == "ptr":
            space = self._addrspace()
            return IRType("ptr", addrspace=space or 0)
        if word in UNSIZED:
            return IRType(word, name=word)
        raise TypeSyntaxError(f"unknown type {word!r} in {self.text!r}")

    def read(self) -> IRType:
        ty = self._base()
        while True:
            end = self.pos
            ch = self._peek()
            if ch == "*":
                self.pos += 1
                ty = IRType("ptr")
                continue
            if ch == "(":
                self.pos += 1
                params = []
                if self._peek() == ")":
                    self.pos += 1
                else:
                    while True:
                        self._skip_ws()
                        if self.text.startswith("...", self.pos):
                            self.pos += 3
                        else:
                            params.append(self.read())
                        if self._peek() == ",":
                            self.pos += 1
                            continue
                        self._expect(")")
                        break
                ty = IRType("function", elements=(ty, *params))
                continue
            if ch == "a" and self.text.startswith("addrspace", self.pos):
                space = self._addrspace()
                if self._peek() == "*":
                    self.pos += 1
                    ty = IRType("ptr", addrspace=space or 0)
                    continue
            self.pos = end
            return ty


def parse_type(text: str) -> IRType:
    """Parse a complete type string."""
    reader = _TypeReader(text)
    ty = reader.read()
    if reader._peek():
        raise TypeSyntaxError(f"trailing text after type in {text!r}")
    return ty


def scan_type(text: str, pos: int = 0) -> Tuple[IRType, int]:
    """Read one type starting at pos; return it and the end offset."""
    reader = _TypeReader(text, pos)
    ty = reader.read()
    return ty, reader.pos
