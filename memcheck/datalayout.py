from __future__ import annotations

"""Target data layout: allocation sizes of IR types.

Implements the subset of LLVM's DataLayout needed to size load and store
operands: the layout string is parsed into alignment tables and
alloc_size() returns the store size rounded up to the ABI alignment.
"""

from typing import Dict, Mapping, Optional, Tuple, Union

from .irtypes import IRType, TypeSyntaxError, parse_type


class TypeSizeError(ValueError):
    """Raised for a type that has no static allocation size."""


class DataLayoutError(ValueError):
    """Raised for a malformed `target datalayout` string."""


# LLVM's built-in defaults, in bits: width -> ABI alignment.
_DEFAULT_INTS = {1: 8, 8: 8, 16: 16, 32: 32, 64: 32}
_DEFAULT_FLOATS = {16: 16, 32: 32, 64: 64, 128: 128}
_DEFAULT_VECTORS = {64: 64, 128: 128}
_DEFAULT_POINTER = (64, 64)


def _align_to(value: int, align: int) -> int:
    return (value + align - 1) // align * align


def _pow2_ceil(value: int) -> int:
    n = 1
    while n < value:
        n <<= 1
    return n


def _bits_field(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise DataLayoutError(f"bad data layout field: {text!r}") from None


def _align_field(text: str) -> int:
    bits = _bits_field(text)
    if bits <= 0 or bits % 8:
        raise DataLayoutError(f"bad data layout alignment: {text!r}")
    return bits


class DataLayout:
    """Alignment tables parsed from a `target datalayout` string."""

    def __init__(self, types: Optional[Mapping[str, str]] = None) -> None:
        self.pointers: Dict[int, Tuple[int, int]] = {0: _DEFAULT_POINTER}
        self.ints: Dict[int, int] = dict(_DEFAULT_INTS)
        self.floats: Dict[int, int] = dict(_DEFAULT_FLOATS)
        self.vectors: Dict[int, int] = dict(_DEFAULT_VECTORS)
        self.aggregate_abi = 0
        self.types: Mapping[str, str] = types or {}
        self._named: Dict[str, IRType] = {}
        self._alloc: Dict[str, int] = {}

    @classmethod
    def parse(cls, spec: str, types: Optional[Mapping[str, str]] = None) -> "DataLayout":
        """Build a layout from a layout string such as "e-m:e-i64:64-n8:16:32:64-S128"."""
        layout = cls(types)
        for item in spec.split("-") if spec else []:
            if not item:
                continue
            head, *fields = item.split(":")
            if not head:
                raise DataLayoutError(f"bad data layout entry: {item!r}")
            kind = head[0]
            if kind == "p" and (len(head) == 1 or head[1:].isdigit()):
                space = int(head[1:]) if len(head) > 1 else 0
                if not fields:
                    raise DataLayoutError(f"bad data layout entry: {item!r}")
                size = _align_field(fields[0])
                abi = _align_field(fields[1]) if len(fields) > 1 else size
                layout.pointers[space] = (size, abi)
            elif kind in "ifv" and head[1:].isdigit():
                if not fields:
                    raise DataLayoutError(f"missing alignment in data layout entry: {item!r}")
                width = int(head[1:])
                abi = _align_field(fields[0])
                table = {"i": layout.ints, "f": layout.floats, "v": layout.vectors}[kind]
                table[width] = abi
            elif kind == "a" and head[1:] in ("", "0"):
                layout.aggregate_abi = _bits_field(fields[0]) if fields else 0
            # Endianness, stack, mangling, native widths, address spaces and
            # function pointer alignment do not affect allocation sizes.
        return layout

    def resolve(self, ty: Union[str, IRType]) -> IRType:
        if isinstance(ty, IRType):
            return ty
        try:
            return parse_type(ty)
        except TypeSyntaxError as exc:
            raise TypeSizeError(str(exc)) from exc

    def _named_type(self, name: str) -> IRType:
        if name in self._named:
            return self._named[name]
        body = self.types.get(name)
        if body is None or body.strip() == "opaque":
            raise TypeSizeError(f"unsized type: {name} is opaque or undefined")
        ty = self.resolve(body)
        self._named[name] = ty
        return ty

    def _pointer(self, space: int) -> Tuple[int, int]:
        return self.pointers.get(space, self.pointers[0])

    def size_in_bits(self, ty: Union[str, IRType]) -> int:
        """Type size in bits (LLVM getTypeSizeInBits)."""
        ty = self.resolve(ty)
        if ty.kind in ("int", "float"):
            return ty.bits
        if ty.kind == "ptr":
            return self._pointer(ty.addrspace)[0]
        if ty.kind == "vector":
            if ty.scalable:
                raise TypeSizeError(f"unsized type: {ty} is scalable")
            return ty.count * self.size_in_bits(ty.elements[0])
        if ty.kind == "array":
            return ty.count * self.alloc_size(ty.elements[0]) * 8
        if ty.kind == "struct":
            return self._struct_layout(ty)[0] * 8
        if ty.kind == "named":
            return self.size_in_bits(self._named_type(ty.name))
        raise TypeSizeError(f"unsized type: {ty}")

    def abi_alignment(self, ty: Union[str, IRType]) -> int:
        """ABI alignment in bytes."""
        ty = self.resolve(ty)
        if ty.kind == "int":
            return self._int_alignment(ty.bits) // 8
        if ty.kind == "float":
            if ty.bits in self.floats:
                return self.floats[ty.bits] // 8
            return _pow2_ceil(self.store_size(ty))
        if ty.kind == "ptr":
            return self._pointer(ty.addrspace)[1] // 8
        if ty.kind == "vector":
            bits = self.size_in_bits(ty)
            if bits in self.vectors:
                return self.vectors[bits] // 8
            return _pow2_ceil(self.store_size(ty))
        if ty.kind == "array":
            return self.abi_alignment(ty.elements[0])
        if ty.kind == "struct":
            if ty.packed:
                return 1
            return max(self._struct_layout(ty)[1], self.aggregate_abi // 8)
        if ty.kind == "named":
            return self.abi_alignment(self._named_type(ty.name))
        raise TypeSizeError(f"unsized type: {ty}")

    def _int_alignment(self, bits: int) -> int:
        # Smallest entry at least as wide, else the widest entry.
        wider = [w for w in self.ints if w >= bits]
        if wider:
            return self.ints[min(wider)]
        return self.ints[max(self.ints)]

    def _struct_layout(self, ty: IRType) -> Tuple[int, int]:
        """Return (size, alignment) in bytes for a struct type."""
        offset = 0
        struct_align = 1
        for elem in ty.elements:
            align = 1 if ty.packed else self.abi_alignment(elem)
            offset = _align_to(offset, align)
            offset += self.alloc_size(elem)
            struct_align = max(struct_align, align)
        return _align_to(offset, struct_align), struct_align

    def store_size(self, ty: Union[str, IRType]) -> int:
        """Bytes written by a store of this type."""
        return (self.size_in_bits(ty) + 7) // 8

    def alloc_size(self, ty: Union[str, IRType]) -> int:
        """Bytes between consecutive objects of this type (getTypeAllocSize)."""
        if isinstance(ty, str):
            if ty not in self._alloc:
                self._alloc[ty] = self.alloc_size(self.resolve(ty))
            return self._alloc[ty]
        return _align_to(self.store_size(ty), self.abi_alignment(ty))
