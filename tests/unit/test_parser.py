"""
Unit tests for the textual IR reader.
"""

import pytest

from memcheck.models import CALL, LOAD, OTHER, STORE, SourceLocation
from memcheck.parser import (
    BITCODE_MAGIC,
    InputError,
    IRParseError,
    classify_instruction,
    load_module,
    read_ir_text,
    strip_comment,
    unescape,
)


class TestClassifyInstruction:
    """Single instruction classification."""

    def test_load(self):
        inst = classify_instruction("%4 = load i32, ptr %3, align 4, !dbg !15")
        assert inst.kind == LOAD
        assert inst.type == "i32"

    def test_volatile_and_atomic_load(self):
        assert classify_instruction("%v = load volatile i64, ptr %p").type == "i64"
        inst = classify_instruction("%v = load atomic i32, ptr %p acquire, align 4")
        assert inst.type == "i32"

    def test_aggregate_load(self):
        inst = classify_instruction("%s = load { i32, [2 x i8] }, ptr %p, align 4")
        assert inst.type == "{ i32, [2 x i8] }"

    def test_legacy_typed_pointer_load(self):
        assert classify_instruction("%1 = load i32*, i32** %p, align 8").type == "i32*"

    def test_store(self):
        inst = classify_instruction("store i32 %0, ptr %3, align 4")
        assert inst.kind == STORE
        assert inst.type == "i32"

    def test_store_of_aggregate_constant(self):
        inst = classify_instruction("store { i32, i32 } { i32 1, i32 2 }, ptr %p, align 4")
        assert inst.type == "{ i32, i32 }"

    def test_store_atomic_volatile(self):
        inst = classify_instruction("store atomic volatile double %d, ptr %p seq_cst, align 8")
        assert inst.type == "double"

    def test_direct_call(self):
        inst = classify_instruction("%5 = call i32 @add(i32 noundef 1, i32 noundef 2)")
        assert inst.kind == CALL
        assert inst.callee == "add"

    def test_tail_call(self):
        assert classify_instruction("tail call void @g()").callee == "g"

    def test_varargs_call(self):
        inst = classify_instruction("%1 = call i32 (ptr, ...) @printf(ptr noundef @.str, i32 %0)")
        assert inst.callee == "printf"

    def test_quoted_callee(self):
        inst = classify_instruction('call void @"odd name"()')
        assert inst.callee == "odd name"

    def test_indirect_call(self):
        inst = classify_instruction("%9 = call i32 %8(i32 noundef 1)")
        assert inst.kind == CALL
        assert inst.callee is None

    def test_other(self):
        assert classify_instruction("%6 = add nsw i32 %4, %5").kind == OTHER
        assert classify_instruction("ret void").kind == OTHER
        assert classify_instruction("%r = invoke i32 @f() to label %ok unwind label %bad").kind == OTHER

    def test_bad_type(self):
        with pytest.raises(IRParseError):
            classify_instruction("%x = load qux, ptr %p", line=7)


class TestHelpers:
    """Comment stripping and escape decoding."""

    def test_strip_comment(self):
        assert strip_comment("5:    ; preds = %4") == "5:    "
        assert strip_comment('@s = constant [2 x i8] c";\\00"') == '@s = constant [2 x i8] c";\\00"'

    def test_unescape(self):
        assert unescape("C:\\5Cproj") == "C:\\proj"
        assert unescape("caf\\C3\\A9") == "café"


class TestParseModule:
    """Whole-module parsing."""

    def test_add_module(self, add_ir, parse_ir):
        module = parse_ir(add_ir)
        assert module.data_layout.startswith("e-m:e")
        fn = module.get_function("add")
        assert fn is not None
        assert not fn.is_declaration
        assert fn.location == SourceLocation(directory="/proj", filename="src/a.c")
        kinds = [i.kind for i in fn.instructions()]
        assert kinds.count(LOAD) == 2
        assert kinds.count(STORE) == 1

    def test_blocks_and_labels(self, make_ir, parse_ir):
        body = """\
        define void @f(i1 %c) {
          br i1 %c, label %then, label %done

        then:                                             ; preds = %0
          store i8 1, ptr null, align 1
          br label %done

        done:
          ret void

        dead:                                             ; No predecessors!
          %x = load i8, ptr null, align 1
          ret void
        }
        """
        fn = parse_ir(make_ir(body)).get_function("f")
        assert [b.label for b in fn.blocks] == ["entry", "then", "done", "dead"]
        assert len(fn.blocks[0].instructions) == 1

    def test_declarations(self, make_ir, parse_ir):
        module = parse_ir(make_ir("declare i32 @puts(ptr noundef)\n"))
        fn = module.get_function("puts")
        assert fn.is_declaration
        assert fn.blocks == ()

    def test_named_types(self, make_ir, parse_ir):
        module = parse_ir(make_ir("%struct.point = type { i32, i32 }\n%struct.opaque = type opaque\n"))
        assert module.types == {"%struct.point": "{ i32, i32 }", "%struct.opaque": "opaque"}

    def test_function_without_dbg(self, make_ir, parse_ir):
        module = parse_ir(make_ir("define void @nodbg() {\n  ret void\n}\n"))
        assert module.get_function("nodbg").location is None

    def test_module_order(self, make_ir, parse_ir):
        module = parse_ir(
            make_ir(
                "declare void @z()\n",
                "define void @b() {\n  ret void\n}\n",
                "define void @a() {\n  ret void\n}\n",
            )
        )
        assert [f.name for f in module.functions] == ["z", "b", "a"]

    def test_unterminated_body(self, parse_ir):
        with pytest.raises(IRParseError):
            parse_ir("define void @f() {\n  ret void\n")

    def test_stray_brace(self, parse_ir):
        with pytest.raises(IRParseError) as excinfo:
            parse_ir("target triple = \"x\"\n}\n")
        assert excinfo.value.line == 2


class TestReadIrText:
    """Reading .ll and .bc inputs."""

    def test_text_file(self, tmp_path, add_ir):
        path = tmp_path / "add.ll"
        path.write_text(add_ir, encoding="utf-8")
        assert load_module(str(path)).get_function("add") is not None

    def test_non_utf8_text(self, tmp_path):
        path = tmp_path / "bad.ll"
        path.write_bytes(b"; \xff\xfe not ir\n")
        with pytest.raises(InputError):
            read_ir_text(str(path))

    def test_bitcode_missing_disassembler(self, tmp_path):
        path = tmp_path / "add.bc"
        path.write_bytes(BITCODE_MAGIC + b"\x00\x00")
        with pytest.raises(InputError):
            read_ir_text(str(path), llvm_dis=str(tmp_path / "no-such-llvm-dis"))
