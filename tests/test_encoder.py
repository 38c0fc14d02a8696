from __future__ import annotations

import pytest

from minilang_verify.ast_nodes import ArrayAccess, BinaryOp, Literal, Variable
from minilang_verify.errors import EncodingError, StructuralMismatch
from minilang_verify.parser import parse
from minilang_verify.renamer import rename_instruction, rename_ssa
from minilang_verify.smt_encoder import array_symbols, encode, encode_equivalence, free_inputs, output_symbols
from minilang_verify.ssa import SAssert, SAssign, SPhi, to_ssa


def ssa(text):
    return to_ssa(parse(text)).instructions


def test_verification_script(branch_program):
    script = encode(ssa(branch_program))
    assert script.to_smtlib() == (
        "(set-logic QF_LIA)\n"
        "(declare-const x_1 Int)\n"
        "(declare-const y_1 Int)\n"
        "(declare-const y_2 Int)\n"
        "(declare-const y_3 Int)\n"
        "(assert (= x_1 3))\n"
        "(assert (= y_1 (+ x_1 1)))\n"
        "(assert (= y_2 (- x_1 1)))\n"
        "(assert (= y_3 (ite (< x_1 5) y_1 y_2)))\n"
        "(assert (not (> y_3 0)))\n"
        "(check-sat)\n"
        "(get-model)\n"
    )


def test_without_commands():
    text = encode(ssa("x := 1;\n")).to_smtlib(commands=False)
    assert "set-logic" not in text
    assert "check-sat" not in text


def test_no_assertions_is_trivially_verified():
    script = encode(ssa("x := 1;\n"))
    assert script.assertions[-1] == "false"


def test_assertions_are_conjoined_and_negated():
    script = encode(ssa("assert(x > 0);\nassert(x < 9);\n"))
    assert script.assertions[-1] == "(not (and (> x_0 0) (< x_0 9)))"


def test_negative_literal_and_condition_coercion():
    script = encode(ssa("y := x < -3;\nassert(y);\n"))
    assert "(= y_1 (ite (< x_0 (- 3)) 1 0))" in script.assertions
    assert script.assertions[-1] == "(not (distinct y_1 0))"


def test_logic_follows_content():
    assert encode(ssa("y := x * 2;\n")).logic == "QF_LIA"
    assert encode(ssa("y := x * z;\n")).logic == "QF_NIA"
    assert encode(ssa("y := arr[i];\n")).logic == "QF_ALIA"


def test_array_read():
    script = encode(ssa("y := arr[i + 1];\n"))
    assert script.declarations["arr_0"] == "(Array Int Int)"
    assert "(= y_1 (select arr_0 (+ i_0 1)))" in script.assertions


def test_truncating_division():
    script = encode(ssa("q := a / 2;\n"))
    assert "(ite (>= a_0 0) (div a_0 2) (- (div (- a_0) 2)))" in script.assertions[0]


def test_assert_path_becomes_implication():
    script = encode(ssa("if (c > 0) {\n  assert(c != 0);\n}\n"))
    assert script.assertions[-1] == "(not (=> (> c_0 0) (distinct c_0 0)))"


def test_loop_header_phi_is_a_disjunction():
    script = encode(ssa("i := 0;\nwhile (i < 3) {\n  i := i + 1;\n}\n"))
    assert "(or (= i_2 i_1) (= i_2 i_3))" in script.assertions


def test_array_loop_copy_keeps_array_sort():
    script = encode(ssa("y := arr[0];\nwhile (y < 3) {\n  y := y + arr[1];\n}\n"))
    assert script.declarations["arr_1"] == "(Array Int Int)"


def test_array_first_read_in_loop_condition():
    script = encode(ssa("i := 0;\nwhile (a[i] > 0) {\n  i := i + 1;\n}\nassert(i >= 0);\n"))
    assert script.declarations["a_0"] == "(Array Int Int)"
    assert script.declarations["a_1"] == "(Array Int Int)"
    assert script.logic == "QF_ALIA"


def test_array_first_read_in_for_condition():
    script = encode(ssa("for (i := 0; a[i] != 0; i := i + 1) {\n  s := s + 1;\n}\n"))
    assert script.declarations["a_0"] == "(Array Int Int)"


def test_array_symbols_follow_phi_copies():
    instructions = [SPhi("b_1", ("b_0",)), SAssign("y_1", ArrayAccess("b_0", Literal(0)))]
    assert array_symbols(instructions) == {"b_0", "b_1"}


def test_three_operand_phi_is_rejected():
    with pytest.raises(EncodingError):
        encode([SPhi("x_3", ("x_0", "x_1", "x_2"), Literal(1))])


def test_sort_conflict():
    with pytest.raises(EncodingError):
        encode(ssa("a := arr[0];\nb := arr + 1;\n"))


def test_renamer_touches_every_name():
    guard = BinaryOp(">", Variable("c_0"), Literal(0))
    assert rename_instruction(SPhi("x_2", ("x_1", "x_0"), guard)) == SPhi(
        "x_2_b", ("x_1_b", "x_0_b"), BinaryOp(">", Variable("c_0_b"), Literal(0)))
    assert rename_instruction(SAssert(Variable("y_1"), (guard,)), "_q") == SAssert(
        Variable("y_1_q"), (BinaryOp(">", Variable("c_0_q"), Literal(0)),))
    assert rename_ssa([SAssign("x_1", Literal(3))]) == [SAssign("x_1_b", Literal(3))]


def test_outputs_are_last_definitions(branch_program):
    assert output_symbols(ssa(branch_program)) == {"x": "x_1", "y": "y_3"}
    # a name only read or only merged is not an output
    assert output_symbols(ssa("assert(z > 0);\n")) == {}


def test_free_inputs():
    assert free_inputs(ssa("y := x + arr[i];\n")) == {"x": "x_0", "arr": "arr_0", "i": "i_0"}


def test_equivalence_script(branch_program):
    encoding = encode_equivalence(ssa("x := 3;\ny := x + 1;\nassert(y > 0);\n"), ssa(branch_program))
    assert encoding.pairs == [("x", "x_1", "x_1_b"), ("y", "y_1", "y_3_b")]
    assert encoding.shared_inputs == []
    script = encoding.script
    assert "(> y_1 0)" in script.assertions
    assert "(> y_3_b 0)" in script.assertions
    assert script.assertions[-1] == "(not (and (= x_1 x_1_b) (= y_1 y_3_b)))"


def test_equivalence_ties_shared_inputs():
    encoding = encode_equivalence(ssa("y := x + 1;\n"), ssa("y := 1 + x;\n"))
    assert encoding.shared_inputs == ["x"]
    assert "(= x_0 x_0_b)" in encoding.script.assertions


@pytest.mark.parametrize("first, second", [
    ("x := 1;\n", "x := 1;\ny := 2;\n"),
    ("x := 1;\n", "y := 1;\n"),
])
def test_structural_mismatch(first, second):
    with pytest.raises(StructuralMismatch) as excinfo:
        encode_equivalence(ssa(first), ssa(second))
    assert excinfo.value.outputs1 == ("x",)


def test_renamed_stream_is_disjoint(branch_program):
    first = ssa(branch_program)
    renamed = rename_ssa(first)
    names = {i.target for i in first if isinstance(i, SAssign)}
    assert names.isdisjoint(i.target for i in renamed if isinstance(i, SAssign))
