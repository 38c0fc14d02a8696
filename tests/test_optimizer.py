from __future__ import annotations

import logging

import pytest

from minilang_verify.ast_nodes import BinaryOp, Literal, Variable
from minilang_verify.errors import EvaluationError
from minilang_verify.optimizer import evaluate_binary, optimize
from minilang_verify.parser import parse
from minilang_verify.ssa import SAssert, SAssign, SPhi, to_ssa


def optimized(text):
    return optimize(to_ssa(parse(text)).instructions)


@pytest.mark.parametrize("op, left, right, expected", [
    ("+", 2, 3, 5),
    ("-", 2, 3, -1),
    ("*", -4, 3, -12),
    ("/", 7, 2, 3),
    ("/", -7, 2, -3),
    ("%", -7, 2, -1),
    ("%", 7, -2, 1),
    ("<", 1, 2, 1),
    (">=", 1, 2, 0),
    ("==", 4, 4, 1),
    ("!=", 4, 4, 0),
])
def test_evaluate_binary(op, left, right, expected):
    assert evaluate_binary(op, left, right) == expected


def test_division_by_zero_is_an_evaluation_error():
    with pytest.raises(EvaluationError):
        evaluate_binary("/", 1, 0)
    with pytest.raises(EvaluationError):
        evaluate_binary("%", 1, 0)


def test_propagate_fold_and_drop_dead_assignments():
    result = optimized("x := 3;\nz := 7;\ny := x + 1;\nassert(y > 0);\n")
    assert result == [
        SAssign("y_1", Literal(4)),
        SAssert(BinaryOp(">", Variable("y_1"), Literal(0))),
    ]


def test_single_pass_is_deterministic():
    text = "x := 3;\ny := x + 1;\nassert(y > 0);\n"
    once = optimized(text)
    assert optimized(text) == once
    # y_1 = 4 is now a literal source, so a second pass folds the assert
    assert optimize(once) == [SAssert(Literal(1))]


def test_fold_by_zero_is_left_alone(caplog):
    with caplog.at_level(logging.WARNING, logger="minilang_verify.optimizer"):
        result = optimized("x := 0;\ny := 5 / x;\nassert(y == y);\n")
    assert SAssign("y_1", BinaryOp("/", Literal(5), Literal(0))) in result
    assert "not folding" in caplog.text


def test_phi_operands_keep_definitions_alive():
    result = optimized("x := 1;\nif (c > 0) {\n  x := 2;\n}\nassert(x > 0);\n")
    targets = [i.target for i in result if isinstance(i, SAssign)]
    assert targets == ["x_1", "x_2"]
    phi = next(i for i in result if isinstance(i, SPhi))
    assert phi.operands == ("x_2", "x_1")


def test_guards_and_paths_are_folded():
    result = optimized("k := 2;\nif (k > 1) {\n  assert(k == 2);\n  y := 1;\n}\nassert(y >= 0);\n")
    asserts = [i for i in result if isinstance(i, SAssert)]
    assert asserts[0] == SAssert(Literal(1), (Literal(1),))
    phi = next(i for i in result if isinstance(i, SPhi))
    assert phi.guard == Literal(1)


def test_unknown_values_are_not_folded():
    result = optimized("if (c > 0) {\n  assert(c > 0);\n}\n")
    assert result[0].path == (BinaryOp(">", Variable("c_0"), Literal(0)),)
