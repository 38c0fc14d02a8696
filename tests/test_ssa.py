from __future__ import annotations

import pytest

from minilang_verify.ast_nodes import ArrayAccess, BinaryOp, Literal, Program, UnaryOp, Variable, walk_expr
from minilang_verify.errors import UnknownConstruct
from minilang_verify.parser import parse
from minilang_verify.ssa import SAssert, SAssign, SPhi, defined_symbol, format_ssa, split_ssa_name, to_ssa

PROGRAMS = [
    "x := 3;\ny := x + 1;\nassert(y > 0);\n",
    "x := 3;\nif (x < 5) {\n  y := x + 1;\n} else {\n  y := x - 1;\n}\nassert(y > 0);\n",
    "i := 0;\nwhile (i < n) {\n  if (i > 2) {\n    s := s + i;\n  }\n  i := i + 1;\n}\nassert(s >= 0);\n",
    "for (i := 0; i < 3; i := i + 1) {\n  a := arr[i] + a;\n}\nassert(a == a);\n",
]


def ssa_of(text):
    return to_ssa(parse(text))


def reads(instr):
    if isinstance(instr, SAssign):
        exprs = [instr.value]
    elif isinstance(instr, SAssert):
        exprs = [instr.cond, *instr.path]
    else:
        exprs = [instr.guard] if instr.guard is not None else []
    names = []
    for expr in exprs:
        for node in walk_expr(expr):
            if isinstance(node, Variable):
                names.append(node.name)
            elif isinstance(node, ArrayAccess):
                names.append(node.array)
    return names


def test_straight_line():
    result = ssa_of("x := 3;\nx := x + 1;\n")
    assert result.instructions == [
        SAssign("x_1", Literal(3)),
        SAssign("x_2", BinaryOp("+", Variable("x_1"), Literal(1))),
    ]
    assert result.final_versions == {"x": 2}


def test_unassigned_read_is_free_input():
    result = ssa_of("y := x + 1;\n")
    assert result.instructions == [SAssign("y_1", BinaryOp("+", Variable("x_0"), Literal(1)))]


@pytest.mark.parametrize("text", PROGRAMS)
def test_versions_strictly_increase(text):
    seen = {}
    for instr in ssa_of(text).instructions:
        symbol = defined_symbol(instr)
        if symbol is None:
            continue
        name, version = split_ssa_name(symbol)
        assert version > seen.get(name, 0)
        seen[name] = version


@pytest.mark.parametrize("text", PROGRAMS)
def test_reads_are_defined_earlier(text):
    defined = set()
    for instr in ssa_of(text).instructions:
        for symbol in reads(instr):
            assert symbol in defined or split_ssa_name(symbol)[1] == 0, symbol
        if isinstance(instr, SPhi):
            # a loop header's back-edge operand is defined by the body below it
            operands = instr.operands[:1] if instr.guard is None else instr.operands
            for symbol in operands:
                assert symbol in defined or split_ssa_name(symbol)[1] == 0, symbol
        symbol = defined_symbol(instr)
        if symbol is not None:
            defined.add(symbol)


def test_phi_after_branch_that_reassigns():
    result = ssa_of("x := 1;\nif (c > 0) {\n  x := 2;\n}\n")
    guard = BinaryOp(">", Variable("c_0"), Literal(0))
    assert result.instructions[-1] == SPhi("x_3", ("x_2", "x_1"), guard)
    assert result.final_versions["x"] == 3


def test_no_phi_when_branches_leave_name_alone():
    result = ssa_of("x := 1;\nif (c > 0) {\n  y := 2;\n} else {\n  y := 3;\n}\n")
    phis = [i for i in result.instructions if isinstance(i, SPhi)]
    assert [p.result for p in phis] == ["y_3"]
    assert result.final_versions["x"] == 1


def test_name_first_written_in_one_branch_merges_with_version_zero():
    result = ssa_of("if (c > 0) {\n  y := 2;\n}\n")
    assert result.instructions[-1].operands == ("y_1", "y_0")


def test_branch_versions_are_not_reused():
    result = ssa_of("if (c > 0) {\n  x := 1;\n} else {\n  x := 2;\n}\n")
    targets = [i.target for i in result.instructions if isinstance(i, SAssign)]
    assert targets == ["x_1", "x_2"]


def test_assert_records_enclosing_path():
    result = ssa_of("if (c > 0) {\n  assert(c != 0);\n} else {\n  assert(c <= 0);\n}\n")
    guard = BinaryOp(">", Variable("c_0"), Literal(0))
    asserts = [i for i in result.instructions if isinstance(i, SAssert)]
    assert asserts[0].path == (guard,)
    assert asserts[1].path == (UnaryOp("!", guard),)


def test_while_loop_phis():
    result = ssa_of("i := 0;\nwhile (i < n) {\n  i := i + 1;\n}\n")
    guard = BinaryOp("<", Variable("i_1"), Variable("n_0"))
    assert result.instructions == [
        SAssign("i_1", Literal(0)),
        SPhi("i_2", ("i_1", "i_3")),
        SPhi("n_1", ("n_0",)),
        SAssign("i_3", BinaryOp("+", Variable("i_2"), Literal(1))),
        SPhi("i_4", ("i_1", "i_3"), UnaryOp("!", guard)),
    ]
    # n is untouched by the body, so reads after the loop see n_0 again
    assert result.final_versions == {"i": 4, "n": 0}


def test_for_loop_runs_init_then_loop():
    result = ssa_of("for (i := 0; i < 3; i := i + 1) {\n  s := s + i;\n}\n")
    assert result.instructions[0] == SAssign("i_1", Literal(0))
    exits = [i for i in result.instructions if isinstance(i, SPhi) and i.guard is not None]
    assert {split_ssa_name(p.result)[0] for p in exits} == {"i", "s"}


def test_unknown_statement():
    with pytest.raises(UnknownConstruct):
        to_ssa(Program(("bogus",)))


def test_format_ssa():
    text = format_ssa(ssa_of("x := 3;\nif (x < 5) {\n  y := x + 1;\n} else {\n  y := x - 1;\n}\nassert(y > 0);\n").instructions)
    assert text.splitlines() == [
        "x_1 = 3",
        "y_1 = (x_1 + 1)",
        "y_2 = (x_1 - 1)",
        "y_3 = φ(y_1, y_2) [(x_1 < 5)]",
        "assert((y_3 > 0))",
    ]
