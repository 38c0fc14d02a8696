"""AST for the mini language.

Statements: assignment, if/else, while, for, assert.
Expressions: integer literals, variables, array reads, binary and unary ops.
The same expression classes are reused by the SSA form, where variable names
carry a version suffix.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

# Split priority used by the expression parser, lowest binding first.
BINARY_OPS = ("==", "!=", "<=", ">=", "<", ">", "+", "-", "*", "/", "%")
COMPARISON_OPS = frozenset(("==", "!=", "<=", ">=", "<", ">"))


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    value: int


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class ArrayAccess:
    array: str
    index: Expr


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Expr


Expr = Union[Literal, Variable, ArrayAccess, BinaryOp, UnaryOp]


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Assignment:
    target: str
    value: Expr


@dataclass(frozen=True)
class If:
    cond: Expr
    then_body: tuple = ()
    else_body: tuple = ()


@dataclass(frozen=True)
class While:
    cond: Expr
    body: tuple = ()


@dataclass(frozen=True)
class For:
    init: Assignment
    cond: Expr
    update: Assignment
    body: tuple = ()


@dataclass(frozen=True)
class Assert:
    cond: Expr


Stmt = Union[Assignment, If, While, For, Assert]


@dataclass(frozen=True)
class Program:
    body: tuple = ()


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def format_expr(expr: Expr) -> str:
    """Render an expression in source form, without added parentheses.

    The output parses back to the same tree for anything the parser produced.
    """
    if isinstance(expr, Literal):
        return str(expr.value)
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, ArrayAccess):
        return f"{expr.array}[{format_expr(expr.index)}]"
    if isinstance(expr, BinaryOp):
        return f"{format_expr(expr.left)} {expr.op} {format_expr(expr.right)}"
    if isinstance(expr, UnaryOp):
        return f"{expr.op}{format_expr(expr.operand)}"
    return type(expr).__name__


def format_stmt(stmt: Stmt) -> Optional[str]:
    """Single-line header form of a statement, as shown on CFG nodes."""
    if isinstance(stmt, Assignment):
        return f"{stmt.target} := {format_expr(stmt.value)}"
    if isinstance(stmt, If):
        return f"If ({format_expr(stmt.cond)})"
    if isinstance(stmt, While):
        return f"While ({format_expr(stmt.cond)})"
    if isinstance(stmt, For):
        return (f"For ({format_stmt(stmt.init)}; {format_expr(stmt.cond)}; "
                f"{format_stmt(stmt.update)})")
    if isinstance(stmt, Assert):
        return f"Assert ({format_expr(stmt.cond)})"
    return None


def walk_expr(expr: Expr):
    """Yield ``expr`` and every sub-expression, parents first."""
    yield expr
    if isinstance(expr, ArrayAccess):
        yield from walk_expr(expr.index)
    elif isinstance(expr, BinaryOp):
        yield from walk_expr(expr.left)
        yield from walk_expr(expr.right)
    elif isinstance(expr, UnaryOp):
        yield from walk_expr(expr.operand)


def format_program(program: Program, indent: str = "  ") -> str:
    """Indented outline of the statement tree, one header per line."""
    lines = []

    def emit(stmts, depth):
        for stmt in stmts:
            lines.append(indent * depth + format_stmt(stmt))
            if isinstance(stmt, If):
                emit(stmt.then_body, depth + 1)
                if stmt.else_body:
                    lines.append(indent * depth + "Else")
                    emit(stmt.else_body, depth + 1)
            elif isinstance(stmt, (While, For)):
                emit(stmt.body, depth + 1)

    emit(program.body, 0)
    return "\n".join(lines)
