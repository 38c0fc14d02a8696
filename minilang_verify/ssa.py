"""Static single assignment form.

Every write gets a fresh ``name_N`` version; reads see the current version,
and a name never written is read as ``name_0`` (a free input). Merge points
get phi instructions: after if/else for names whose branch versions differ,
at loop entry for every live name, and at loop exit for every name the body
changed. Loops are translated once, not unrolled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .ast_nodes import (
    Assert, Assignment, ArrayAccess, BinaryOp, Expr, For, If, Literal,
    Program, UnaryOp, Variable, While,
)
from .errors import UnknownConstruct

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Instructions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SAssign:
    target: str
    value: Expr


@dataclass(frozen=True)
class SAssert:
    cond: Expr
    # conditions of the enclosing branches and loops, outermost first
    path: tuple = ()


@dataclass(frozen=True)
class SPhi:
    result: str
    operands: tuple
    # None marks a loop-entry phi; its second operand is the back edge
    guard: Optional[Expr] = None


def ssa_name(name: str, version: int) -> str:
    return f"{name}_{version}"


def split_ssa_name(symbol: str):
    """``"x_3"`` -> ``("x", 3)``."""
    name, _, version = symbol.rpartition("_")
    return name, int(version)


def defined_symbol(instr) -> Optional[str]:
    if isinstance(instr, SAssign):
        return instr.target
    if isinstance(instr, SPhi):
        return instr.result
    return None


@dataclass
class SSAResult:
    instructions: list = field(default_factory=list)
    final_versions: dict = field(default_factory=dict)

    def __str__(self):
        return format_ssa(self.instructions)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class VersionContext:
    """Version bookkeeping for one SSA construction."""

    def __init__(self):
        self.versions = {}
        self.counters = {}

    def current(self, name):
        # first sight of a name makes it live as a free input
        return ssa_name(name, self.versions.setdefault(name, 0))

    def fresh(self, name):
        version = self.counters.get(name, 0) + 1
        self.counters[name] = version
        self.versions[name] = version
        return ssa_name(name, version)

    def snapshot(self):
        return dict(self.versions)

    def restore(self, snapshot):
        self.versions = dict(snapshot)


class SSABuilder:
    def __init__(self):
        self.ctx = VersionContext()
        self.instructions = []
        self.path = []

    def build(self, program: Program) -> SSAResult:
        self.block(program.body)
        logger.debug("built %d SSA instructions", len(self.instructions))
        return SSAResult(self.instructions, self.ctx.snapshot())

    def emit(self, instr):
        self.instructions.append(instr)

    def block(self, stmts):
        for stmt in stmts:
            self.stmt(stmt)

    def stmt(self, stmt):
        if isinstance(stmt, Assignment):
            value = self.rewrite(stmt.value)
            self.emit(SAssign(self.ctx.fresh(stmt.target), value))
        elif isinstance(stmt, Assert):
            self.emit(SAssert(self.rewrite(stmt.cond), tuple(self.path)))
        elif isinstance(stmt, If):
            self.if_stmt(stmt)
        elif isinstance(stmt, While):
            self.while_loop(stmt.cond, stmt.body)
        elif isinstance(stmt, For):
            self.stmt(stmt.init)
            self.while_loop(stmt.cond, stmt.body + (stmt.update,))
        else:
            raise UnknownConstruct(stmt, "ssa")

    def if_stmt(self, stmt):
        guard = self.rewrite(stmt.cond)
        before = self.ctx.snapshot()

        self.path.append(guard)
        self.block(stmt.then_body)
        self.path.pop()
        after_then = self.ctx.snapshot()

        self.ctx.restore(before)
        self.path.append(UnaryOp("!", guard))
        self.block(stmt.else_body)
        self.path.pop()
        after_else = self.ctx.snapshot()

        names = list(after_then) + [n for n in after_else if n not in after_then]
        for name in names:
            then_version = after_then.get(name, 0)
            else_version = after_else.get(name, 0)
            if then_version != else_version:
                operands = (ssa_name(name, then_version), ssa_name(name, else_version))
                self.emit(SPhi(self.ctx.fresh(name), operands, guard))

    def while_loop(self, cond, body):
        guard = self.rewrite(cond)
        before = self.ctx.snapshot()

        headers = []
        for name in before:
            entry = self.ctx.current(name)
            result = self.ctx.fresh(name)
            headers.append((name, entry, result, len(self.instructions)))
            self.emit(SPhi(result, (entry,)))

        self.path.append(guard)
        self.block(body)
        self.path.pop()

        for name, entry, result, slot in headers:
            back = self.ctx.current(name)
            if back != result:
                self.instructions[slot] = SPhi(result, (entry, back))
            else:
                self.ctx.versions[name] = before[name]

        exit_guard = UnaryOp("!", guard)
        for name, version in self.ctx.snapshot().items():
            if version != before.get(name, 0):
                operands = (ssa_name(name, before.get(name, 0)), ssa_name(name, version))
                self.emit(SPhi(self.ctx.fresh(name), operands, exit_guard))

    def rewrite(self, expr):
        """Replace variable names in ``expr`` with their current versions."""
        if isinstance(expr, Literal):
            return expr
        if isinstance(expr, Variable):
            return Variable(self.ctx.current(expr.name))
        if isinstance(expr, ArrayAccess):
            return ArrayAccess(self.ctx.current(expr.array), self.rewrite(expr.index))
        if isinstance(expr, BinaryOp):
            return BinaryOp(expr.op, self.rewrite(expr.left), self.rewrite(expr.right))
        if isinstance(expr, UnaryOp):
            return UnaryOp(expr.op, self.rewrite(expr.operand))
        raise UnknownConstruct(expr, "ssa")


def to_ssa(program: Program) -> SSAResult:
    return SSABuilder().build(program)


# ---------------------------------------------------------------------------
# Pretty printing
# ---------------------------------------------------------------------------

def format_ssa_expr(expr) -> str:
    if isinstance(expr, Literal):
        return str(expr.value)
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, ArrayAccess):
        return f"{expr.array}[{format_ssa_expr(expr.index)}]"
    if isinstance(expr, BinaryOp):
        return f"({format_ssa_expr(expr.left)} {expr.op} {format_ssa_expr(expr.right)})"
    if isinstance(expr, UnaryOp):
        return f"{expr.op}{format_ssa_expr(expr.operand)}"
    raise UnknownConstruct(expr, "format")


def format_instruction(instr) -> str:
    if isinstance(instr, SAssign):
        return f"{instr.target} = {format_ssa_expr(instr.value)}"
    if isinstance(instr, SAssert):
        text = f"assert({format_ssa_expr(instr.cond)})"
        if instr.path:
            text += " if " + " && ".join(format_ssa_expr(p) for p in instr.path)
        return text
    if isinstance(instr, SPhi):
        text = f"{instr.result} = φ({', '.join(instr.operands)})"
        if instr.guard is not None:
            text += f" [{format_ssa_expr(instr.guard)}]"
        return text
    raise UnknownConstruct(instr, "format")


def format_ssa(instructions) -> str:
    return "\n".join(format_instruction(i) for i in instructions)
