"""Suffix every SSA name in an instruction stream.

Used to keep the second program of an equivalence check apart from the
first. SSA names always end in a digit, so a suffix ending in a letter can
never collide with an unrenamed name.
"""

from .ast_nodes import ArrayAccess, BinaryOp, Literal, UnaryOp, Variable
from .errors import UnknownConstruct
from .ssa import SAssert, SAssign, SPhi

DEFAULT_SUFFIX = "_b"


def rename_expr(expr, suffix):
    if isinstance(expr, Literal):
        return expr
    if isinstance(expr, Variable):
        return Variable(expr.name + suffix)
    if isinstance(expr, ArrayAccess):
        return ArrayAccess(expr.array + suffix, rename_expr(expr.index, suffix))
    if isinstance(expr, BinaryOp):
        return BinaryOp(expr.op, rename_expr(expr.left, suffix), rename_expr(expr.right, suffix))
    if isinstance(expr, UnaryOp):
        return UnaryOp(expr.op, rename_expr(expr.operand, suffix))
    raise UnknownConstruct(expr, "rename")


def rename_instruction(instr, suffix=DEFAULT_SUFFIX):
    if isinstance(instr, SAssign):
        return SAssign(instr.target + suffix, rename_expr(instr.value, suffix))
    if isinstance(instr, SAssert):
        return SAssert(rename_expr(instr.cond, suffix),
                       tuple(rename_expr(p, suffix) for p in instr.path))
    if isinstance(instr, SPhi):
        guard = rename_expr(instr.guard, suffix) if instr.guard is not None else None
        return SPhi(instr.result + suffix,
                    tuple(op + suffix for op in instr.operands), guard)
    raise UnknownConstruct(instr, "rename")


def rename_ssa(instructions, suffix=DEFAULT_SUFFIX):
    return [rename_instruction(instr, suffix) for instr in instructions]
