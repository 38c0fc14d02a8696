"""Single-pass SSA optimizer: constant propagation, folding, dead-code elimination.

The pass is not iterated to a fixed point: constants are only taken from
assignments whose right-hand side already is a literal, so a value folded
here becomes a propagation source on the next call, not this one.
"""

import logging

from .ast_nodes import ArrayAccess, BinaryOp, Literal, UnaryOp, Variable, walk_expr
from .errors import EvaluationError, UnknownConstruct
from .ssa import SAssert, SAssign, SPhi

logger = logging.getLogger(__name__)


def evaluate_binary(op: str, left: int, right: int) -> int:
    """Integer semantics of the binary operators.

    Division truncates toward zero and ``%`` takes the sign of the dividend,
    as in C. Comparisons yield 1 or 0. Python integers do not overflow.
    """
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op in ("/", "%"):
        if right == 0:
            raise EvaluationError(f"{left} {op} 0")
        quotient = abs(left) // abs(right)
        if (left < 0) != (right < 0):
            quotient = -quotient
        return quotient if op == "/" else left - right * quotient
    if op == "==":
        return int(left == right)
    if op == "!=":
        return int(left != right)
    if op == "<":
        return int(left < right)
    if op == "<=":
        return int(left <= right)
    if op == ">":
        return int(left > right)
    if op == ">=":
        return int(left >= right)
    raise UnknownConstruct(op, "evaluate")


class ConstantFolder:
    def __init__(self, constants):
        self.constants = constants

    def fold(self, expr):
        if isinstance(expr, Literal):
            return expr
        if isinstance(expr, Variable):
            if expr.name in self.constants:
                return Literal(self.constants[expr.name])
            return expr
        if isinstance(expr, ArrayAccess):
            return ArrayAccess(expr.array, self.fold(expr.index))
        if isinstance(expr, UnaryOp):
            return UnaryOp(expr.op, self.fold(expr.operand))
        if isinstance(expr, BinaryOp):
            left = self.fold(expr.left)
            right = self.fold(expr.right)
            if isinstance(left, Literal) and isinstance(right, Literal):
                try:
                    return Literal(evaluate_binary(expr.op, left.value, right.value))
                except EvaluationError as e:
                    logger.warning("not folding %s: %s", expr.op, e)
            return BinaryOp(expr.op, left, right)
        raise UnknownConstruct(expr, "optimize")


def _count_uses(instructions):
    counts = {}

    def bump(name):
        counts[name] = counts.get(name, 0) + 1

    def scan(expr):
        for node in walk_expr(expr):
            if isinstance(node, Variable):
                bump(node.name)
            elif isinstance(node, ArrayAccess):
                bump(node.array)

    for instr in instructions:
        if isinstance(instr, SAssign):
            scan(instr.value)
        elif isinstance(instr, SAssert):
            scan(instr.cond)
            for cond in instr.path:
                scan(cond)
        elif isinstance(instr, SPhi):
            for operand in instr.operands:
                bump(operand)
            if instr.guard is not None:
                scan(instr.guard)
        else:
            raise UnknownConstruct(instr, "optimize")
    return counts


def optimize(instructions):
    constants = {
        instr.target: instr.value.value
        for instr in instructions
        if isinstance(instr, SAssign) and isinstance(instr.value, Literal)
    }
    folder = ConstantFolder(constants)

    rewritten = []
    for instr in instructions:
        if isinstance(instr, SAssign):
            rewritten.append(SAssign(instr.target, folder.fold(instr.value)))
        elif isinstance(instr, SAssert):
            rewritten.append(SAssert(folder.fold(instr.cond),
                                     tuple(folder.fold(p) for p in instr.path)))
        elif isinstance(instr, SPhi):
            guard = folder.fold(instr.guard) if instr.guard is not None else None
            rewritten.append(SPhi(instr.result, instr.operands, guard))
        else:
            raise UnknownConstruct(instr, "optimize")

    uses = _count_uses(rewritten)
    result = [
        instr for instr in rewritten
        if not (isinstance(instr, SAssign) and uses.get(instr.target, 0) == 0)
    ]
    logger.debug("optimizer: %d constants, %d -> %d instructions",
                 len(constants), len(instructions), len(result))
    return result
