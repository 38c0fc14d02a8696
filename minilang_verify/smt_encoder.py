"""Lower SSA instruction streams to SMT-LIB v2 constraint scripts.

Verification: the definitional equalities of the program plus the negated
conjunction of its assertions. A satisfying model is a counterexample.

Equivalence: both programs' definitions (the second one renamed), their
assertions as assumptions, shared inputs tied together, and the negated
conjunction of pairwise output equalities. Unsatisfiable means equivalent.

An assertion nested under branches or loops is not asserted on its own: it
is encoded as ``path => cond``, where ``path`` conjoins the guards that reach
it. An assertion in an untaken branch therefore never fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .ast_nodes import COMPARISON_OPS, ArrayAccess, BinaryOp, Literal, UnaryOp, Variable, walk_expr
from .errors import EncodingError, StructuralMismatch, UnknownConstruct
from .renamer import DEFAULT_SUFFIX, rename_ssa
from .ssa import SAssert, SAssign, SPhi, defined_symbol, split_ssa_name

logger = logging.getLogger(__name__)

INT_SORT = "Int"
ARRAY_SORT = "(Array Int Int)"

SMT_COMPARISON = {"==": "=", "!=": "distinct", "<": "<", "<=": "<=", ">": ">", ">=": ">="}


@dataclass
class ConstraintScript:
    declarations: dict = field(default_factory=dict)
    assertions: list = field(default_factory=list)
    nonlinear: bool = False

    @property
    def logic(self) -> str:
        arith = "NIA" if self.nonlinear else "LIA"
        if ARRAY_SORT in self.declarations.values():
            return f"QF_A{arith}"
        return f"QF_{arith}"

    def declare(self, name, sort=INT_SORT):
        known = self.declarations.get(name)
        if known is None:
            self.declarations[name] = sort
        elif known != sort:
            raise EncodingError(f"{name} is used both as {known} and as {sort}")

    def add(self, formula):
        self.assertions.append(formula)

    def to_smtlib(self, commands=True) -> str:
        """Render the script; ``commands=False`` leaves out set-logic/check-sat/get-model."""
        lines = []
        if commands:
            lines.append(f"(set-logic {self.logic})")
        lines.extend(f"(declare-const {name} {sort})" for name, sort in self.declarations.items())
        lines.extend(f"(assert {formula})" for formula in self.assertions)
        if commands:
            lines.extend(["(check-sat)", "(get-model)"])
        return "\n".join(lines) + "\n"

    def __str__(self):
        return self.to_smtlib()


def conjunction(formulas):
    if not formulas:
        return "true"
    if len(formulas) == 1:
        return formulas[0]
    return f"(and {' '.join(formulas)})"


class SMTEncoder:
    """Prefix-syntax encoding of SSA over integers.

    Comparisons and ``!`` are formulas; everything else is an integer term.
    Each side is coerced to the other where the context needs it.
    """

    def __init__(self, script=None):
        self.script = script if script is not None else ConstraintScript()
        self.conditions = []
        self.arrays = set()

    def define(self, instructions):
        instructions = list(instructions)
        # a phi can copy an array before its first select
        self.arrays |= array_symbols(instructions)
        for instr in instructions:
            if isinstance(instr, SAssign):
                value = self.term(instr.value)
                self.script.declare(instr.target)
                self.script.add(f"(= {instr.target} {value})")
            elif isinstance(instr, SPhi):
                self.phi(instr)
            elif isinstance(instr, SAssert):
                self.conditions.append(self.assertion(instr))
            else:
                raise UnknownConstruct(instr, "encode")

    def phi(self, instr):
        ops = instr.operands
        sort = ARRAY_SORT if instr.result in self.arrays else INT_SORT
        self.script.declare(instr.result, sort)
        for operand in ops:
            self.script.declare(operand, sort)
        if len(ops) == 1:
            self.script.add(f"(= {instr.result} {ops[0]})")
        elif len(ops) != 2:
            raise EncodingError(f"phi {instr.result} has {len(ops)} operands, only 2 are supported")
        elif instr.guard is None:
            self.script.add(f"(or (= {instr.result} {ops[0]}) (= {instr.result} {ops[1]}))")
        else:
            guard = self.formula(instr.guard)
            self.script.add(f"(= {instr.result} (ite {guard} {ops[0]} {ops[1]}))")

    def assertion(self, instr):
        cond = self.formula(instr.cond)
        if not instr.path:
            return cond
        path = conjunction([self.formula(p) for p in instr.path])
        return f"(=> {path} {cond})"

    def term(self, expr) -> str:
        if isinstance(expr, Literal):
            return str(expr.value) if expr.value >= 0 else f"(- {-expr.value})"
        if isinstance(expr, Variable):
            self.script.declare(expr.name)
            return expr.name
        if isinstance(expr, ArrayAccess):
            self.script.declare(expr.array, ARRAY_SORT)
            return f"(select {expr.array} {self.term(expr.index)})"
        if isinstance(expr, BinaryOp):
            if expr.op in COMPARISON_OPS:
                return f"(ite {self.formula(expr)} 1 0)"
            return self.arithmetic(expr)
        if isinstance(expr, UnaryOp):
            return f"(ite {self.formula(expr)} 1 0)"
        raise UnknownConstruct(expr, "encode")

    def arithmetic(self, expr):
        left = self.term(expr.left)
        right = self.term(expr.right)
        if expr.op in ("+", "-"):
            return f"({expr.op} {left} {right})"
        if expr.op == "*":
            if not isinstance(expr.left, Literal) and not isinstance(expr.right, Literal):
                self.script.nonlinear = True
            return f"(* {left} {right})"
        if expr.op in ("/", "%"):
            if not isinstance(expr.right, Literal):
                self.script.nonlinear = True
            # SMT-LIB div/mod are euclidean; rebuild truncating semantics
            quotient = f"(ite (>= {left} 0) (div {left} {right}) (- (div (- {left}) {right})))"
            if expr.op == "/":
                return quotient
            return f"(- {left} (* {right} {quotient}))"
        raise UnknownConstruct(expr, "encode")

    def formula(self, expr) -> str:
        if isinstance(expr, BinaryOp) and expr.op in COMPARISON_OPS:
            return f"({SMT_COMPARISON[expr.op]} {self.term(expr.left)} {self.term(expr.right)})"
        if isinstance(expr, UnaryOp):
            if expr.op != "!":
                raise UnknownConstruct(expr, "encode")
            return f"(not {self.formula(expr.operand)})"
        if isinstance(expr, Literal):
            return "true" if expr.value != 0 else "false"
        return f"(distinct {self.term(expr)} 0)"


def encode(instructions) -> ConstraintScript:
    """Verification script: satisfiable iff some assertion can fail."""
    encoder = SMTEncoder()
    encoder.define(instructions)
    if encoder.conditions:
        encoder.script.add(f"(not {conjunction(encoder.conditions)})")
    else:
        encoder.script.add("false")
    logger.debug("verification script: %d declarations, %d assertions",
                 len(encoder.script.declarations), len(encoder.script.assertions))
    return encoder.script


# ---------------------------------------------------------------------------
# Equivalence
# ---------------------------------------------------------------------------

@dataclass
class EquivalenceEncoding:
    script: ConstraintScript
    # (source name, symbol in program 1, symbol in renamed program 2)
    pairs: list = field(default_factory=list)
    shared_inputs: list = field(default_factory=list)


def output_symbols(instructions) -> dict:
    """Names written by at least one assignment, mapped to their last definition."""
    assigned = []
    last = {}
    for instr in instructions:
        symbol = defined_symbol(instr)
        if symbol is None:
            continue
        name, _ = split_ssa_name(symbol)
        last[name] = symbol
        if isinstance(instr, SAssign) and name not in assigned:
            assigned.append(name)
    return {name: last[name] for name in assigned}


def instruction_exprs(instr) -> list:
    if isinstance(instr, SAssign):
        return [instr.value]
    if isinstance(instr, SAssert):
        return [instr.cond, *instr.path]
    if isinstance(instr, SPhi):
        return [instr.guard] if instr.guard is not None else []
    raise UnknownConstruct(instr, "encode")


def array_symbols(instructions) -> set:
    """Symbols indexed anywhere in the stream, closed over phi copies."""
    arrays = set()
    phis = []
    for instr in instructions:
        if isinstance(instr, SPhi):
            phis.append((instr.result, *instr.operands))
        for expr in instruction_exprs(instr):
            for node in walk_expr(expr):
                if isinstance(node, ArrayAccess):
                    arrays.add(node.array)
    changed = True
    while changed:
        changed = False
        for names in phis:
            if arrays.intersection(names) and not arrays.issuperset(names):
                arrays.update(names)
                changed = True
    return arrays


def free_inputs(instructions) -> dict:
    """Version-0 symbols read anywhere in the stream, by source name."""
    reads = []
    for instr in instructions:
        exprs = instruction_exprs(instr)
        if isinstance(instr, SPhi):
            reads.extend(instr.operands)
        for expr in exprs:
            for node in walk_expr(expr):
                if isinstance(node, Variable):
                    reads.append(node.name)
                elif isinstance(node, ArrayAccess):
                    reads.append(node.array)
    inputs = {}
    for symbol in reads:
        name, version = split_ssa_name(symbol)
        if version == 0:
            inputs.setdefault(name, symbol)
    return inputs


def encode_equivalence(instructions1, instructions2, suffix=DEFAULT_SUFFIX) -> EquivalenceEncoding:
    outputs1 = output_symbols(instructions1)
    outputs2 = output_symbols(instructions2)
    if len(outputs1) != len(outputs2) or set(outputs1) != set(outputs2):
        raise StructuralMismatch(outputs1, outputs2)

    encoder = SMTEncoder()
    encoder.define(instructions1)
    encoder.define(rename_ssa(instructions2, suffix))
    script = encoder.script
    for cond in encoder.conditions:
        script.add(cond)

    shared = []
    inputs2 = free_inputs(instructions2)
    for name, symbol in free_inputs(instructions1).items():
        if name not in inputs2:
            continue
        other = inputs2[name] + suffix
        if script.declarations.get(symbol) == script.declarations.get(other):
            script.add(f"(= {symbol} {other})")
            shared.append(name)

    pairs = [(name, outputs1[name], outputs2[name] + suffix) for name in outputs1]
    if pairs:
        script.add(f"(not {conjunction([f'(= {a} {b})' for _, a, b in pairs])})")
    else:
        script.add("false")
    logger.debug("equivalence script: outputs %s, shared inputs %s",
                 [p[0] for p in pairs], shared)
    return EquivalenceEncoding(script, pairs, shared)
