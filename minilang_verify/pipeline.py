"""End-to-end analysis: parse, SSA, optimize, CFG, encode, solve.

Everything before the solver call is pure computation on one program and
always runs to completion; only the solve step honours cancellation.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from .ast_nodes import Program
from .cfg_builder import ControlFlowGraph, build_cfg
from .config import AnalysisConfig
from .errors import SolverContractError, SolverError, StructuralMismatch
from .optimizer import optimize
from .parser import parse
from .smt_encoder import ConstraintScript, encode, encode_equivalence
from .solver import Verdict
from .ssa import SSAResult, to_ssa
from .unroll import unroll_loops

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    VERIFIED = "verified"
    VIOLATED = "violated"
    EQUIVALENT = "equivalent"
    NOT_EQUIVALENT = "not equivalent"
    INCONCLUSIVE = "inconclusive"


@dataclass
class ProgramAnalysis:
    source: str
    ast: Program
    ssa: SSAResult
    optimized: Optional[list]
    cfg: ControlFlowGraph
    # the instruction stream handed to the encoder
    encoded: list = field(default_factory=list)


@dataclass
class AnalysisReport:
    mode: str
    outcome: Outcome
    script: Optional[ConstraintScript] = None
    counterexamples: list = field(default_factory=list)
    message: str = ""
    analyses: tuple = ()

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.VERIFIED, Outcome.EQUIVALENT)


def analyze_program(text: str, config: Optional[AnalysisConfig] = None) -> ProgramAnalysis:
    config = config or AnalysisConfig()
    ast = parse(text)
    lowered = ast
    if config.unroll_depth is not None:
        lowered = unroll_loops(ast, config.unroll_depth)
    ssa = to_ssa(lowered)
    optimized = optimize(ssa.instructions) if config.optimize else None
    cfg = build_cfg(ast)
    encoded = optimized if config.encode_optimized else ssa.instructions
    return ProgramAnalysis(text, ast, ssa, optimized, cfg, encoded)


def _solve(solver, script, cancel_token):
    try:
        result = solver.solve(script, cancel_token)
    except SolverContractError:
        raise
    except SolverError as e:
        logger.error("solver failed: %s", e)
        return None, str(e)
    if result.verdict is Verdict.SAT and result.model is None:
        raise SolverContractError("solver answered sat without a model")
    return result, result.reason


def _models(result):
    return list(result.models) if result.models else [result.model]


def verify(text, solver, config=None, cancel_token=None) -> AnalysisReport:
    """Check that every assertion of the program holds for all inputs."""
    config = config or AnalysisConfig()
    analysis = analyze_program(text, config)
    script = encode(analysis.encoded)
    result, reason = _solve(solver, script, cancel_token)

    if result is None or result.verdict is Verdict.UNKNOWN:
        return AnalysisReport("verification", Outcome.INCONCLUSIVE, script,
                              message=f"solver gave no answer: {reason}",
                              analyses=(analysis,))
    if result.verdict is Verdict.UNSAT:
        return AnalysisReport("verification", Outcome.VERIFIED, script,
                              message="All assertions verified",
                              analyses=(analysis,))
    return AnalysisReport("verification", Outcome.VIOLATED, script,
                          counterexamples=_models(result),
                          message="Verification failed: an assertion can be violated",
                          analyses=(analysis,))


def check_equivalence(text1, text2, solver, config=None, cancel_token=None) -> AnalysisReport:
    """Check that both programs leave the same values in their outputs."""
    config = config or AnalysisConfig()
    first = analyze_program(text1, config)
    second = analyze_program(text2, config)
    analyses = (first, second)

    try:
        encoding = encode_equivalence(first.encoded, second.encoded, config.rename_suffix)
    except StructuralMismatch as e:
        logger.info("equivalence short-circuited: %s", e)
        return AnalysisReport("equivalence", Outcome.NOT_EQUIVALENT,
                              message=f"Programs are not equivalent: {e}",
                              analyses=analyses)

    result, reason = _solve(solver, encoding.script, cancel_token)
    if result is None or result.verdict is Verdict.UNKNOWN:
        return AnalysisReport("equivalence", Outcome.INCONCLUSIVE, encoding.script,
                              message=f"solver gave no answer: {reason}",
                              analyses=analyses)
    if result.verdict is Verdict.UNSAT:
        names = ", ".join(name for name, _, _ in encoding.pairs) or "none"
        return AnalysisReport("equivalence", Outcome.EQUIVALENT, encoding.script,
                              message=f"Programs are equivalent (outputs: {names})",
                              analyses=analyses)
    return AnalysisReport("equivalence", Outcome.NOT_EQUIVALENT, encoding.script,
                          counterexamples=_models(result),
                          message="Programs are not equivalent",
                          analyses=analyses)
