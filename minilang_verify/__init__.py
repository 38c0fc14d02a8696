"""Assertion and equivalence checking for MiniLang programs via SSA and SMT."""

__version__ = "0.1.0"

from .config import AnalysisConfig, load_config
from .errors import (
    AnalysisError, AnalysisInProgress, ConfigError, EncodingError, EvaluationError,
    ParseError, SolverContractError, SolverError, StructuralMismatch, UnknownConstruct,
)
from .parser import parse, parse_expression
from .pipeline import AnalysisReport, Outcome, ProgramAnalysis, analyze_program, check_equivalence, verify
from .session import AnalysisSession, SessionState
from .solver import CancellationToken, Solver, SolverResult, Verdict, Z3Solver
