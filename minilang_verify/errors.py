class AnalysisError(Exception):
    """Root of every error raised by the analysis pipeline."""


class ParseError(AnalysisError, SyntaxError):
    """Malformed statement, header or block in the program text.

    ``str()`` renders as ``"<reason> (line N)"`` through ``SyntaxError``.
    """

    def __init__(self, line, reason):
        super().__init__(reason)
        self.line = line
        self.lineno = line
        self.reason = reason


class UnknownConstruct(AnalysisError):
    """A node the consumer has no rule for. Never raised for parser output."""

    def __init__(self, node, where):
        super().__init__(f"{where}: unknown construct {type(node).__name__}: {node!r}")
        self.node = node


class EvaluationError(AnalysisError):
    """Constant folding hit a division or remainder by zero."""


class EncodingError(AnalysisError):
    """SSA that cannot be expressed in the constraint script."""


class StructuralMismatch(AnalysisError):
    """The two programs of an equivalence check expose different outputs."""

    def __init__(self, outputs1, outputs2):
        super().__init__(
            f"output variables differ: {sorted(outputs1)} vs {sorted(outputs2)}"
        )
        self.outputs1 = tuple(outputs1)
        self.outputs2 = tuple(outputs2)


class SolverError(AnalysisError):
    """The decision procedure failed or answered with something unusable."""


class SolverContractError(SolverError):
    """The solver broke its contract, e.g. SAT without a model."""


class AnalysisInProgress(AnalysisError):
    """A session already has a solve request outstanding."""


class ConfigError(AnalysisError):
    """Invalid analysis configuration."""
