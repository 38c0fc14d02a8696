"""Decision procedure boundary.

``Solver.solve(script)`` answers SAT/UNSAT/UNKNOWN and, for SAT, a model
mapping declared integer constants to values. ``Z3Solver`` is the bundled
implementation; tests substitute deterministic fakes.
"""

from __future__ import annotations

import enum
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import z3

from .errors import SolverError

logger = logging.getLogger(__name__)


class Verdict(enum.Enum):
    SAT = "sat"
    UNSAT = "unsat"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SolverResult:
    verdict: Verdict
    model: Optional[dict] = None
    # further distinct models, when more than one was requested
    models: tuple = ()
    reason: str = ""


class CancellationToken:
    """Cooperative cancellation for a single solve request."""

    def __init__(self):
        self._event = threading.Event()
        self._callbacks = []
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    def add_callback(self, callback):
        """Run ``callback`` on cancellation, immediately if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


class Solver(ABC):
    @abstractmethod
    def solve(self, script, cancel_token: Optional[CancellationToken] = None) -> SolverResult:
        ...


class Z3Solver(Solver):
    def __init__(self, timeout_ms: int = 10000, max_models: int = 1):
        self.timeout_ms = timeout_ms
        self.max_models = max_models

    def solve(self, script, cancel_token=None):
        if cancel_token is not None and cancel_token.cancelled:
            return SolverResult(Verdict.UNKNOWN, reason="cancelled")

        ctx = z3.Context()
        solver = z3.Solver(ctx=ctx)
        solver.set("timeout", self.timeout_ms)
        if cancel_token is not None:
            cancel_token.add_callback(ctx.interrupt)
        try:
            solver.from_string(script.to_smtlib(commands=False))
            result = solver.check()
            if result == z3.unsat:
                return SolverResult(Verdict.UNSAT)
            if result != z3.sat:
                reason = solver.reason_unknown()
                if cancel_token is not None and cancel_token.cancelled:
                    reason = "cancelled"
                logger.warning("z3 returned unknown: %s", reason)
                return SolverResult(Verdict.UNKNOWN, reason=reason)
            models = self._collect_models(solver, script, ctx)
        except z3.Z3Exception as e:
            raise SolverError(f"z3 failed: {e}") from e
        finally:
            if cancel_token is not None:
                cancel_token.remove_callback(ctx.interrupt)
        return SolverResult(Verdict.SAT, model=models[0], models=tuple(models))

    def _collect_models(self, solver, script, ctx):
        # every declared integer gets a value, eliminated or not;
        # each model is then blocked to get a distinct next one
        consts = [z3.Int(name, ctx) for name, sort in script.declarations.items() if sort == "Int"]
        models = []
        while True:
            m = solver.model()
            values = {}
            block = []
            for const in consts:
                value = m.eval(const, model_completion=True)
                values[str(const)] = value.as_long()
                block.append(const != value)
            models.append(dict(sorted(values.items())))
            if len(models) >= self.max_models or not block:
                return models
            solver.add(z3.Or(*block))
            if solver.check() != z3.sat:
                return models
