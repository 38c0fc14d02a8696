from __future__ import annotations

import threading
from pathlib import Path

import pytest

from minilang_verify.solver import Solver, SolverResult, Verdict


class FakeSolver(Solver):
    """Answers every request with a fixed result and records the scripts."""

    def __init__(self, result=None):
        self.result = result or SolverResult(Verdict.UNSAT)
        self.scripts = []

    def solve(self, script, cancel_token=None):
        self.scripts.append(script)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class BlockingSolver(Solver):
    """Blocks until released or cancelled, then answers."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()

    def solve(self, script, cancel_token=None):
        self.started.set()
        while not self.release.wait(0.01):
            if cancel_token is not None and cancel_token.cancelled:
                return SolverResult(Verdict.UNKNOWN, reason="cancelled")
        return SolverResult(Verdict.UNSAT)


@pytest.fixture
def fake_solver():
    return FakeSolver()


@pytest.fixture
def solver_answering():
    """Factory for a FakeSolver with a given result or exception."""
    return FakeSolver


@pytest.fixture
def blocking_solver():
    solver = BlockingSolver()
    yield solver
    solver.release.set()


@pytest.fixture(scope="session")
def programs_dir() -> Path:
    return Path(__file__).resolve().parent / "programs"


@pytest.fixture
def branch_program() -> str:
    return """x := 3;
if (x < 5) {
  y := x + 1;
} else {
  y := x - 1;
}
assert(y > 0);
"""
