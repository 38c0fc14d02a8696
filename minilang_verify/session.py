"""One analysis at a time, off the caller's thread.

A front end owns an ``AnalysisSession``; while a request is pending every
further request is rejected with ``AnalysisInProgress``. ``cancel()`` only
reaches the solve step; parsing and SSA construction always finish.
"""

from __future__ import annotations

import asyncio
import enum
import logging

from . import pipeline
from .config import AnalysisConfig
from .errors import AnalysisInProgress
from .solver import CancellationToken

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = "idle"
    PENDING = "pending"


class AnalysisSession:
    def __init__(self, solver, config: AnalysisConfig = None):
        self.solver = solver
        self.config = config or AnalysisConfig()
        self.state = SessionState.IDLE
        self._token = None

    def _begin(self):
        if self.state is SessionState.PENDING:
            raise AnalysisInProgress("an analysis is already running")
        self.state = SessionState.PENDING
        self._token = CancellationToken()
        return self._token

    def _end(self):
        self.state = SessionState.IDLE
        self._token = None

    def cancel(self) -> bool:
        """Cancel the pending request; False when nothing is pending."""
        if self._token is None:
            return False
        logger.info("cancelling pending analysis")
        self._token.cancel()
        return True

    async def verify(self, text: str) -> pipeline.AnalysisReport:
        token = self._begin()
        try:
            return await asyncio.to_thread(
                pipeline.verify, text, self.solver, self.config, token)
        finally:
            self._end()

    async def check_equivalence(self, text1: str, text2: str) -> pipeline.AnalysisReport:
        token = self._begin()
        try:
            return await asyncio.to_thread(
                pipeline.check_equivalence, text1, text2, self.solver, self.config, token)
        finally:
            self._end()
