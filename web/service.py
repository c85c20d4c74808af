"""
Synchronous facade over the async evaluator for the Flask app.

The evaluator and its engine session live on one event loop running in a
background thread; request handlers submit coroutines to it and block on
the result for at most the worst case the settings allow.
"""

import asyncio
import concurrent.futures
import threading

from loguru import logger

from fairstart.analysis import Evaluation
from fairstart.config import Settings
from fairstart.constants import ENGINE_STOP_GRACE
from fairstart.errors import EngineTimeout, FairstartError
from fairstart.evaluator import BalanceEvaluator
from fairstart.search import PositionSearch, SearchResult


class EvaluatorService:
    """Owns the background event loop and the single evaluator shared by all requests."""

    def __init__(self, settings: Settings | None = None, evaluator: BalanceEvaluator | None = None):
        self.settings = settings or Settings.from_env()
        self.evaluator = evaluator or BalanceEvaluator(self.settings)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._loop.run_forever, name="fairstart-engine", daemon=True
                )
                self._thread.start()
        return self._loop

    def request_bound(self, evaluations: int = 1) -> float:
        """Longest a request may block: each evaluation may need a restart, a search and a stop."""
        per_evaluation = self.settings.ready_timeout + self.settings.attempt_timeout + ENGINE_STOP_GRACE
        return per_evaluation * evaluations

    def run(self, coro, timeout: float | None = None):
        """
        Run a coroutine on the engine loop and wait for its result.

        Raises:
            EngineTimeout: no result within timeout; the coroutine is cancelled.
        """
        future = asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            logger.warning(f"Request cancelled after {timeout}s")
            raise EngineTimeout(f"No result within {timeout}s") from None

    @property
    def engine_running(self) -> bool:
        return self.evaluator.is_running

    async def _find(self, max_attempts: int | None) -> SearchResult:
        await self.evaluator.start()
        search = PositionSearch(
            self.evaluator,
            max_attempts=self.settings.max_attempts,
            attempt_timeout=self.settings.attempt_timeout,
        )
        return await search.find_balanced_position(max_attempts)

    async def _analyse(self, fen: str, multipv: int | None) -> Evaluation:
        await self.evaluator.start()
        if multipv is not None and multipv > 1:
            return await self.evaluator.analyse(fen, multipv=multipv)
        return await self.evaluator.evaluate(fen)

    def find_balanced_position(self, max_attempts: int | None = None) -> SearchResult:
        budget = max_attempts if max_attempts is not None else self.settings.max_attempts
        return self.run(self._find(max_attempts), timeout=self.request_bound(budget))

    def evaluate(self, fen: str, multipv: int | None = None) -> Evaluation:
        return self.run(self._analyse(fen, multipv), timeout=self.request_bound())

    def close(self) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return
        try:
            asyncio.run_coroutine_threadsafe(self.evaluator.stop(), loop).result(10)
        except FairstartError as e:
            logger.warning(f"Error stopping evaluator: {e}")
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=10)
        loop.close()
