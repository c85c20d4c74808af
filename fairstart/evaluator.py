"""
Balance evaluation on top of a UCI engine session.
"""

import asyncio
from typing import Callable

import chess
from loguru import logger

from fairstart.analysis import Evaluation
from fairstart.config import Settings
from fairstart.engine import EngineSession, popen_engine
from fairstart.engine_manager import resolve_engine_command
from fairstart.errors import EngineUnavailable
from fairstart.positions import Position

SessionFactory = Callable[[], EngineSession]


def position_fen(position: Position | str) -> str:
    """FEN for a Position, or a validated FEN string. Raises ValueError for bad FEN."""
    if isinstance(position, Position):
        return position.fen()
    chess.Board(position)
    return position


class BalanceEvaluator:
    """
    Scores positions with the analysis engine and applies the balance threshold.

    The evaluator owns its engine session explicitly: start() creates it,
    stop() tears it down, restart() replaces a dead one. Lifecycle calls are
    serialized, so overlapping start() calls share one session. Pass
    session_factory to substitute a fake engine in tests.

    Example:
        async with BalanceEvaluator(settings=Settings.from_env()) as evaluator:
            evaluation = await evaluator.evaluate(fen)
    """

    def __init__(self, settings: Settings | None = None,
                 session_factory: SessionFactory | None = None) -> None:
        self.settings = settings or Settings()
        self._session_factory = session_factory or self._default_session
        self._session: EngineSession | None = None
        self._lifecycle = asyncio.Lock()

    def _default_session(self) -> EngineSession:
        command = resolve_engine_command(self.settings)
        return EngineSession(
            popen_engine(command),
            multipv=1,
            options=self.settings.engine_options,
            ready_timeout=self.settings.ready_timeout,
        )

    @property
    def is_running(self) -> bool:
        return self._session is not None and self._session.is_running

    async def start(self) -> None:
        async with self._lifecycle:
            await self._start()

    async def stop(self) -> None:
        async with self._lifecycle:
            await self._stop()

    async def restart(self) -> None:
        """Replace the session if it has died; a live session is left alone."""
        async with self._lifecycle:
            if self.is_running:
                return
            logger.info("Restarting analysis engine")
            await self._stop()
            await self._start()

    async def _start(self) -> None:
        if self.is_running:
            return
        if self._session is not None:
            await self._session.stop()
        self._session = self._session_factory()
        await self._session.start()
        logger.info("Analysis engine started")

    async def _stop(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.stop()

    async def __aenter__(self) -> "BalanceEvaluator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def _require_session(self) -> EngineSession:
        if self._session is None:
            raise EngineUnavailable("Analysis engine not started")
        return self._session

    async def evaluate(self, position: Position | str, *, timeout: float | None = None) -> Evaluation:
        """
        Evaluate a position at the configured search depth (side-to-move perspective).

        Every call runs a fresh search; nothing is cached. Without an explicit
        timeout the configured attempt_timeout applies.
        """
        fen = position_fen(position)
        session = self._require_session()
        return await session.search(
            fen,
            depth=self.settings.search_depth,
            multipv=1,
            timeout=timeout if timeout is not None else self.settings.attempt_timeout,
        )

    async def analyse(self, position: Position | str, *, multipv: int | None = None,
                      timeout: float | None = None) -> Evaluation:
        """Evaluate with the top candidate lines filled in (for a live evaluation display)."""
        fen = position_fen(position)
        session = self._require_session()
        return await session.search(
            fen,
            depth=self.settings.search_depth,
            multipv=multipv or self.settings.multipv,
            timeout=timeout if timeout is not None else self.settings.attempt_timeout,
        )

    def classify(self, evaluation: Evaluation | float) -> bool:
        """True when the evaluation is within the balance threshold (inclusive)."""
        value = evaluation.value if isinstance(evaluation, Evaluation) else evaluation
        return abs(value) <= self.settings.balance_threshold

    async def is_balanced(self, position: Position | str, *, timeout: float | None = None) -> bool:
        return self.classify(await self.evaluate(position, timeout=timeout))
