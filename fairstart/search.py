"""
Balanced start search: generate, evaluate, accept or retry within a fixed budget.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from fairstart.analysis import Evaluation, format_evaluation
from fairstart.constants import DEFAULT_MAX_ATTEMPTS
from fairstart.errors import EngineTimeout, EngineUnavailable, SearchExhausted
from fairstart.positions import Position, generate_symmetric_position

Generator = Callable[[Optional[random.Random]], Position]


class SearchState(Enum):
    IDLE = "idle"
    GENERATING = "generating"
    EVALUATING = "evaluating"
    ACCEPTED = "accepted"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"


class AttemptOutcome(Enum):
    BALANCED = "balanced"
    UNBALANCED = "unbalanced"
    ENGINE_TIMEOUT = "engine_timeout"
    ENGINE_UNAVAILABLE = "engine_unavailable"


@dataclass(frozen=True)
class SearchAttempt:
    """One generate + evaluate cycle."""
    index: int  # 1-based
    fen: str
    outcome: AttemptOutcome
    evaluation: Evaluation | None = None
    error: str | None = None


@dataclass(frozen=True)
class SearchResult:
    """An accepted starting position."""
    position: Position
    evaluation: Evaluation
    attempts: tuple[SearchAttempt, ...]

    @property
    def fen(self) -> str:
        return self.position.fen()


class PositionSearch:
    """
    Drives the generator and evaluator until a balanced start is found.

    Attempts run strictly one after another because each evaluation holds the
    single engine session. An engine failure costs one attempt just like an
    unbalanced verdict; after EngineUnavailable the evaluator is restarted
    once, and if that restart fails the error propagates to the caller.
    """

    def __init__(self, evaluator, *,
                 generator: Generator = generate_symmetric_position,
                 rng: random.Random | None = None,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 attempt_timeout: float | None = None,
                 on_attempt: Callable[[SearchAttempt], None] | None = None) -> None:
        self._evaluator = evaluator
        self._generator = generator
        self._rng = rng
        self.max_attempts = max_attempts
        self.attempt_timeout = attempt_timeout
        self._on_attempt = on_attempt
        self._state = SearchState.IDLE

    @property
    def state(self) -> SearchState:
        return self._state

    async def find_balanced_position(self, max_attempts: int | None = None) -> SearchResult:
        """
        Search for a balanced start.

        Raises:
            SearchExhausted: the budget ran out (carries every attempt).
            EngineUnavailable: the engine died and could not be restarted.
        """
        budget = max_attempts if max_attempts is not None else self.max_attempts
        if budget < 1:
            raise ValueError("max_attempts must be at least 1")

        attempts: list[SearchAttempt] = []
        self._state = SearchState.IDLE

        for index in range(1, budget + 1):
            self._state = SearchState.GENERATING
            position = self._generator(self._rng)
            fen = position.fen()

            self._state = SearchState.EVALUATING
            restart_needed = False
            try:
                evaluation = await self._evaluator.evaluate(position, timeout=self.attempt_timeout)
            except EngineTimeout as e:
                attempt = SearchAttempt(index, fen, AttemptOutcome.ENGINE_TIMEOUT, error=str(e))
                logger.warning(f"Attempt {index}/{budget}: engine timeout ({e})")
            except EngineUnavailable as e:
                attempt = SearchAttempt(index, fen, AttemptOutcome.ENGINE_UNAVAILABLE, error=str(e))
                logger.warning(f"Attempt {index}/{budget}: engine unavailable ({e})")
                restart_needed = True
            else:
                if self._evaluator.classify(evaluation):
                    attempt = SearchAttempt(index, fen, AttemptOutcome.BALANCED, evaluation=evaluation)
                    attempts.append(attempt)
                    self._notify(attempt)
                    self._state = SearchState.ACCEPTED
                    logger.info(f"Attempt {index}/{budget}: accepted {fen} ({format_evaluation(evaluation.value)})")
                    return SearchResult(position, evaluation, tuple(attempts))
                attempt = SearchAttempt(index, fen, AttemptOutcome.UNBALANCED, evaluation=evaluation)
                logger.info(f"Attempt {index}/{budget}: rejected {fen} ({format_evaluation(evaluation.value)})")

            attempts.append(attempt)
            self._notify(attempt)

            if index == budget:
                break
            self._state = SearchState.RETRYING
            if restart_needed:
                await self._evaluator.restart()

        self._state = SearchState.EXHAUSTED
        logger.warning(f"No balanced position after {budget} attempts")
        raise SearchExhausted(attempts)

    def _notify(self, attempt: SearchAttempt) -> None:
        if self._on_attempt is not None:
            self._on_attempt(attempt)
