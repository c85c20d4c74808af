"""
Balanced randomized chess starts.

Usage:
    python -m fairstart --help
    python -m fairstart --attempts 10 --threshold 0.3
    python -m fairstart --evaluate "<fen>"
"""

from fairstart.constants import (
    DEFAULT_BALANCE_THRESHOLD,
    DEFAULT_SEARCH_DEPTH,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MULTIPV,
)
from fairstart.errors import (
    FairstartError,
    EngineUnavailable,
    EngineTimeout,
    SearchExhausted,
    InvariantViolation,
)

__all__ = [
    # Constants
    'DEFAULT_BALANCE_THRESHOLD',
    'DEFAULT_SEARCH_DEPTH',
    'DEFAULT_MAX_ATTEMPTS',
    'DEFAULT_MULTIPV',
    # Errors
    'FairstartError',
    'EngineUnavailable',
    'EngineTimeout',
    'SearchExhausted',
    'InvariantViolation',
    # Search API (import from fairstart.search / fairstart.evaluator when needed)
    # - PositionSearch, BalanceEvaluator, generate_symmetric_position
]
