"""
Runtime configuration loaded from .env and environment variables.
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

from dotenv import load_dotenv

from fairstart.constants import (
    DEFAULT_ATTEMPT_TIMEOUT,
    DEFAULT_BALANCE_THRESHOLD,
    DEFAULT_SEARCH_DEPTH,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MULTIPV,
    ENGINE_READY_TIMEOUT,
)

# Load environment variables
load_dotenv(Path(__file__).parent.parent / '.env')

# Option names accepted by Settings.from_options (camelCase as used by the web client)
OPTION_ALIASES = {
    "balanceThreshold": "balance_threshold",
    "searchDepth": "search_depth",
    "maxAttempts": "max_attempts",
    "multiPv": "multipv",
    "attemptTimeout": "attempt_timeout",
    "readyTimeout": "ready_timeout",
    "enginePath": "engine_path",
}


def _env_float(name: str, default: float | None) -> float | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{value}'")


def _env_int(name: str, default: int | None) -> int | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{value}'")


@dataclass(frozen=True)
class Settings:
    """Search and engine policy.

    balance_threshold and search_depth are tuning knobs, not invariants.
    """
    balance_threshold: float = DEFAULT_BALANCE_THRESHOLD
    search_depth: int = DEFAULT_SEARCH_DEPTH
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    multipv: int = DEFAULT_MULTIPV
    attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT  # seconds per evaluation
    ready_timeout: float = ENGINE_READY_TIMEOUT
    engine_path: str | None = None
    engine_options: dict = field(default_factory=dict)  # extra UCI setoption values
    log_level: str = "INFO"

    def __post_init__(self):
        if self.balance_threshold < 0:
            raise ValueError("balance_threshold must be >= 0")
        if self.search_depth < 1:
            raise ValueError("search_depth must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.multipv < 1:
            raise ValueError("multipv must be >= 1")
        if self.attempt_timeout is None or self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from FAIRSTART_* / STOCKFISH_PATH environment variables."""
        engine_options = {}
        threads = _env_int("FAIRSTART_ENGINE_THREADS", None)
        if threads is not None:
            engine_options["Threads"] = threads
        hash_mb = _env_int("FAIRSTART_ENGINE_HASH", None)
        if hash_mb is not None:
            engine_options["Hash"] = hash_mb

        return cls(
            balance_threshold=_env_float("FAIRSTART_BALANCE_THRESHOLD", DEFAULT_BALANCE_THRESHOLD),
            search_depth=_env_int("FAIRSTART_SEARCH_DEPTH", DEFAULT_SEARCH_DEPTH),
            max_attempts=_env_int("FAIRSTART_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
            multipv=_env_int("FAIRSTART_MULTIPV", DEFAULT_MULTIPV),
            attempt_timeout=_env_float("FAIRSTART_ATTEMPT_TIMEOUT", DEFAULT_ATTEMPT_TIMEOUT),
            ready_timeout=_env_float("FAIRSTART_READY_TIMEOUT", ENGINE_READY_TIMEOUT),
            engine_path=os.getenv("STOCKFISH_PATH") or None,
            engine_options=engine_options,
            log_level=os.getenv("FAIRSTART_LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_options(cls, options: dict, base: "Settings | None" = None) -> "Settings":
        """
        Build settings from a mapping of option names.

        Accepts camelCase names (balanceThreshold, searchDepth, ...) as well as
        the field names themselves. Unknown names raise ValueError.
        """
        base = base if base is not None else cls()
        valid = {f.name for f in fields(cls)}
        changes = {}
        for key, value in options.items():
            name = OPTION_ALIASES.get(key, key)
            if name not in valid:
                raise ValueError(f"Unknown option '{key}'")
            changes[name] = value
        return replace(base, **changes)

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
