"""
Error types raised by the position search and engine layers.
"""


class FairstartError(Exception):
    """Base class for all fairstart errors."""
    pass


class EngineUnavailable(FairstartError):
    """The analysis engine failed to start or the session has died."""
    pass


class EngineTimeout(FairstartError):
    """A search produced no terminal signal (or no usable line) in time."""
    pass


class SearchExhausted(FairstartError):
    """The attempt budget was used up without finding a balanced position.

    This is an expected outcome; callers typically offer a manual retry.
    """

    def __init__(self, attempts):
        self.attempts = list(attempts)
        super().__init__(
            f"No balanced position found after {len(self.attempts)} attempts"
        )


class InvariantViolation(FairstartError, AssertionError):
    """A generated position broke symmetry, cardinality or bishop colours.

    Defect class: never caught by the search loop.
    """
    pass
