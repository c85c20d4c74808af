"""
Constants for balanced start generation and engine evaluation.
"""

# Balance policy - positions with |eval| <= threshold (in pawns) are accepted
DEFAULT_BALANCE_THRESHOLD = 0.3
DEFAULT_SEARCH_DEPTH = 20  # plies
DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_MULTIPV = 3  # top lines for ad hoc analysis

# Mate scores are reported as MATE_SCORE_BASE + N (or -MATE_SCORE_BASE - N)
MATE_SCORE_BASE = 100
CENTIPAWNS_PER_PAWN = 100

# Engine session timing (seconds)
ENGINE_READY_TIMEOUT = 30.0
ENGINE_STOP_GRACE = 5.0
ENGINE_QUIT_TIMEOUT = 3.0
DEFAULT_ATTEMPT_TIMEOUT = 60.0  # per evaluation

# Bound on reshuffles when chasing the bishop-colour constraint.
# Roughly 4/7 of shuffles pass, so hitting this means something is broken.
MAX_SHUFFLES = 1000
