"""
Engine analysis results.

While the engine searches, python-chess hands over one InfoDict per progress
report. Only the deepest report per principal-variation rank is kept;
reports without a depth or score are ignored.
"""

from dataclasses import dataclass, field

import chess.engine

from fairstart.constants import CENTIPAWNS_PER_PAWN, MATE_SCORE_BASE
from fairstart.errors import EngineTimeout

CONTINUATION_PLIES = 3


@dataclass(frozen=True)
class InfoReport:
    """One usable progress report."""
    depth: int
    multipv: int
    value: float  # pawns, side-to-move perspective
    cp: int | None = None
    mate: int | None = None
    pv: tuple[str, ...] = ()


@dataclass(frozen=True)
class PrincipalVariation:
    rank: int
    move: str | None
    value: float
    depth: int
    pv: tuple[str, ...] = ()

    @property
    def continuation(self) -> tuple[str, ...]:
        """The few plies following the candidate move."""
        return self.pv[1:1 + CONTINUATION_PLIES]


@dataclass(frozen=True)
class Evaluation:
    """Resolved result of one engine search."""
    value: float
    best_move: str | None
    depth: int
    lines: tuple[PrincipalVariation, ...] = field(default=())

    @property
    def is_mate(self) -> bool:
        return abs(self.value) >= MATE_SCORE_BASE

    def __str__(self):
        return format_evaluation(self.value)


def score_to_pawns(cp: int | None = None, mate: int | None = None) -> float:
    """
    Convert an engine score to pawns.

    A mate score overrides cp: mate in N for the side to move is 100 + N,
    getting mated in N is -100 - N. Mate 0 means the side to move is
    already checkmated.
    """
    if mate is not None:
        if mate > 0:
            return float(MATE_SCORE_BASE + mate)
        return float(-MATE_SCORE_BASE - abs(mate))
    if cp is None:
        raise ValueError("score needs cp or mate")
    return cp / CENTIPAWNS_PER_PAWN


def pawns_from_score(score: chess.engine.Score) -> float:
    return score_to_pawns(cp=score.score(), mate=score.mate())


def report_from_info(info: chess.engine.InfoDict) -> InfoReport | None:
    """Usable report from an InfoDict, or None when depth or score is missing."""
    depth = info.get("depth")
    score = info.get("score")
    if depth is None or score is None:
        return None
    multipv = info.get("multipv", 1)
    if multipv < 1:
        return None

    relative = score.relative
    return InfoReport(
        depth=depth,
        multipv=multipv,
        value=pawns_from_score(relative),
        cp=relative.score(),
        mate=relative.mate(),
        pv=tuple(move.uci() for move in info.get("pv", ())),
    )


class AnalysisAccumulator:
    """Keeps the deepest report seen for each PV rank during one search."""

    def __init__(self):
        self._lines: dict[int, InfoReport] = {}

    def feed(self, info: chess.engine.InfoDict) -> bool:
        """Record an InfoDict from the engine. Returns True if it was kept."""
        report = report_from_info(info)
        if report is None:
            return False
        return self.add(report)

    def add(self, report: InfoReport) -> bool:
        current = self._lines.get(report.multipv)
        if current is not None and report.depth < current.depth:
            return False
        self._lines[report.multipv] = report
        return True

    def line(self, rank: int = 1) -> InfoReport | None:
        return self._lines.get(rank)

    @property
    def has_result(self) -> bool:
        return 1 in self._lines

    def resolve(self, best_move: str | None) -> Evaluation:
        """Turn the accumulated lines into an Evaluation once the search has finished."""
        main = self._lines.get(1)
        if main is None:
            raise EngineTimeout("Search finished without a usable evaluation line")

        lines = tuple(
            PrincipalVariation(
                rank=rank,
                move=report.pv[0] if report.pv else None,
                value=report.value,
                depth=report.depth,
                pv=report.pv,
            )
            for rank, report in sorted(self._lines.items())
        )
        return Evaluation(
            value=main.value,
            best_move=best_move if best_move is not None else lines[0].move,
            depth=main.depth,
            lines=lines,
        )


def format_evaluation(value: float) -> str:
    """Display form: "+0.25", "-1.40", "Mate in 3", "Mated in 2" or "Checkmated"."""
    if value >= MATE_SCORE_BASE:
        return f"Mate in {round(value - MATE_SCORE_BASE)}"
    if value <= -MATE_SCORE_BASE:
        moves = round(-value - MATE_SCORE_BASE)
        return f"Mated in {moves}" if moves else "Checkmated"
    return f"{value:+.2f}"
