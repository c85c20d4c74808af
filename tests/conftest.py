"""Shared fixtures: a scripted in-memory UCI engine."""

import asyncio

import chess
import chess.engine
import pytest

from fairstart.engine import EngineSession

STANDARD_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w - - 0 1"


def info(depth, cp=None, mate=None, pv="", multipv=1, **extra):
    """Build an InfoDict the way python-chess reports engine progress."""
    report = {"depth": depth, "multipv": multipv, **extra}
    if mate is not None:
        report["score"] = chess.engine.PovScore(chess.engine.Mate(mate), chess.WHITE)
    elif cp is not None:
        report["score"] = chess.engine.PovScore(chess.engine.Cp(cp), chess.WHITE)
    if pv:
        report["pv"] = [chess.Move.from_uci(move) for move in pv.split()]
    return report


def default_search_lines(fen, depth, multipv):
    """A plausible search: a few increasing depths, one line per PV rank."""
    lines = []
    for d in range(1, depth + 1, max(1, depth // 4)):
        for rank in range(1, multipv + 1):
            lines.append(info(d, cp=10 * rank, pv="e2e4 e7e5 g1f3 b8c6 f1b5", multipv=rank,
                              seldepth=d + 2, nodes=d * 1000))
    lines.append(info(depth, cp=12, pv="d2d4 d7d5 c2c4 e7e6", seldepth=depth + 4, nodes=99999))
    for rank in range(2, multipv + 1):
        lines.append(info(depth, cp=-10 * rank, pv="g1f3 g8f6 c2c4 c7c5", multipv=rank))
    return lines


class FakeUciEngine:
    """
    In-memory stand-in for python-chess's UCI protocol and its transport.

    search_lines(fen, depth, multipv) supplies the InfoDicts for a search;
    set hang=True to withhold the best move until the search is stopped, and
    answer_stop=False to ignore stop entirely. Everything the session asks
    for is recorded in .sent as (command, *args) tuples.
    """

    def __init__(self, search_lines=default_search_lines, *, handshake=True,
                 hang=False, answer_stop=True, ready_delay=0.0, quit_hangs=False):
        self.search_lines = search_lines
        self.handshake = handshake
        self.hang = hang
        self.answer_stop = answer_stop
        self.ready_delay = ready_delay
        self.quit_hangs = quit_hangs
        self.sent = []
        self.closed = False
        self.spawn_count = 0
        self.overlapped = False
        self.returncode = None
        self._analysis = None

    async def spawn(self):
        """Engine factory: (transport, protocol) once the handshake is done."""
        self.spawn_count += 1
        self.closed = False
        self.sent = []
        self._analysis = None
        self.returncode = asyncio.get_running_loop().create_future()
        if not self.handshake:
            await asyncio.Event().wait()
        return self, self

    async def configure(self, options):
        self.sent.append(("configure", dict(options)))

    async def ping(self):
        self.sent.append(("ping",))
        if self.ready_delay:
            await asyncio.sleep(self.ready_delay)

    async def analysis(self, board, limit=None, *, multipv=None):
        if self.closed:
            raise chess.engine.EngineTerminatedError("engine process dead")
        if self._analysis is not None:
            self.overlapped = True
        fen = board.fen()
        multipv = multipv or 1
        self.sent.append(("analysis", fen, limit.depth, multipv))

        result = chess.engine.AnalysisResult(stop=self._on_stop)
        self._analysis = result
        for report in self.search_lines(fen, limit.depth, multipv):
            result.post(report)
        if not self.hang:
            self._finish("d2d4", "d7d5")
        return result

    def release(self):
        """Finish a hung search as if the engine reached its depth."""
        self._finish("d2d4", "d7d5")

    def _on_stop(self):
        self.sent.append(("stop",))
        if self.answer_stop:
            self._finish("e2e4")

    def _finish(self, move, ponder=None):
        result, self._analysis = self._analysis, None
        if result is not None:
            result.set_finished(chess.engine.BestMove(
                chess.Move.from_uci(move),
                chess.Move.from_uci(ponder) if ponder else None,
            ))

    def die(self):
        """Simulate the process exiting."""
        self.closed = True
        result, self._analysis = self._analysis, None
        if result is not None:
            result.set_exception(chess.engine.EngineTerminatedError("engine process died unexpectedly"))
        if self.returncode is not None and not self.returncode.done():
            self.returncode.set_result(0)

    async def quit(self):
        self.sent.append(("quit",))
        if self.quit_hangs:
            await asyncio.Event().wait()
        self.die()

    def close(self):
        """Transport close: kills the process."""
        if not self.closed:
            self.die()

    def commands(self, name):
        return [entry for entry in self.sent if entry[0] == name]


@pytest.fixture
def fake_engine():
    return FakeUciEngine()


@pytest.fixture
def make_session():
    """Build an EngineSession around a FakeUciEngine."""
    def _make(engine=None, **kwargs):
        engine = engine or FakeUciEngine()
        kwargs.setdefault("ready_timeout", 1.0)
        kwargs.setdefault("stop_grace", 1.0)
        return EngineSession(engine.spawn, **kwargs), engine
    return _make
