"""
Long-lived UCI engine session.

One session owns one engine process, driven through python-chess's asyncio
engine API. The engine can only run one search at a time, so searches are
queued and a single actor task runs them in order. A caller that gives up
(timeout or cancellation) leaves its search behind; the actor stops it and
waits for the engine to settle before sending the next one.

Example:
    session = EngineSession(popen_engine(["stockfish"]))
    await session.start()
    evaluation = await session.search(fen, depth=20)
    await session.stop()
"""

import asyncio
import functools
import subprocess
from dataclasses import dataclass
from typing import Awaitable, Callable

import chess
import chess.engine
from loguru import logger

from fairstart.analysis import AnalysisAccumulator, Evaluation
from fairstart.constants import ENGINE_QUIT_TIMEOUT, ENGINE_READY_TIMEOUT, ENGINE_STOP_GRACE
from fairstart.errors import EngineTimeout, EngineUnavailable

# Same shape as chess.engine.popen_uci: (transport, protocol) once "uciok" arrives
EngineFactory = Callable[[], Awaitable[tuple[asyncio.SubprocessTransport, chess.engine.UciProtocol]]]


def popen_engine(command: list[str] | str) -> EngineFactory:
    """Factory that launches a UCI engine binary."""
    return functools.partial(chess.engine.popen_uci, command, stderr=subprocess.DEVNULL)


@dataclass
class _SearchRequest:
    fen: str
    depth: int
    multipv: int
    future: asyncio.Future


class EngineSession:
    """Owns one engine connection and serializes searches against it."""

    def __init__(
        self,
        engine_factory: EngineFactory,
        *,
        multipv: int = 1,
        options: dict | None = None,
        ready_timeout: float = ENGINE_READY_TIMEOUT,
        stop_grace: float = ENGINE_STOP_GRACE,
        quit_timeout: float = ENGINE_QUIT_TIMEOUT,
    ) -> None:
        self._engine_factory = engine_factory
        self._default_multipv = multipv
        self._options = options or {}
        self._ready_timeout = ready_timeout
        self._stop_grace = stop_grace
        self._quit_timeout = quit_timeout

        self._transport: asyncio.SubprocessTransport | None = None
        self._protocol: chess.engine.UciProtocol | None = None
        self._actor_task: asyncio.Task | None = None
        self._watch_task: asyncio.Task | None = None
        self._requests: asyncio.Queue | None = None
        self._ready: asyncio.Event | None = None
        self._dead = False

    @property
    def is_running(self) -> bool:
        return (
            self._protocol is not None
            and not self._dead
            and self._ready is not None
            and self._ready.is_set()
        )

    @property
    def is_starting(self) -> bool:
        return self._ready is not None and not self._ready.is_set()

    async def start(self) -> None:
        """Launch the engine, apply options and wait until it answers isready."""
        if self.is_starting:
            await self._ready.wait()
        if self.is_running:
            return
        if self._protocol is not None:
            await self.stop()

        self._dead = False
        self._ready = asyncio.Event()
        self._requests = asyncio.Queue()
        try:
            self._transport, self._protocol = await asyncio.wait_for(
                self._engine_factory(), self._ready_timeout
            )
            if self._options:
                await asyncio.wait_for(self._protocol.configure(self._options), self._ready_timeout)
            await asyncio.wait_for(self._protocol.ping(), self._ready_timeout)
        except (OSError, asyncio.TimeoutError, chess.engine.EngineError) as e:
            reason = str(e) or type(e).__name__
            await self._teardown(f"start failed: {reason}")
            raise EngineUnavailable(f"Could not start engine: {reason}") from e

        self._watch_task = asyncio.create_task(self._watch(self._protocol))
        self._actor_task = asyncio.create_task(self._run())
        self._ready.set()
        logger.debug("UCI engine ready")

    async def search(self, fen: str, depth: int, multipv: int | None = None,
                     timeout: float | None = None) -> Evaluation:
        """
        Search a position to a fixed depth and return the resolved evaluation.

        Waits for readiness if start() is still in progress. If the caller
        gives up (timeout or cancellation), the engine is told to stop before
        the next queued search is sent.

        Raises:
            EngineUnavailable: session not started, or died.
            EngineTimeout: no result within timeout, or no usable info report.
        """
        if self.is_starting:
            await self._ready.wait()
        if not self.is_running:
            raise EngineUnavailable("Engine session is not running")

        request = _SearchRequest(
            fen=fen,
            depth=depth,
            multipv=multipv if multipv is not None else self._default_multipv,
            future=asyncio.get_running_loop().create_future(),
        )
        await self._requests.put(request)
        try:
            return await asyncio.wait_for(request.future, timeout)
        except asyncio.TimeoutError:
            raise EngineTimeout(f"No result within {timeout}s for {fen}") from None

    async def stop(self) -> None:
        """Quit the engine and release the process. Safe to call repeatedly."""
        if self._protocol is None and self._transport is None:
            return
        await self._teardown("session stopped")
        logger.debug("UCI engine stopped")

    async def __aenter__(self) -> "EngineSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # -- internals ---------------------------------------------------------

    async def _teardown(self, reason: str) -> None:
        self._mark_dead(reason)
        tasks = [t for t in (self._actor_task, self._watch_task)
                 if t is not None and t is not asyncio.current_task()]
        transport, protocol = self._transport, self._protocol
        self._actor_task = None
        self._watch_task = None
        self._transport = None
        self._protocol = None
        for task in tasks:
            task.cancel()
        try:
            if tasks:
                # asyncio.wait never raises the tasks' CancelledError, only our own
                await asyncio.wait(tasks)
            if protocol is not None and not protocol.returncode.done():
                try:
                    await asyncio.wait_for(protocol.quit(), self._quit_timeout)
                except (asyncio.TimeoutError, chess.engine.EngineError) as e:
                    logger.warning(f"Engine did not quit cleanly ({type(e).__name__}), killing it")
        finally:
            if transport is not None:
                transport.close()

    def _mark_dead(self, reason: str) -> None:
        if self._dead:
            return
        self._dead = True
        logger.debug(f"Engine session closed: {reason}")
        error = EngineUnavailable(f"Engine unavailable: {reason}")
        if self._requests is not None:
            while not self._requests.empty():
                request = self._requests.get_nowait()
                if not request.future.done():
                    request.future.set_exception(error)
        if self._ready is not None and not self._ready.is_set():
            # Wake anyone blocked in search() on readiness; they re-check is_running.
            self._ready.set()

    async def _watch(self, protocol: chess.engine.UciProtocol) -> None:
        code = await protocol.returncode
        self._mark_dead(f"engine process exited with code {code}")

    async def _run(self) -> None:
        while not self._dead:
            request = await self._requests.get()
            if request.future.done():
                continue  # caller gave up before we got to it
            try:
                await self._execute(request)
            finally:
                if not request.future.done():
                    request.future.set_exception(EngineUnavailable("Engine session stopped mid-search"))

    async def _execute(self, request: _SearchRequest) -> None:
        accumulator = AnalysisAccumulator()
        try:
            analysis = await self._protocol.analysis(
                chess.Board(request.fen),
                chess.engine.Limit(depth=request.depth),
                multipv=request.multipv,
            )
        except chess.engine.EngineError as e:
            self._fail(request, e)
            return

        consumer = asyncio.ensure_future(self._consume(analysis, accumulator))
        try:
            await asyncio.wait({consumer, request.future}, return_when=asyncio.FIRST_COMPLETED)
            if not consumer.done():
                await self._abandon(analysis, consumer)
                return
            try:
                result = accumulator.resolve(consumer.result())
            except chess.engine.EngineError as e:
                self._fail(request, e)
            except EngineTimeout as e:
                if not request.future.done():
                    request.future.set_exception(e)
            else:
                if not request.future.done():
                    request.future.set_result(result)
        finally:
            if not consumer.done():
                consumer.cancel()

    @staticmethod
    async def _consume(analysis: chess.engine.AnalysisResult, accumulator: AnalysisAccumulator) -> str | None:
        async for info in analysis:
            logger.trace(f"UCI info: {info}")
            accumulator.feed(info)
        best = await analysis.wait()
        return best.move.uci() if best.move else None

    def _fail(self, request: _SearchRequest, error: chess.engine.EngineError) -> None:
        self._mark_dead(f"engine failed: {error}")
        if not request.future.done():
            request.future.set_exception(EngineUnavailable(f"Engine connection lost: {error}"))

    async def _abandon(self, analysis: chess.engine.AnalysisResult, consumer: asyncio.Future) -> None:
        """Stop an abandoned search and let the engine finish it before moving on."""
        logger.debug("Search abandoned, sending stop")
        analysis.stop()
        try:
            await asyncio.wait_for(asyncio.shield(consumer), self._stop_grace)
        except asyncio.TimeoutError:
            self._mark_dead("no bestmove after stop")
            if self._transport is not None:
                self._transport.close()
        except chess.engine.EngineError as e:
            self._mark_dead(f"engine failed while stopping: {e}")
