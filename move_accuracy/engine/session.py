"""
Asynchronous session with an external UCI search engine.

A ProtocolSession owns exactly one engine process for its whole lifetime.
A background reader task splits the engine's stdout into lines and hands
each one to the single pending waiter. Requests are strictly serialised:
a second wait or request while one is outstanding raises SessionBusyError
instead of silently replacing the first waiter.
"""

import asyncio
import codecs
import enum
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Union

from ..errors import (
    EngineError,
    EngineTerminatedError,
    EngineTimeoutError,
    ProcessSpawnError,
    SessionBusyError,
)
from .uci_parser import is_bestmove

logger = logging.getLogger(__name__)


DEFAULT_HANDSHAKE_TIMEOUT = 10.0
DEFAULT_QUIT_GRACE = 2.0
READ_CHUNK_SIZE = 4096

EngineCommand = Union[str, "os.PathLike[str]", Sequence[str]]
LinePredicate = Callable[[str], bool]
LineObserver = Callable[[str], None]


class SessionState(enum.Enum):
    """Lifecycle of a ProtocolSession."""
    SPAWNED = "spawned"  # Process started, handshake not finished
    READY = "ready"
    BUSY = "busy"  # One request outstanding
    STALE = "stale"  # A request was abandoned; resynchronize before reuse
    TERMINATING = "terminating"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class SearchRequest:
    """A fixed-depth search on one position."""
    fen: str
    depth: int

    def __post_init__(self):
        if isinstance(self.depth, bool) or not isinstance(self.depth, int) or self.depth <= 0:
            raise ValueError(f"Search depth must be a positive integer, got {self.depth!r}")

    def commands(self) -> List[str]:
        """UCI commands that start this search."""
        return [f"position fen {self.fen}", f"go depth {self.depth}"]


class LineBuffer:
    """
    Splits a stream of output chunks into complete text lines.

    A trailing partial line is retained until the chunk that completes it
    arrives. Decoding is incremental, so a multi-byte character split across
    two chunks is reassembled correctly.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._partial = ""

    def feed(self, data: bytes) -> List[str]:
        """Add a chunk and return the lines it completed."""
        text = self._partial + self._decoder.decode(data)
        pieces = text.split("\n")
        self._partial = pieces.pop()
        return [piece.strip() for piece in pieces if piece.strip()]

    def flush(self) -> List[str]:
        """Return whatever is left once the stream has ended."""
        rest = (self._partial + self._decoder.decode(b"", final=True)).strip()
        self._partial = ""
        return [rest] if rest else []


class _LineWaiter:
    """One pending wait: a predicate, an optional observer and its future."""

    __slots__ = ("predicate", "on_line", "future")

    def __init__(self, predicate: LinePredicate, on_line: Optional[LineObserver], future: "asyncio.Future[str]"):
        self.predicate = predicate
        self.on_line = on_line
        self.future = future

    def offer(self, line: str) -> None:
        if self.future.done():
            return
        try:
            if self.on_line is not None:
                self.on_line(line)
            if self.predicate(line):
                self.future.set_result(line)
        except Exception as exc:
            self.future.set_exception(exc)


def _format_option(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ProtocolSession:
    """
    Drives one external engine process over the UCI text protocol.

    Create sessions with :meth:`spawn` (or :func:`open_session`), never
    directly. The session must be terminated explicitly; the process is
    not cleaned up by garbage collection.
    """

    def __init__(self, process: asyncio.subprocess.Process, argv: List[str],
                 quit_grace: float = DEFAULT_QUIT_GRACE):
        self._process = process
        self.argv = argv
        self.quit_grace = quit_grace
        self._buffer = LineBuffer()
        self._waiter: Optional[_LineWaiter] = None
        self._state = SessionState.SPAWNED
        self._eof = False
        self._search_finished = True
        self._reader = asyncio.get_running_loop().create_task(self._read_loop())

    @classmethod
    async def spawn(
        cls,
        command: EngineCommand,
        *,
        options: Optional[Dict[str, Any]] = None,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        quit_grace: float = DEFAULT_QUIT_GRACE,
    ) -> "ProtocolSession":
        """
        Launch an engine and complete the UCI handshake.

        Args:
            command: Engine executable path, or a full argv sequence
            options: UCI options sent with ``setoption`` (e.g. Threads, Hash)
            handshake_timeout: Seconds to wait for ``uciok`` and ``readyok``
            quit_grace: Seconds :meth:`terminate` waits before killing

        Returns:
            A session in the READY state

        Raises:
            ProcessSpawnError: If the executable cannot be launched
            EngineTimeoutError: If the engine never completes the handshake
        """
        if isinstance(command, (str, os.PathLike)):
            argv = [os.fspath(command)]
        else:
            argv = [os.fspath(part) for part in command]
        if not argv or not argv[0]:
            raise ProcessSpawnError(command, ValueError("empty engine command"))

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise ProcessSpawnError(command, exc) from exc

        logger.info("Spawned engine %s (pid %s)", argv[0], process.pid)
        session = cls(process, argv, quit_grace=quit_grace)
        try:
            await session._handshake(options or {}, handshake_timeout)
        except BaseException:
            await session.terminate()
            raise
        return session

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    def send(self, command: str) -> None:
        """Write one command line to the engine. No acknowledgement is implied."""
        if self._state is SessionState.TERMINATED or self._process.returncode is not None:
            raise EngineTerminatedError(f"Cannot send {command!r}: engine process has exited")
        stdin = self._process.stdin
        if stdin is None or stdin.is_closing():
            raise EngineTerminatedError(f"Cannot send {command!r}: engine input is closed")
        logger.debug(">> %s", command)
        stdin.write(f"{command}\n".encode("utf-8"))

    async def await_line(
        self,
        predicate: LinePredicate,
        timeout: float,
        *,
        on_line: Optional[LineObserver] = None,
        waiting_for: str = "engine line",
    ) -> str:
        """
        Suspend until an engine line satisfies ``predicate``.

        Every line the waiter sees is passed to ``on_line`` first, then
        tested against ``predicate``. Lines that arrive while nobody waits
        are discarded.

        Args:
            predicate: Returns True for the line that ends the wait
            timeout: Seconds before giving up
            on_line: Optional observer for every line seen during the wait
            waiting_for: Description used in the timeout message

        Returns:
            The first matching line

        Raises:
            SessionBusyError: If another wait is already outstanding
            EngineTimeoutError: If no line matched within ``timeout``
            EngineTerminatedError: If the engine exits during the wait
        """
        if self._waiter is not None:
            raise SessionBusyError("Another wait is already outstanding on this engine session")
        if self._eof:
            raise EngineTerminatedError("Engine process has closed its output")

        future: "asyncio.Future[str]" = asyncio.get_running_loop().create_future()
        waiter = _LineWaiter(predicate, on_line, future)
        self._waiter = waiter
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise EngineTimeoutError(timeout, waiting_for) from None
        finally:
            if self._waiter is waiter:
                self._waiter = None

    async def request(
        self,
        commands: Sequence[str],
        predicate: LinePredicate,
        timeout: float,
        *,
        on_line: Optional[LineObserver] = None,
        waiting_for: str = "bestmove",
        starts_search: bool = False,
    ) -> str:
        """
        Send a request and wait for its terminal line (READY -> BUSY -> READY).

        If the wait does not complete normally the session becomes STALE
        and must be resynchronized before it accepts another request.

        Raises:
            SessionBusyError: If the session is not READY
        """
        if self._state is not SessionState.READY:
            if self._state in (SessionState.TERMINATING, SessionState.TERMINATED):
                raise EngineTerminatedError("Engine session has been terminated")
            raise SessionBusyError(f"Engine session is {self._state.value}, cannot accept a request")

        self._state = SessionState.BUSY
        if starts_search:
            self._search_finished = False
        completed = False
        try:
            for command in commands:
                self.send(command)
            line = await self.await_line(predicate, timeout, on_line=on_line, waiting_for=waiting_for)
            completed = True
            return line
        finally:
            if self._state is SessionState.BUSY:
                self._state = SessionState.READY if completed else SessionState.STALE
            if completed:
                self._search_finished = True

    async def search(
        self,
        request: SearchRequest,
        timeout: float,
        *,
        on_line: Optional[LineObserver] = None,
    ) -> str:
        """Run one fixed-depth search and return its ``bestmove`` line."""
        return await self.request(
            request.commands(), is_bestmove, timeout, on_line=on_line, starts_search=True
        )

    async def synchronize(self, timeout: float = DEFAULT_HANDSHAKE_TIMEOUT) -> None:
        """Round-trip ``isready``/``readyok`` on a READY session."""
        await self.request(["isready"], lambda line: line == "readyok", timeout, waiting_for="readyok")

    async def new_game(self, timeout: float = DEFAULT_HANDSHAKE_TIMEOUT) -> None:
        """Tell the engine the next searches belong to a new game."""
        await self.request(
            ["ucinewgame", "isready"], lambda line: line == "readyok", timeout, waiting_for="readyok"
        )

    async def resynchronize(self, timeout: float = DEFAULT_HANDSHAKE_TIMEOUT) -> None:
        """
        Bring a STALE session back to READY.

        Stops any search still running, waits for its ``bestmove`` so the
        stale line cannot be mistaken for the next answer, then completes
        an ``isready`` round-trip.
        """
        if self._state is SessionState.READY:
            await self.synchronize(timeout)
            return
        if self._state is not SessionState.STALE:
            raise SessionBusyError(f"Cannot resynchronize a {self._state.value} session")

        logger.info("Resynchronizing engine session (pid %s)", self.pid)
        if not self._search_finished:
            self.send("stop")
            await self.await_line(is_bestmove, timeout, waiting_for="bestmove after stop")
            self._search_finished = True
        self.send("isready")
        await self.await_line(lambda line: line == "readyok", timeout, waiting_for="readyok")
        self._state = SessionState.READY

    async def terminate(self, grace_period: Optional[float] = None) -> None:
        """
        Stop the engine process.

        Sends ``quit`` and waits up to ``grace_period`` seconds for the
        process to exit, killing it otherwise. Safe to call repeatedly and
        from any state; the process is not running once this returns.
        """
        if self._state is SessionState.TERMINATED:
            return
        if grace_period is None:
            grace_period = self.quit_grace

        self._state = SessionState.TERMINATING
        process = self._process
        try:
            if process.returncode is None:
                try:
                    self.send("quit")
                    if process.stdin is not None:
                        await process.stdin.drain()
                        process.stdin.close()
                except (ConnectionError, EngineError) as exc:
                    logger.debug("Engine input already closed while quitting: %s", exc)
                try:
                    await asyncio.wait_for(process.wait(), grace_period)
                except asyncio.TimeoutError:
                    logger.warning("Engine pid %s ignored quit for %.1fs, killing it", process.pid, grace_period)
                    self._kill()
                    await process.wait()
        finally:
            if process.returncode is None:
                self._kill()
            if not self._reader.done():
                self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)
            self._state = SessionState.TERMINATED
            logger.info("Engine pid %s terminated (exit code %s)", process.pid, process.returncode)

    async def __aenter__(self) -> "ProtocolSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.terminate()
        return False

    def _kill(self) -> None:
        try:
            self._process.kill()
        except ProcessLookupError:
            pass

    async def _handshake(self, options: Dict[str, Any], timeout: float) -> None:
        self.send("uci")
        await self.await_line(lambda line: line == "uciok", timeout, waiting_for="uciok")
        for name, value in options.items():
            self.send(f"setoption name {name} value {_format_option(value)}")
        self.send("isready")
        await self.await_line(lambda line: line == "readyok", timeout, waiting_for="readyok")
        self._state = SessionState.READY

    def _dispatch(self, line: str) -> None:
        logger.debug("<< %s", line)
        waiter = self._waiter
        if waiter is not None:
            waiter.offer(line)
        elif self._state is SessionState.STALE and is_bestmove(line):
            # Late answer to an abandoned request
            self._search_finished = True

    async def _read_loop(self) -> None:
        stdout = self._process.stdout
        try:
            while stdout is not None:
                chunk = await stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                for line in self._buffer.feed(chunk):
                    self._dispatch(line)
            for line in self._buffer.flush():
                self._dispatch(line)
        finally:
            self._eof = True
            waiter = self._waiter
            if waiter is not None and not waiter.future.done():
                waiter.future.set_exception(EngineTerminatedError("Engine process closed its output"))


@asynccontextmanager
async def open_session(command: EngineCommand, **kwargs: Any) -> AsyncIterator[ProtocolSession]:
    """
    Spawn an engine session and terminate it on every exit path.

    Args:
        command: Engine executable path or argv sequence
        **kwargs: Passed to :meth:`ProtocolSession.spawn`

    Yields:
        A READY ProtocolSession
    """
    session = await ProtocolSession.spawn(command, **kwargs)
    try:
        yield session
    finally:
        await session.terminate()
