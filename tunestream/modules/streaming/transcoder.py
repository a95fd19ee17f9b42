"""
Transcode Pipeline - turns a source URL into canonical PCM WAV bytes.

The external decoder writes to its stdout, which becomes the response body.
A stream ends in one of three ways:

- normal completion: stdout reaches EOF and the process exits with 0
- abnormal exit: nonzero exit code or no output, raised as TranscodeError
- cancellation: terminate() stops the process (SIGTERM, then SIGKILL)
"""

import asyncio
from collections import deque
from typing import AsyncIterator, Callable, Optional, Set

from tunestream.common.logging import get_logger
from tunestream.core.errors import CommandError, TranscodeError
from tunestream.core.interfaces import CommandSpec, ProcessRunnerProtocol
from tunestream.core.monitoring import transcoder_spawns_total, transcoder_terminations_total

from .commands import CommandBuilder
from .process import kill_process

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
STDERR_LINES = 20


class TranscodeStream:
    """One running transcoder process and its output."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        command: CommandSpec,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        start_timeout: float = 30.0,
        kill_grace: float = 2.0,
        on_close: Optional[Callable[["TranscodeStream"], None]] = None,
    ):
        self.process = process
        self.command = command
        self.chunk_size = chunk_size
        self.start_timeout = start_timeout
        self.kill_grace = kill_grace
        self._on_close = on_close
        self._first_chunk: Optional[bytes] = None
        self._stderr: deque = deque(maxlen=STDERR_LINES)
        self._stderr_task: Optional[asyncio.Task] = None
        self._shutdown_task: Optional[asyncio.Task] = None
        self.bytes_sent = 0
        self.terminated_by: Optional[str] = None

        if process.stderr is not None:
            self._stderr_task = asyncio.ensure_future(self._drain_stderr())

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.process.returncode is None

    @property
    def stderr_tail(self) -> str:
        return "\n".join(self._stderr)

    async def _drain_stderr(self) -> None:
        # Keep the pipe empty so a chatty decoder never blocks on stderr
        while True:
            line = await self.process.stderr.readline()
            if not line:
                break
            self._stderr.append(line.decode("utf-8", errors="replace").rstrip())

    async def _stderr_settled(self) -> None:
        if self._stderr_task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._stderr_task), timeout=1.0)
            except asyncio.TimeoutError:
                pass

    async def read_first_chunk(self) -> bytes:
        """
        Wait for the first output bytes.

        Raises:
            TranscodeError: no output before the start deadline, or the process
                exited without producing any
        """
        try:
            chunk = await asyncio.wait_for(
                self.process.stdout.read(self.chunk_size), timeout=self.start_timeout
            )
        except asyncio.TimeoutError:
            await self.terminate()
            raise TranscodeError(
                "Transcoder produced no output before deadline",
                data={"timeout": self.start_timeout, "pid": self.pid},
            )

        if not chunk:
            returncode = await self.process.wait()
            await self._stderr_settled()
            await self.terminate()
            raise TranscodeError(
                "Transcoder exited without output",
                data={"returncode": returncode, "stderr": self.stderr_tail},
            )

        self._first_chunk = chunk
        return chunk

    async def chunks(self) -> AsyncIterator[bytes]:
        """
        Yield output until EOF.

        Raises:
            TranscodeError: the process exited with a nonzero code
        """
        try:
            if self._first_chunk is not None:
                chunk, self._first_chunk = self._first_chunk, None
                self.bytes_sent += len(chunk)
                yield chunk

            while True:
                chunk = await self.process.stdout.read(self.chunk_size)
                if not chunk:
                    break
                self.bytes_sent += len(chunk)
                yield chunk

            returncode = await self.process.wait()
            if returncode != 0 and self.terminated_by is None:
                await self._stderr_settled()
                raise TranscodeError(
                    "Transcoder exited abnormally",
                    data={
                        "returncode": returncode,
                        "bytes_sent": self.bytes_sent,
                        "stderr": self.stderr_tail,
                    },
                )
        finally:
            await self.terminate()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.chunks()

    async def terminate(self) -> None:
        """
        Stop the process if still running and release resources.

        Idempotent. The shutdown runs as its own task, so it completes even
        when the awaiting caller is cancelled again.
        """
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self._shutdown())
        await asyncio.shield(self._shutdown_task)

    async def _shutdown(self) -> None:
        signal = await kill_process(self.process, self.kill_grace)
        if signal is not None:
            self.terminated_by = signal
            transcoder_terminations_total.labels(signal=signal).inc()
            logger.info(
                "Transcoder terminated",
                data={"pid": self.pid, "signal": signal, "bytes_sent": self.bytes_sent},
            )

        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()

        if self._on_close is not None:
            self._on_close(self)


class TranscodePipeline:
    """Spawns transcoder processes for source URLs."""

    def __init__(
        self,
        runner: ProcessRunnerProtocol,
        commands: Optional[CommandBuilder] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        start_timeout: float = 30.0,
        kill_grace: float = 2.0,
    ):
        self.runner = runner
        self.commands = commands or CommandBuilder()
        self.chunk_size = chunk_size
        self.start_timeout = start_timeout
        self.kill_grace = kill_grace
        self.spawn_count = 0
        self._active: Set[TranscodeStream] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def open(self, source_url: str) -> TranscodeStream:
        """
        Start transcoding ``source_url``.

        Raises:
            TranscodeError: invalid URL or the decoder could not be started
        """
        try:
            command = self.commands.transcode(source_url)
        except CommandError as e:
            raise TranscodeError("Invalid transcoder input", cause=e)

        try:
            process = await self.runner.spawn(command)
        except OSError as e:
            raise TranscodeError(
                f"Could not start {command.program}",
                data={"program": command.program},
                cause=e,
            )

        self.spawn_count += 1
        transcoder_spawns_total.inc()
        logger.info("Transcoder started", data={"pid": process.pid})

        stream = TranscodeStream(
            process,
            command,
            chunk_size=self.chunk_size,
            start_timeout=self.start_timeout,
            kill_grace=self.kill_grace,
            on_close=self._active.discard,
        )
        self._active.add(stream)
        return stream

    async def terminate_all(self) -> None:
        """Stop every running transcoder (server shutdown)."""
        streams = list(self._active)
        if streams:
            logger.info("Terminating active transcoders", data={"count": len(streams)})
        await asyncio.gather(*(stream.terminate() for stream in streams), return_exceptions=True)
