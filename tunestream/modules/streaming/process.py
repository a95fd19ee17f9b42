"""
Async subprocess runner for external capabilities.

Every invocation has a deadline; when it passes, or the awaiting task is
cancelled, the child process is killed and reaped before the exception
propagates.
"""

import asyncio
from typing import Optional

from tunestream.common.logging import get_logger
from tunestream.core.interfaces import CommandSpec, ProcessResult

logger = get_logger(__name__)

READ_CHUNK = 64 * 1024


async def _discard(stream: Optional[asyncio.StreamReader]) -> None:
    if stream is None:
        return
    try:
        while await stream.read(READ_CHUNK):
            pass
    except RuntimeError:
        # Another coroutine is already reading this pipe
        pass


async def _reap(process: asyncio.subprocess.Process) -> int:
    # wait() returns only once every pipe is closed, so unread output is discarded
    returncode, _, _ = await asyncio.gather(
        process.wait(), _discard(process.stdout), _discard(process.stderr)
    )
    return returncode


async def kill_process(process: asyncio.subprocess.Process, grace: float = 0.0) -> Optional[str]:
    """
    Stop a child process and reap it.

    Sends SIGTERM first when ``grace`` is positive, then SIGKILL if it is
    still running after ``grace`` seconds. Output nobody has read yet is
    discarded.

    Returns:
        "term" or "kill" for the signal that ended it, None if it had already exited
    """
    if process.returncode is not None:
        return None

    if grace > 0:
        try:
            process.terminate()
        except ProcessLookupError:
            return None
        try:
            await asyncio.wait_for(_reap(process), timeout=grace)
            return "term"
        except asyncio.TimeoutError:
            pass

    try:
        process.kill()
    except ProcessLookupError:
        return None
    await _reap(process)
    return "kill"


class ProcessRunner:
    """Runs CommandSpecs with asyncio subprocesses (exec, never a shell)."""

    async def run(self, command: CommandSpec, timeout: Optional[float] = None) -> ProcessResult:
        """Run command to completion, capturing decoded stdout and stderr."""
        logger.debug("Running external command", data={"capability": command.capability, "argv": command.argv})

        process = await asyncio.create_subprocess_exec(
            *command.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            await kill_process(process)
            raise

        return ProcessResult(
            returncode=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def spawn(self, command: CommandSpec) -> asyncio.subprocess.Process:
        """Start command with stdout and stderr piped."""
        logger.debug("Spawning external command", data={"capability": command.capability, "program": command.program})

        return await asyncio.create_subprocess_exec(
            *command.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
