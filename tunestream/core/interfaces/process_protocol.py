"""
Process Protocol - Interface for invoking external capabilities.

External tools (yt-dlp, ffmpeg) are described by a typed CommandSpec and run
through a ProcessRunner, so tests can substitute fakes that never spawn.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, runtime_checkable


@dataclass(frozen=True)
class CommandSpec:
    """An external invocation: capability name, executable and argument list."""
    capability: str
    program: str
    args: Tuple[str, ...]

    @property
    def argv(self) -> list:
        return [self.program, *self.args]


@dataclass
class ProcessResult:
    """Completed external invocation."""
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class ProcessRunnerProtocol(Protocol):
    """Protocol for process runners (DI interface)."""

    async def run(self, command: CommandSpec, timeout: Optional[float] = None) -> ProcessResult:
        """
        Run command to completion and capture its output.

        Raises:
            asyncio.TimeoutError: deadline passed (the process is killed)
            OSError: executable could not be started
        """
        ...

    async def spawn(self, command: CommandSpec) -> asyncio.subprocess.Process:
        """Start command with stdout piped and return the live process."""
        ...
