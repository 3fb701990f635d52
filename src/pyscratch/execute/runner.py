from __future__ import annotations

import asyncio
import logging
import subprocess
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

OutputCallback = Callable[[bytes], None]

_KILL_POLL_INTERVAL = 0.02


class ChildProcess(Protocol):
    async def wait(self) -> int: ...

    def kill(self) -> None: ...


class ProcessRunner(Protocol):
    async def spawn(
        self,
        artifact: Path,
        args: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        on_stdout: Optional[OutputCallback] = None,
        on_stderr: Optional[OutputCallback] = None,
    ) -> ChildProcess: ...


async def _pump(stream: Optional[asyncio.StreamReader], callback: Optional[OutputCallback]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            return
        if callback is not None:
            callback(chunk)


class AsyncioChildProcess:
    """A running compiled transform; output is forwarded chunk by chunk."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        on_stdout: Optional[OutputCallback],
        on_stderr: Optional[OutputCallback],
    ) -> None:
        self.process = process
        self._killed = False
        self._pumps = [
            asyncio.ensure_future(_pump(process.stdout, on_stdout)),
            asyncio.ensure_future(_pump(process.stderr, on_stderr)),
        ]

    @property
    def pid(self) -> int:
        return self.process.pid

    async def wait(self) -> int:
        results = await asyncio.gather(*self._pumps, return_exceptions=True)
        for r in results:
            if isinstance(r, Exception):
                raise r
        if self._killed:
            # process.wait() also waits for the pipes, which a grandchild may keep open.
            while self.process.returncode is None:
                await asyncio.sleep(_KILL_POLL_INTERVAL)
            return self.process.returncode
        return await self.process.wait()

    def kill(self) -> None:
        # Pumps stop with the kill; a grandchild may still hold the pipes open.
        self._killed = True
        for pump in self._pumps:
            pump.cancel()
        if self.process.returncode is not None:
            return
        try:
            self.process.kill()
            logger.debug("killed child process %s", self.process.pid)
        except ProcessLookupError:
            pass


class SubprocessRunner:
    """Runs a compiled artifact as `<interpreter> <artifact> <args...>`."""

    def __init__(self, interpreter: str) -> None:
        self.interpreter = interpreter

    async def spawn(
        self,
        artifact: Path,
        args: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        on_stdout: Optional[OutputCallback] = None,
        on_stderr: Optional[OutputCallback] = None,
    ) -> AsyncioChildProcess:
        command = [self.interpreter, str(artifact), *args]
        logger.debug("spawning %s", command)
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        return AsyncioChildProcess(process, on_stdout, on_stderr)
