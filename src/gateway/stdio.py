"""Line-delimited stdio binding.

Each stdin line is one envelope and is handled as its own task, so a slow
call (e.g. one waiting on device-code sign-in) does not block the others.
Responses are written one per line under a lock. stdout carries protocol
frames only; logs go to stderr.

On EOF, in-flight calls get a short grace period to finish and are then
cancelled, which aborts any pending sign-in.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import AsyncIterator
from typing import TextIO

import structlog

from src.gateway.dispatch import ProtocolGateway

logger = structlog.get_logger()


async def stdin_lines() -> AsyncIterator[str]:
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        yield line


class StdioServer:
    def __init__(
        self,
        gateway: ProtocolGateway,
        *,
        output: TextIO | None = None,
        drain_timeout: float = 5.0,
    ) -> None:
        self._gateway = gateway
        self._output = output or sys.stdout
        self._drain_timeout = drain_timeout
        self._write_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def serve(self, lines: AsyncIterator[str | bytes] | None = None) -> None:
        lines = lines if lines is not None else stdin_lines()
        logger.info("stdio_server_started")
        try:
            async for line in lines:
                if not line.strip():
                    continue
                task = asyncio.create_task(self._handle(line))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            await self._shutdown()
            logger.info("stdio_server_stopped")

    async def _handle(self, line: str | bytes) -> None:
        response = await self._gateway.handle_line(line)
        async with self._write_lock:
            try:
                self._output.write(response + "\n")
                self._output.flush()
            except OSError as e:
                logger.warning("stdio_write_failed", error=str(e))

    async def _shutdown(self) -> None:
        pending = set(self._tasks)
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=self._drain_timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.info("stdio_calls_cancelled", count=len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)
