# vibe_assistant/housekeeping.py

import asyncio
import logging
from typing import Any, Optional

logger = logging.getLogger("vibe_assistant")


class SessionSweeper:
    """
    Background loop that calls ``host.sweep()`` every ``interval`` seconds.
    Started and stopped by the FastAPI lifespan.
    """

    def __init__(self, host: Any, interval: float = 3600.0):
        self.host = host
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        logger.info("Session sweeper running (interval=%.0fs)", self.interval)
        while True:
            await asyncio.sleep(self.interval)
            try:
                await asyncio.to_thread(self.host.sweep)
            except Exception as e:
                logger.error("Session sweep failed: %s", e)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session sweeper stopped")
