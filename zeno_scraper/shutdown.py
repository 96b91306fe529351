"""Coordinated shutdown: stop accepting, drain fetches, stop the engine, wait."""

import asyncio
import logging
import time
from typing import Optional

logger = logging.getLogger("zeno_scraper")


class IdleWatcher:
    """Sets the shutdown event after `timeout` seconds without an HTTP request."""

    def __init__(self, timeout: float, poll: float = None):
        self.timeout = timeout
        self.poll = poll if poll is not None else min(timeout, 1.0)
        self._last_seen = time.monotonic()

    def touch(self):
        self._last_seen = time.monotonic()

    @property
    def idle_for(self) -> float:
        return time.monotonic() - self._last_seen

    async def watch(self, shutdown: asyncio.Event):
        while not shutdown.is_set():
            if self.idle_for >= self.timeout:
                logger.info(f"no requests for {self.timeout:.0f}s, shutting down")
                shutdown.set()
                return
            await asyncio.sleep(self.poll)


async def coordinated_shutdown(server, server_task: Optional[asyncio.Task], scraper, manager):
    """Tear down in order. A failing step is logged and the next one still runs.

    `server` is a uvicorn.Server (or None), `manager` a SearchProcessManager
    (or None when the engine is not supervised here).
    """
    logger.info("stopping http server")
    if server is not None:
        server.should_exit = True
    if server_task is not None:
        try:
            await server_task
        except Exception as e:
            logger.error(f"error from server task: {e}")

    logger.info("waiting for in-flight scrapes")
    scraper.close()
    await scraper.drain()

    if manager is None:
        return

    logger.info("stopping search engine")
    try:
        await manager.stop()
    except (OSError, RuntimeError) as e:
        logger.error(f"err stopping search: {e}")
        return
    try:
        await manager.wait()
    except RuntimeError as e:
        logger.error(f"err waiting on search: {e}")
