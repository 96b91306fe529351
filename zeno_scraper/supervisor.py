"""Lifecycle of the search-engine subprocess and its liveness probe.

NotStarted -> Running -> StopRequested -> Exited. A process that dies on
its own goes Running -> Exited; the probe loop then sees failures and takes
the same fatal path: stop the process group, wait for it, set the shared
shutdown event.
"""

import asyncio
import logging
import os
import signal
from enum import Enum
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger("zeno_scraper")

HealthCheck = Callable[[], Awaitable[bool]]


class ProcessState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOP_REQUESTED = "stop_requested"
    EXITED = "exited"


def build_command(binary: str, data_path: str, http_addr: str, master_key: str = "") -> List[str]:
    cmd = [binary, "--db-path", data_path, "--http-addr", http_addr]
    if master_key:
        logger.info("using production env for search")
        cmd += ["--env=production", "--master-key", master_key]
    else:
        logger.info("using development env for search")
        cmd.append("--env=development")
    return cmd


class SearchProcessManager:
    def __init__(self, command: List[str], check: HealthCheck, shutdown: asyncio.Event,
                 warmup: float = 5.0, interval: float = 1.0, threshold: int = 3):
        self.command = command
        self.check = check
        self.warmup = warmup
        self.interval = interval
        self.threshold = threshold
        self._shutdown = shutdown
        self._process: Optional[asyncio.subprocess.Process] = None
        self._health_task: Optional[asyncio.Task] = None
        self._stop_requested = False

    @property
    def state(self) -> ProcessState:
        if self._process is None:
            return ProcessState.NOT_STARTED
        if self._process.returncode is not None:
            return ProcessState.EXITED
        if self._stop_requested:
            return ProcessState.STOP_REQUESTED
        return ProcessState.RUNNING

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    async def start(self):
        if self._process is not None:
            raise RuntimeError("search process already started")
        # New session, so a signal to the group reaches every child
        self._process = await asyncio.create_subprocess_exec(
            *self.command, start_new_session=True,
        )
        logger.info(f"started search engine (pid {self._process.pid}): {self.command[0]}")
        self._health_task = asyncio.create_task(self._health_check(), name="search-health")

    async def _health_check(self):
        await asyncio.sleep(self.warmup)
        logger.info("started search health check")

        failures = 0
        while True:
            try:
                healthy = await self.check()
            except Exception as e:
                logger.error(f"search health check raised: {e}")
                healthy = False
            if healthy:
                failures = 0
            else:
                failures += 1
                logger.warning(f"search health check failed ({failures}/{self.threshold})")
                if failures >= self.threshold:
                    break
            await asyncio.sleep(self.interval)

        logger.error("search health check failed, shutting down")
        try:
            await self._signal_group()
        except OSError as e:
            logger.error(f"err stopping search: {e}")
        await self.wait()

        logger.info("sending signal to shutdown")
        self._shutdown.set()

    async def stop(self):
        """Interrupt the whole process group, letting the engine shut down cleanly."""
        if self._health_task and not self._health_task.done() \
                and self._health_task is not asyncio.current_task():
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
        await self._signal_group()

    async def _signal_group(self):
        if self._process is None:
            raise RuntimeError("search process not started")
        self._stop_requested = True
        if self._process.returncode is not None:
            logger.info(f"search engine already exited with {self._process.returncode}")
            return
        pgid = os.getpgid(self._process.pid)
        os.killpg(pgid, signal.SIGINT)

    async def wait(self) -> int:
        """Block until the engine has exited. Call stop() first."""
        if self._process is None:
            raise RuntimeError("search process not started")
        code = await self._process.wait()
        logger.info(f"search engine exited with {code}")
        return code
