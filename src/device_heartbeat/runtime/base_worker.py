"""Base worker abstraction with a shared asyncio lifecycle."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from typing import ClassVar


class BaseWorker(ABC):
    """Background task with a start/stop lifecycle on the server's event loop.

    Subclasses implement ``_tick()``, which is awaited repeatedly until
    ``stop()`` is called. ``_tick`` returns ``True`` when it did work and
    wants to run again immediately; otherwise the loop waits ``poll_interval``
    seconds (or until stop is requested).
    """

    worker_name: ClassVar[str] = "base-worker"
    logger_name: ClassVar[str] = "device_heartbeat.worker"
    default_poll_interval: ClassVar[float] = 1.0

    def __init__(self, *, poll_interval: float | None = None) -> None:
        self._poll_interval = poll_interval
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._logger = logging.getLogger(self.logger_name)

    def start(self) -> None:
        """Start the background task (idempotent)."""
        if self._task is not None and not self._task.done():
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run_loop(), name=self.worker_name)
        self._on_started()

    async def stop(self, *, timeout: float = 5.0) -> None:
        """Request stop and wait for the current tick to finish."""
        task = self._task
        if task is None:
            return
        self._stop.set()
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except TimeoutError:
            self._logger.warning(
                "worker did not stop in time; cancelling",
                extra={"data": {"worker": self.worker_name}},
            )
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        finally:
            self._task = None
            self._on_stopped()

    @property
    def running(self) -> bool:
        task = self._task
        return bool(task is not None and not task.done())

    @property
    def poll_interval(self) -> float:
        return self._poll_interval if self._poll_interval is not None else self.default_poll_interval

    async def _run_loop(self) -> None:
        while not self._stop.is_set():
            try:
                busy = await self._tick()
            except Exception:
                self._logger.exception("worker tick failed", extra={"data": {"worker": self.worker_name}})
                self._on_error()
                busy = False

            if not busy:
                await self._sleep(self.poll_interval)

    async def _sleep(self, seconds: float) -> None:
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)

    @abstractmethod
    async def _tick(self) -> bool:
        """Run one iteration; return ``True`` to skip the idle wait."""

    def _on_started(self) -> None:  # noqa: B027
        """Hook called after the task has been scheduled."""

    def _on_stopped(self) -> None:  # noqa: B027
        """Hook called once the task has finished."""

    def _on_error(self) -> None:  # noqa: B027
        """Hook called when ``_tick()`` raises."""


__all__ = ["BaseWorker"]
