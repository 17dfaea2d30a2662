"""In-process background task queue for fire-and-forget work.

Request handlers ``submit`` a job and return immediately; a single worker
task drains the queue. Handler failures are logged and dropped so they never
reach the request path.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any
from uuid import uuid4

from loguru import logger


class InMemoryTaskQueue:
    """asyncio.Queue with one worker; sync handlers run in a thread."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[tuple[str, str, dict[str, Any]]] = asyncio.Queue()
        self._handlers: dict[str, Callable[..., Any]] = {}
        self._worker_task: asyncio.Task[None] | None = None
        self.failed_jobs = 0

    def register(self, job_type: str, handler: Callable[..., Any]) -> None:
        """Register a task handler.

        Args:
            job_type: Type of job this handler processes
            handler: Sync or async callable receiving the job's keyword arguments
        """
        self._handlers[job_type] = handler

    def submit(self, job_type: str, **kwargs: Any) -> str:
        """Queue a job without waiting for it; must be called from a running loop.

        Returns:
            Job ID

        Raises:
            ValueError: If no handler is registered for *job_type*.
        """
        if job_type not in self._handlers:
            raise ValueError(f"No handler registered for job type: {job_type}")
        job_id = uuid4().hex
        self._queue.put_nowait((job_id, job_type, kwargs))
        self._ensure_worker()
        return job_id

    def _ensure_worker(self) -> None:
        if self._worker_task is None or self._worker_task.done():
            self._worker_task = asyncio.create_task(self._worker(), name="task-queue-worker")

    async def _worker(self) -> None:
        while True:
            job_id, job_type, kwargs = await self._queue.get()
            try:
                await self._execute(job_id, job_type, kwargs)
            finally:
                self._queue.task_done()

    async def _execute(self, job_id: str, job_type: str, kwargs: dict[str, Any]) -> None:
        handler = self._handlers[job_type]
        try:
            if inspect.iscoroutinefunction(handler):
                await handler(**kwargs)
            else:
                await asyncio.to_thread(handler, **kwargs)
        except Exception:
            self.failed_jobs += 1
            logger.exception("Background job {} ({}) failed", job_type, job_id)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue.empty() and (self._worker_task is None or self._worker_task.done()):
            return
        await self._queue.join()

    async def aclose(self) -> None:
        """Drain the queue, then stop the worker."""
        await self.join()
        if self._worker_task is not None and not self._worker_task.done():
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
        self._worker_task = None
