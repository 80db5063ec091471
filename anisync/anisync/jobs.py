"""
Detached background jobs.

A SyncJob is a handle on work running in a thread pool: callers dispatch it
and come back later for the status, result or error.
"""

import logging
import threading
import concurrent.futures
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from . import constants as c
from .config import get_config
from .db import utcnow
from .store import CatalogStore
from .sync_engine import run_sync

logger = logging.getLogger(__name__)

JOB_PENDING = "pending"
JOB_RUNNING = c.STATUS_RUNNING
JOB_COMPLETED = c.STATUS_COMPLETED
JOB_FAILED = c.STATUS_FAILED


@dataclass
class SyncJob:
    name: str
    status: str = JOB_PENDING
    error: Optional[BaseException] = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    future: Optional[concurrent.futures.Future] = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.status in (JOB_COMPLETED, JOB_FAILED)

    def result(self, timeout: Optional[float] = None) -> Any:
        """Blocks until the job finishes; re-raises the job's exception."""
        return self.future.result(timeout=timeout)

    def wait(self, timeout: Optional[float] = None) -> "SyncJob":
        concurrent.futures.wait([self.future], timeout=timeout)
        return self


class JobRunner:
    def __init__(self, max_workers: int = 2):
        self.executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="anisync-job"
        )
        self.jobs: List[SyncJob] = []
        self._lock = threading.Lock()

    def submit(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> SyncJob:
        job = SyncJob(name=name)

        def _run():
            job.status = JOB_RUNNING
            job.started_at = utcnow()
            logger.info(f"Job '{name}' started")
            try:
                value = fn(*args, **kwargs)
            except Exception as e:
                job.status = JOB_FAILED
                job.error = e
                logger.error(f"Job '{name}' failed: {e}")
                raise
            finally:
                job.finished_at = utcnow()
            job.status = JOB_COMPLETED
            logger.info(f"Job '{name}' completed")
            return value

        job.future = self.executor.submit(_run)
        with self._lock:
            self.jobs.append(job)
        return job

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)

    def __enter__(self) -> "JobRunner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)


def settle(jobs: List[SyncJob], timeout: Optional[float] = None) -> List[Dict[str, Any]]:
    """Waits for all jobs and reports each outcome without raising."""
    concurrent.futures.wait([job.future for job in jobs], timeout=timeout)
    outcomes = []
    for job in jobs:
        if not job.future.done():
            outcomes.append({"name": job.name, "status": job.status})
        elif job.future.exception() is not None:
            outcomes.append({"name": job.name, "status": "rejected", "reason": str(job.future.exception())})
        else:
            outcomes.append({"name": job.name, "status": "fulfilled", "value": job.future.result()})
    return outcomes


def prepare_schema() -> None:
    """Creates missing tables once so concurrent jobs never race on CREATE TABLE."""
    config = get_config()
    store = CatalogStore.from_url(config.database.url, echo=config.database.echo)
    try:
        store.ping()
    finally:
        store.engine.dispose()


def dispatch_dual_sync(runner: JobRunner, max_pages: Optional[int] = None,
                       sync_fn: Optional[Callable[..., Any]] = None, **kwargs) -> List[SyncJob]:
    """Starts the anime and manga syncs concurrently and returns their handles."""
    if "store" not in kwargs:
        prepare_schema()
    sync_fn = sync_fn or run_sync
    return [
        runner.submit(f"{content_type}-sync", sync_fn, content_type, max_pages=max_pages, **kwargs)
        for content_type in c.CONTENT_TYPES
    ]
