# src/todo_notifications/todos/keep_around.py

from __future__ import annotations

"""
Keep-around worker.

Commits referenced by todos are not stored by this component, so every write of
a commit-targeted todo queues a request asking the project's repository to keep
the commit object around (never garbage-collect it).

A small polling loop that:
- fetches due requests,
- claims them (compare-and-swap on status),
- calls the repository's keep_around in a worker thread,
- marks them done, or reschedules/fails them.

Failures are logged and never reach the todo operation that queued the request.
"""

import asyncio
import contextlib
import logging
import threading
import time
from dataclasses import dataclass

from ..core.ports import RepositoryProvider, TodoRepo

logger = logging.getLogger(__name__)


async def dispatch_due_keep_arounds(
        store: TodoRepo,
        repositories: RepositoryProvider,
        *,
        retry_delay_seconds: float = 60.0,
        max_attempts: int = 5,
        batch_limit: int = 32,
        now_ts: float | None = None,
) -> int:
    """
    Run one pass over due keep-around requests.

    Returns the number of requests that were pinned successfully.
    """
    if now_ts is None:
        now_ts = time.time()

    try:
        requests = store.list_due_keep_arounds(now_ts=now_ts, limit=int(batch_limit))
    except Exception:
        logger.exception("list_due_keep_arounds failed")
        return 0

    pinned = 0
    for req in requests:
        try:
            claimed = store.try_claim_keep_around(req.id)
        except Exception:
            logger.exception("try_claim_keep_around failed request_id=%s", req.id)
            continue

        if not claimed:
            continue

        attempt = req.attempts + 1
        try:
            repository = repositories.repository_for(req.project_id)
            await asyncio.to_thread(repository.keep_around, req.commit_id)
        except Exception:
            logger.exception(
                "keep_around failed request_id=%s project=%s commit=%s attempt=%s",
                req.id,
                req.project_id,
                req.commit_id,
                attempt,
            )
            try:
                if attempt >= max_attempts:
                    store.fail_keep_around(req.id)
                    logger.warning("Keep-around %s gave up after %s attempts", req.id, attempt)
                else:
                    store.reschedule_keep_around(req.id, due_at=time.time() + retry_delay_seconds)
            except Exception:
                logger.exception("update keep-around (backoff) failed request_id=%s", req.id)
            continue

        try:
            store.finish_keep_around(req.id)
        except Exception:
            logger.exception("finish_keep_around failed request_id=%s", req.id)
            continue

        pinned += 1
        logger.info("Keep-around %s done project=%s commit=%s", req.id, req.project_id, req.commit_id)

    return pinned


async def run_keep_around_worker(
        store: TodoRepo,
        repositories: RepositoryProvider,
        *,
        interval_seconds: float = 5.0,
        retry_delay_seconds: float = 60.0,
        max_attempts: int = 5,
        batch_limit: int = 32,
        stop_event: asyncio.Event | None = None,
) -> None:
    """
    Poll for due keep-around requests every interval_seconds.

    To stop the worker, cancel the coroutine/task or set stop_event.
    """
    sleep_s = max(0.01, float(interval_seconds))
    retry_s = max(0.0, float(retry_delay_seconds))

    try:
        released = store.release_stale_keep_arounds()
        if released:
            logger.info("Released %s stale keep-around requests", released)
    except Exception:
        logger.exception("release_stale_keep_arounds failed")

    while stop_event is None or not stop_event.is_set():
        await dispatch_due_keep_arounds(
            store,
            repositories,
            retry_delay_seconds=retry_s,
            max_attempts=max(1, int(max_attempts)),
            batch_limit=batch_limit,
        )

        if stop_event is None:
            await asyncio.sleep(sleep_s)
            continue

        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)


@dataclass(slots=True)
class KeepAroundBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal keep-around worker stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_keep_around_in_background(
        store: TodoRepo,
        repositories: RepositoryProvider,
        settings,
) -> KeepAroundBackgroundRunner | None:
    """
    Start the keep-around worker on its own event loop in a daemon thread,
    so the blocking console can run in the main thread.
    """
    if not getattr(settings, "keep_around_enabled", True):
        logger.info("Keep-around worker disabled, not starting.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(
                run_keep_around_worker(
                    store,
                    repositories,
                    interval_seconds=float(getattr(settings, "keep_around_interval_seconds", 5.0)),
                    retry_delay_seconds=float(getattr(settings, "keep_around_retry_delay_seconds", 60.0)),
                    max_attempts=int(getattr(settings, "keep_around_max_attempts", 5)),
                    batch_limit=int(getattr(settings, "keep_around_batch_limit", 32)),
                    stop_event=stop_event,
                )
            )
        except Exception:
            logger.exception("Keep-around worker crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="keep-around", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Keep-around thread did not initialize properly.")
        return None

    logger.info("Keep-around background thread started.")
    return KeepAroundBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
