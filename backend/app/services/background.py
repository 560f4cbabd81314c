from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Bounded pool for fire-and-forget work spawned by request handlers.

    Task failures are logged and never reach the request that submitted them.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="background")
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future | None:
        with self._lock:
            if self._closed:
                logger.warning("Background runner is shut down, dropping task %s", getattr(fn, "__name__", fn))
                return None
            future = self._executor.submit(self._run, fn, *args, **kwargs)
        return future

    @staticmethod
    def _run(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception:
            logger.exception("Background task %s failed", getattr(fn, "__name__", fn))
            return None

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
