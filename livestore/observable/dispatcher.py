"""
Single-threaded delivery loop for posted values.

Values posted from worker threads are handed to one dispatcher thread, which
plays the role of a UI main loop: callbacks never run concurrently with each
other for deliveries made through the same dispatcher.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from livestore.utils.logging import get_logger

log = get_logger(__name__)


class Dispatcher:
    def __init__(self, name: str = "livestore-main") -> None:
        self.name = name
        self._thread_ident: Optional[int] = None
        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=name,
            initializer=self._remember_thread,
        )

    def _remember_thread(self) -> None:
        self._thread_ident = threading.get_ident()

    def is_dispatch_thread(self) -> bool:
        return self._thread_ident is not None and threading.get_ident() == self._thread_ident

    def submit(self, fn: Callable[[], None]) -> Future:
        def run() -> None:
            try:
                fn()
            except Exception:  # noqa: BLE001 - the loop must survive a failing callback
                log.exception("Dispatch failed", extra={"dispatcher": self.name})

        return self._executor.submit(run)

    def flush(self, timeout: Optional[float] = 5.0) -> None:
        """
        Block until everything submitted before this call has run.

        A no-op when called from the dispatch thread itself.
        """
        if self.is_dispatch_thread():
            return
        self._executor.submit(lambda: None).result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_main_dispatcher: Optional[Dispatcher] = None
_main_lock = threading.Lock()


def get_main_dispatcher() -> Dispatcher:
    """Return the process-wide dispatcher, creating it on first use."""
    global _main_dispatcher
    if _main_dispatcher is None:
        with _main_lock:
            if _main_dispatcher is None:
                _main_dispatcher = Dispatcher()
    return _main_dispatcher


__all__ = ["Dispatcher", "get_main_dispatcher"]
