# linkshades/core/recording/async_writer.py
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional

WriteFunc = Callable[[Path, List[Any]], None]


class AsyncWriter:
    """
    Background writer for one file.

    Items queued with write() are handed to `write_func(path, batch)` from a
    worker thread, at most once per `flush_interval` seconds, and once more
    on close(). With `latest_only=True` only the newest queued item survives
    to the next flush, which suits whole-file snapshots.

    A failing flush is logged and its batch dropped; the worker keeps going.
    """

    def __init__(
        self,
        path: Path,
        write_func: WriteFunc,
        *,
        flush_interval: float = 0.5,
        latest_only: bool = False,
        name: str = "linkshades-writer",
        logger: Optional[logging.Logger] = None,
    ):
        self.path = Path(path)
        self._write_func = write_func
        self._flush_interval = float(flush_interval)
        self._latest_only = latest_only
        self._log = logger or logging.getLogger(__name__)

        self._cond = threading.Condition()
        self._pending: List[Any] = []
        self._closing = False
        self.dropped_batches = 0

        self._thread = threading.Thread(target=self._run, daemon=True, name=name)
        self._thread.start()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closing

    def write(self, item: Any) -> bool:
        """Queue `item`. Returns False (and drops it) once close() has begun."""
        with self._cond:
            if self._closing:
                return False
            if self._latest_only:
                self._pending = [item]
            else:
                self._pending.append(item)
            return True

    def close(self) -> None:
        """Write whatever is still queued, then stop the worker."""
        with self._cond:
            if self._closing:
                return
            self._closing = True
            self._cond.notify()
        self._thread.join()

    def _run(self) -> None:
        while True:
            with self._cond:
                if not self._closing:
                    self._cond.wait(timeout=self._flush_interval)
                batch, self._pending = self._pending, []
                closing = self._closing

            if batch:
                self._flush(batch)
            if closing:
                return

    def _flush(self, batch: List[Any]) -> None:
        try:
            self._write_func(self.path, batch)
        except Exception:
            self.dropped_batches += 1
            self._log.exception("WRITER_FLUSH_FAILED path=%s items=%d", self.path, len(batch))
