# linkshades/core/recording/events.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from linkshades.interfaces.device_sink import DeviceEvent, DeviceSink
from linkshades.core.recording.async_writer import AsyncWriter


@dataclass
class DeviceEventTrace(DeviceSink):
    """Appends every device event to a JSONL file (and to `logger` at DEBUG)."""

    logger: logging.Logger
    file_path: Optional[Path] = None
    flush_interval_s: float = 0.5

    def __post_init__(self) -> None:
        self._writer: Optional[AsyncWriter] = None
        if self.file_path is not None:
            self.file_path = Path(self.file_path)
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self._writer = AsyncWriter(
                self.file_path,
                self._append_lines,
                flush_interval=self.flush_interval_s,
                name="linkshades-events",
                logger=self.logger,
            )

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None

    def on_device_event(self, event: DeviceEvent) -> None:
        ts_utc = event.ts_utc or datetime.now(timezone.utc).isoformat()

        out = {
            "chip_id": event.chip_id,
            "kind": event.kind,
            "record": event.record.to_dict(),
            "ts_utc": ts_utc,
        }
        self.logger.debug("DEVICE_EVENT chip_id=%s kind=%s", event.chip_id, event.kind)

        if self._writer is None:
            return
        self._writer.write(json.dumps(out, ensure_ascii=False))

    @staticmethod
    def _append_lines(path: Path, batch: list[str]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            for line in batch:
                f.write(line + "\n")
