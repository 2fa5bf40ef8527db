# linkshades/interfaces/device_sink.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from linkshades.model.device import DeviceRecord


@dataclass(frozen=True, slots=True)
class DeviceEvent:
    """
    Raised after every change to a device record, for discovery/state bridges.
    """
    chip_id: str
    kind: str                   # "status" | "offline" | "renamed"
    record: DeviceRecord
    ts_utc: Optional[str] = None


DeviceCallback = Callable[[DeviceEvent], None]


class DeviceSink(Protocol):
    def on_device_event(self, event: DeviceEvent) -> None: ...
    def close(self) -> None: ...
