# linkshades/app/controller.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Union

from linkshades.interfaces.device_sink import DeviceCallback, DeviceSink
from linkshades.model.device import DeviceRecord
from linkshades.model.translate import Calibration
from linkshades.runtime.registry import DeviceRegistry
from linkshades.runtime.state import DispatchResult, HealthState

ChipId = Union[int, str]


def normalize_chip_id(chip_id: ChipId) -> str:
    """Map 42, "42" and " 042 " to the registry key "42"."""
    if isinstance(chip_id, bool):
        raise ValueError(f"Invalid chip id {chip_id!r}")
    try:
        return str(int(str(chip_id).strip()))
    except ValueError:
        raise ValueError(f"Invalid chip id {chip_id!r}") from None


class GatewayController:
    """
    Control surface for external adapters (HTTP handlers, message-bus bridges).

    Every call returns a plain result; an unreachable device is reported as
    status "offline", never raised.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        *,
        calibration: Calibration,
        logger: Optional[logging.Logger] = None,
    ):
        self._registry = registry
        self._calibration = calibration
        self._log = logger or logging.getLogger(__name__)

        self._sinks: List[DeviceSink] = []

    @property
    def calibration(self) -> Calibration:
        return self._calibration

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    # ---------------- queries ----------------
    def list_devices(self) -> List[DeviceRecord]:
        return self._registry.records()

    def get_device(self, chip_id: ChipId) -> Optional[DeviceRecord]:
        return self._registry.get(normalize_chip_id(chip_id))

    def get_health(self) -> HealthState:
        return self._registry.health()

    # ---------------- commands ----------------
    def set_percent(self, chip_id: ChipId, percent: float) -> DispatchResult:
        cid = normalize_chip_id(chip_id)
        command = self._calibration.percent_to_command(percent)
        self._log.info("SET_PERCENT chip_id=%s percent=%s command=%d", cid, percent, command)

        result = self._registry.dispatch_command(cid, command)
        if not result.sent:
            return result
        return replace(result, percent=percent)

    def set_raw_command(self, chip_id: ChipId, command: int) -> DispatchResult:
        cid = normalize_chip_id(chip_id)
        self._log.info("SET_RAW_COMMAND chip_id=%s command=%d", cid, int(command))
        return self._registry.dispatch_command(cid, int(command))

    def send_raw(self, chip_id: ChipId, message: Dict[str, Any]) -> DispatchResult:
        """Send an arbitrary JSON object to the device (protocol exploration)."""
        if not isinstance(message, dict):
            raise TypeError(f"message must be a dict, got {type(message).__name__}")
        cid = normalize_chip_id(chip_id)
        self._log.info("SEND_RAW chip_id=%s keys=%s", cid, sorted(message))
        return self._registry.dispatch_message(cid, message)

    def rename_device(self, chip_id: ChipId, name: str) -> Optional[DeviceRecord]:
        name = str(name).strip()
        if not name:
            raise ValueError("Device name must not be empty")
        return self._registry.rename(normalize_chip_id(chip_id), name)

    # ---------------- events ----------------
    def on_device_updated(self, cb: DeviceCallback) -> Callable[[], None]:
        return self._registry.subscribe(cb)

    def add_sink(self, sink: DeviceSink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)
            self._registry.add_sink(sink)

    def remove_sink(self, sink: DeviceSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)
            self._registry.remove_sink(sink)

    def close(self) -> None:
        for s in list(self._sinks):
            self._registry.remove_sink(s)
            try:
                s.close()
            except Exception:
                self._log.exception("SINK_CLOSE_ERROR")
        self._sinks.clear()
