# linkshades/runtime/state.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

STATUS_SENT = "sent"
STATUS_OFFLINE = "offline"


@dataclass(frozen=True)
class HealthState:
    """
    Gateway-wide counters, safe to share across threads.
    """
    live_session_count: int
    known_device_count: int
    status: str = "ok"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "liveSessionCount": self.live_session_count,
            "knownDeviceCount": self.known_device_count,
        }


@dataclass(frozen=True)
class DispatchResult:
    """
    Outcome of pushing a message to a device. "offline" is a normal result,
    not an error: the device simply has no live session right now.
    """
    status: str
    chip_id: str
    command: Optional[int] = None
    percent: Optional[float] = None
    message: Optional[Dict[str, Any]] = None

    @property
    def sent(self) -> bool:
        return self.status == STATUS_SENT

    def as_dict(self) -> Dict[str, Any]:
        out = {
            "status": self.status,
            "chipID": self.chip_id,
            "position": self.percent,
            "command": self.command,
            "data": self.message,
        }
        return {k: v for k, v in out.items() if v is not None}
