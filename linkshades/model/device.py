# linkshades/model/device.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional

from .translate import raw_to_percent

DEFAULT_NAME_PREFIX = "LinkShade"


def default_name(chip_id: str) -> str:
    return f"{DEFAULT_NAME_PREFIX} {chip_id}"


def _parse_ts(v: Any) -> Optional[datetime]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v
    # Accept the trailing "Z" written by older stores
    s = str(v)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def _fmt_ts(v: Optional[datetime]) -> Optional[str]:
    return v.isoformat() if v is not None else None


@dataclass(frozen=True)
class DeviceRecord:
    """
    Persisted state of one shade controller.

    `current_percent` is derived from `raw_position` and is only ever set by
    with_status(); `online` mirrors whether the registry holds a live session.
    """
    chip_id: str
    name: str
    first_seen: datetime
    last_seen: datetime
    model: Optional[str] = None
    firmware: Any = None
    raw_position: Optional[int] = None
    current_percent: Optional[int] = None
    online: bool = False

    @classmethod
    def new(cls, chip_id: str, now: datetime) -> "DeviceRecord":
        return cls(chip_id=chip_id, name=default_name(chip_id), first_seen=now, last_seen=now)

    def with_status(
        self,
        *,
        now: datetime,
        model: Optional[str],
        firmware: Any,
        raw_position: Optional[int],
    ) -> "DeviceRecord":
        return replace(
            self,
            last_seen=now,
            model=model,
            firmware=firmware,
            raw_position=raw_position,
            current_percent=raw_to_percent(raw_position) if raw_position is not None else None,
            online=True,
        )

    def with_online(self, online: bool) -> "DeviceRecord":
        return replace(self, online=bool(online))

    def with_name(self, name: str) -> "DeviceRecord":
        return replace(self, name=name)

    # ---------------- serialization ----------------
    def to_dict(self) -> Dict[str, Any]:
        """Stored/served shape (camelCase keys, ISO-8601 timestamps)."""
        return {
            "chipID": self.chip_id,
            "name": self.name,
            "firstSeen": _fmt_ts(self.first_seen),
            "lastSeen": _fmt_ts(self.last_seen),
            "online": self.online,
            "model": self.model,
            "firmware": self.firmware,
            "rawPosition": self.raw_position,
            "currentPosition": self.current_percent,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DeviceRecord":
        chip_id = str(d["chipID"])
        first_seen = _parse_ts(d.get("firstSeen"))
        last_seen = _parse_ts(d.get("lastSeen")) or first_seen
        if first_seen is None or last_seen is None:
            raise ValueError(f"Device record {chip_id} has no timestamps")

        raw = d.get("rawPosition")
        raw = int(raw) if raw is not None else None
        return cls(
            chip_id=chip_id,
            name=str(d.get("name") or default_name(chip_id)),
            first_seen=first_seen,
            last_seen=last_seen,
            model=d.get("model"),
            firmware=d.get("firmware"),
            raw_position=raw,
            current_percent=raw_to_percent(raw) if raw is not None else None,
            online=bool(d.get("online", False)),
        )
