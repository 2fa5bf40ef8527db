# linkshades/protocol/core/frames/message.py
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from linkshades.protocol.errors import DecodeError


def _parse_chip_id(value: Any) -> Optional[str]:
    # Identities are kept as decimal strings so map keys stay stable.
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        return str(value) if value else None
    if isinstance(value, str) and value.strip().isdigit():
        s = str(int(value.strip()))
        return s if s != "0" else None
    raise DecodeError(f"Invalid chipID {value!r}")


def _optional_int(data: Dict[str, Any], key: str) -> Optional[int]:
    v = data.get(key)
    if v is None:
        return None
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise DecodeError(f"Field '{key}' must be numeric, got {v!r}")
    if isinstance(v, float) and not math.isfinite(v):
        raise DecodeError(f"Field '{key}' must be finite, got {v!r}")
    return int(v)


@dataclass(frozen=True)
class StatusMessage:
    """Device → gateway status report."""

    chip_id: Optional[str]
    model: Optional[str] = None
    version: Any = None
    position: Optional[int] = None
    first_load: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: bytes) -> "StatusMessage":
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"Status payload is not valid JSON: {e}") from None

        if not isinstance(data, dict):
            raise DecodeError(f"Status payload must be a JSON object, got {type(data).__name__}")

        model = data.get("model")
        return cls(
            chip_id=_parse_chip_id(data.get("chipID")),
            model=str(model) if model is not None else None,
            version=data.get("version"),
            position=_optional_int(data, "position"),
            first_load=bool(data.get("firstLoad", False)),
            raw=data,
        )


@dataclass(frozen=True)
class CommandMessage:
    """Gateway → device position command."""

    chip_id: str
    command: int

    def as_dict(self) -> Dict[str, int]:
        return {"chipID": int(self.chip_id), "command": int(self.command)}

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), separators=(",", ":"))
