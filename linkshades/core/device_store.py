# linkshades/core/device_store.py
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

from linkshades.core.errors import PersistenceError
from linkshades.core.recording.async_writer import AsyncWriter
from linkshades.model.device import DeviceRecord

_log = logging.getLogger(__name__)

STORE_KEY = "shades"


class RecordStore(Protocol):
    def load(self) -> Dict[str, DeviceRecord]: ...
    def save(self, records: Mapping[str, DeviceRecord]) -> None: ...
    def close(self) -> None: ...


# ---------------- low-level json helpers ----------------

def snapshot_doc(records: Mapping[str, DeviceRecord]) -> Dict[str, Any]:
    return {STORE_KEY: {cid: rec.to_dict() for cid, rec in records.items()}}


def load_store_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f) or {}
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        _log.warning("STORE_JSON_CORRUPT path=%s error=%s", path, e)
        return {}
    except Exception:
        _log.exception("STORE_JSON_READ_FAILED path=%s", path)
        return {}


def write_store_json(path: Path, doc: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(doc, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)


def parse_records(doc: Dict[str, Any]) -> Dict[str, DeviceRecord]:
    shades = doc.get(STORE_KEY) if isinstance(doc, dict) else None
    if not isinstance(shades, dict):
        return {}

    out: Dict[str, DeviceRecord] = {}
    for key, raw in shades.items():
        try:
            rec = DeviceRecord.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            _log.warning("STORE_RECORD_SKIPPED key=%s error=%s", key, e)
            continue
        out[rec.chip_id] = rec
    return out


# ---------------- stores ----------------

class DeviceStore:
    """Synchronous JSON snapshot store: every save() rewrites the whole file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> Dict[str, DeviceRecord]:
        records = parse_records(load_store_json(self.path))
        if records:
            _log.info("STORE_LOADED path=%s devices=%d", self.path, len(records))
        else:
            _log.info("STORE_EMPTY path=%s", self.path)
        return records

    def save(self, records: Mapping[str, DeviceRecord]) -> None:
        try:
            write_store_json(self.path, snapshot_doc(records))
        except OSError as e:
            raise PersistenceError(
                "Could not write device store.",
                hint=str(e),
                details={"path": str(self.path)},
            ) from None

    def close(self) -> None:
        return None


class AsyncDeviceStore(DeviceStore):
    """
    Background store: save() queues a snapshot and returns immediately.

    Snapshots queued within one flush interval collapse into a single write
    of the newest one; close() writes the last pending snapshot.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        flush_interval_s: float = 0.5,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(path)
        self._writer: Optional[AsyncWriter] = AsyncWriter(
            self.path,
            self._write_snapshot,
            flush_interval=flush_interval_s,
            latest_only=True,
            name="linkshades-store",
            logger=logger or _log,
        )

    def save(self, records: Mapping[str, DeviceRecord]) -> None:
        if self._writer is None:
            raise PersistenceError("Device store already closed.", details={"path": str(self.path)})
        self._writer.write(snapshot_doc(records))

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None

    @staticmethod
    def _write_snapshot(path: Path, batch: List[Dict[str, Any]]) -> None:
        write_store_json(path, batch[-1])


def open_store(path: str | Path, *, mode: str = "sync", flush_interval_s: float = 0.5) -> DeviceStore:
    if mode == "async":
        return AsyncDeviceStore(path, flush_interval_s=flush_interval_s)
    if mode == "sync":
        return DeviceStore(path)
    raise ValueError(f"Unknown persist mode '{mode}' (expected 'sync' or 'async')")
