# linkshades/runtime/registry.py
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from linkshades.core.device_store import RecordStore
from linkshades.core.errors import PersistenceError
from linkshades.interfaces.device_sink import DeviceCallback, DeviceEvent, DeviceSink
from linkshades.model.device import DeviceRecord
from linkshades.protocol.core import CommandMessage, StatusMessage
from linkshades.protocol.errors import SendFailed
from linkshades.runtime.state import STATUS_OFFLINE, STATUS_SENT, DispatchResult, HealthState

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LiveSession(Protocol):
    """What the registry needs from a session (DeviceSession satisfies it)."""
    peer: str
    chip_id: Optional[str]
    superseded: bool

    def send_json(self, data: Dict[str, Any]) -> None: ...
    def close(self, reason: str = "closed") -> None: ...


class DeviceRegistry:
    """
    Process-wide device state: live sessions by chipID plus the persisted
    record store.

    Every key of the live map is also a key of the record map, and a record's
    `online` flag is True exactly while its chipID is in the live map. All
    mutations run under one lock; observers are notified after it is released.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._store = store
        self._clock = clock or _utcnow
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._live: Dict[str, LiveSession] = {}
        self._records: Dict[str, DeviceRecord] = {}

        self._callbacks: List[DeviceCallback] = []
        self._sinks: List[DeviceSink] = []

    # ---------------- lifecycle ----------------
    def load(self) -> int:
        """Load persisted records. Nothing is live at startup, so all start offline."""
        records = self._store.load()
        with self._lock:
            self._live.clear()
            self._records = {cid: rec.with_online(False) for cid, rec in records.items()}
            return len(self._records)

    def shutdown(self) -> None:
        """Close every live session; each teardown marks its device offline."""
        with self._lock:
            sessions = list(self._live.values())
        for s in sessions:
            s.close("shutdown")

    # ---------------- observers ----------------
    def subscribe(self, cb: DeviceCallback) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(cb)

        def _unsubscribe() -> None:
            with self._lock:
                if cb in self._callbacks:
                    self._callbacks.remove(cb)

        return _unsubscribe

    def add_sink(self, sink: DeviceSink) -> None:
        with self._lock:
            if sink not in self._sinks:
                self._sinks.append(sink)

    def remove_sink(self, sink: DeviceSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    # ---------------- session events ----------------
    def ingest_status(self, session: LiveSession, msg: StatusMessage) -> DeviceRecord:
        """Bind `session` to the message's chipID and apply the reported status."""
        chip_id = msg.chip_id
        if chip_id is None:
            raise ValueError("status message has no chipID")

        now = self._clock()
        events: List[DeviceEvent] = []
        superseded: Optional[LiveSession] = None

        with self._lock:
            # Same connection now reporting a different identity
            prev_id = session.chip_id
            if prev_id is not None and prev_id != chip_id and self._live.get(prev_id) is session:
                events.extend(self._unbind_locked(prev_id))

            current = self._live.get(chip_id)
            if current is not None and current is not session:
                current.superseded = True
                superseded = current

            self._live[chip_id] = session
            session.chip_id = chip_id

            rec = self._records.get(chip_id)
            if rec is None:
                rec = DeviceRecord.new(chip_id, now)
                self._log.info("DEVICE_DISCOVERED chip_id=%s peer=%s", chip_id, session.peer)

            rec = rec.with_status(
                now=now,
                model=msg.model,
                firmware=msg.version,
                raw_position=msg.position,
            )
            self._records[chip_id] = rec
            self._persist_locked()
            events.append(DeviceEvent(chip_id=chip_id, kind="status", record=rec, ts_utc=now.isoformat()))

        self._emit(events)

        if superseded is not None:
            self._log.warning(
                "SESSION_SUPERSEDED chip_id=%s old_peer=%s new_peer=%s",
                chip_id,
                superseded.peer,
                session.peer,
            )
            superseded.close("superseded")

        return rec

    def teardown(self, session: LiveSession, *, reason: str = "closed") -> None:
        chip_id = session.chip_id
        if chip_id is None:
            return

        with self._lock:
            if self._live.get(chip_id) is not session:
                # A newer session owns this chipID now
                self._log.debug("STALE_TEARDOWN chip_id=%s peer=%s reason=%s", chip_id, session.peer, reason)
                return
            events = self._unbind_locked(chip_id)

        self._log.info("DEVICE_OFFLINE chip_id=%s reason=%s", chip_id, reason)
        self._emit(events)

    def _unbind_locked(self, chip_id: str) -> List[DeviceEvent]:
        self._live.pop(chip_id, None)
        rec = self._records.get(chip_id)
        if rec is None:
            return []
        rec = rec.with_online(False)
        self._records[chip_id] = rec
        self._persist_locked()
        return [DeviceEvent(chip_id=chip_id, kind="offline", record=rec, ts_utc=self._clock().isoformat())]

    # ---------------- commands ----------------
    def dispatch_command(self, chip_id: str, command: int) -> DispatchResult:
        msg = CommandMessage(chip_id=chip_id, command=int(command))
        result = self.dispatch_message(chip_id, msg.as_dict())
        return DispatchResult(
            status=result.status,
            chip_id=chip_id,
            command=msg.command if result.sent else None,
        )

    def dispatch_message(self, chip_id: str, data: Dict[str, Any]) -> DispatchResult:
        """Fire-and-forget send to the device's live session, if any."""
        with self._lock:
            session = self._live.get(chip_id)

        if session is None:
            self._log.info("DISPATCH_OFFLINE chip_id=%s", chip_id)
            return DispatchResult(status=STATUS_OFFLINE, chip_id=chip_id)

        try:
            session.send_json(data)
        except SendFailed as e:
            self._log.warning("DISPATCH_FAILED chip_id=%s peer=%s reason=%s", chip_id, session.peer, e.reason)
            session.close("send_failed")
            return DispatchResult(status=STATUS_OFFLINE, chip_id=chip_id)

        return DispatchResult(status=STATUS_SENT, chip_id=chip_id, message=dict(data))

    # ---------------- records ----------------
    def rename(self, chip_id: str, name: str) -> Optional[DeviceRecord]:
        with self._lock:
            rec = self._records.get(chip_id)
            if rec is None:
                return None
            rec = rec.with_name(name)
            self._records[chip_id] = rec
            self._persist_locked()
            event = DeviceEvent(chip_id=chip_id, kind="renamed", record=rec, ts_utc=self._clock().isoformat())

        self._emit([event])
        return rec

    def get(self, chip_id: str) -> Optional[DeviceRecord]:
        with self._lock:
            rec = self._records.get(chip_id)
            return rec.with_online(chip_id in self._live) if rec is not None else None

    def records(self) -> List[DeviceRecord]:
        with self._lock:
            return [rec.with_online(cid in self._live) for cid, rec in self._records.items()]

    def is_live(self, chip_id: str) -> bool:
        with self._lock:
            return chip_id in self._live

    def session_for(self, chip_id: str) -> Optional[LiveSession]:
        with self._lock:
            return self._live.get(chip_id)

    def health(self) -> HealthState:
        with self._lock:
            return HealthState(
                live_session_count=len(self._live),
                known_device_count=len(self._records),
            )

    # ---------------- internals ----------------
    def _persist_locked(self) -> None:
        try:
            self._store.save(self._records)
        except PersistenceError as e:
            self._log.warning("PERSIST_FAILED error=%s hint=%s", e.message, e.hint)

    def _emit(self, events: List[DeviceEvent]) -> None:
        if not events:
            return

        with self._lock:
            cbs = list(self._callbacks)
            sinks = list(self._sinks)

        for ev in events:
            for cb in cbs:
                try:
                    cb(ev)
                except Exception:
                    self._log.exception("DEVICE_CALLBACK_ERROR chip_id=%s kind=%s", ev.chip_id, ev.kind)
            for s in sinks:
                try:
                    s.on_device_event(ev)
                except Exception:
                    self._log.exception("DEVICE_SINK_ERROR chip_id=%s kind=%s", ev.chip_id, ev.kind)
