from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

import linkshades.runtime.device_session as mod
from linkshades.model.device import DeviceRecord
from linkshades.protocol.core import Frame
from linkshades.protocol.core.mask import apply_mask
from linkshades.protocol.errors import SendFailed
from linkshades.transport.errors import TransportIOError, TransportOpenError


class FakeTransport:
    peer = "10.0.0.9:4001"

    def __init__(self, *, fail_open=False, chunks=()):
        self.chunks = list(chunks)
        self.writes = []
        self.closed = False
        self.fail_open = fail_open
        self.fail_writes = False

    def open(self):
        if self.fail_open:
            raise TransportOpenError("refused")

    def read(self, n):
        return self.chunks.pop(0) if self.chunks else b""

    def write(self, data):
        if self.fail_writes:
            raise TransportIOError("reset")
        self.writes.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    def close(self):
        self.closed = True

    @property
    def is_open(self):
        return not self.closed


class FakeRegistry:
    def __init__(self):
        self.ingested = []
        self.torn_down = []

    def ingest_status(self, session, msg):
        self.ingested.append(msg)
        session.chip_id = msg.chip_id
        now = datetime.now(timezone.utc)
        return DeviceRecord.new(msg.chip_id, now).with_status(
            now=now, model=msg.model, firmware=msg.version, raw_position=msg.position
        )

    def teardown(self, session, *, reason="closed"):
        self.torn_down.append((session.chip_id, reason))


def _session(**kw):
    t = FakeTransport(**kw)
    reg = FakeRegistry()
    return mod.DeviceSession(t, reg), t, reg


def test_status_message_is_ingested():
    s, _, reg = _session()
    s._on_message(Frame.text('{"chipID":42,"position":850}'))
    assert [m.chip_id for m in reg.ingested] == ["42"]
    assert s.chip_id == "42"


def test_invalid_payload_is_dropped():
    s, t, reg = _session()
    s._on_message(Frame.text("{not json"))
    assert reg.ingested == []
    assert not t.closed


def test_status_without_chip_id_is_ignored():
    s, _, reg = _session()
    s._on_message(Frame.text('{"position":500}'))
    assert reg.ingested == []
    assert s.chip_id is None


def test_send_json_writes_compact_text_frame():
    s, t, _ = _session()
    s.send_json({"chipID": 42, "command": 87})
    payload = b'{"chipID":42,"command":87}'
    assert t.writes == [bytes([0x81, len(payload)]) + payload]
    assert json.loads(t.writes[0][2:]) == {"chipID": 42, "command": 87}


def test_send_failure_propagates():
    s, t, _ = _session()
    t.fail_writes = True
    with pytest.raises(SendFailed):
        s.send_json({"chipID": 1, "command": 80})


def test_close_reports_teardown_once():
    s, t, reg = _session()
    s.chip_id = "42"
    s.close("superseded")
    s.close("again")
    assert t.closed
    assert s.is_closed
    assert reg.torn_down == [("42", "superseded")]


def test_open_failure_closes_without_reader(monkeypatch):
    s, t, reg = _session(fail_open=True)
    started = []
    monkeypatch.setattr(s._engine, "start_rx_thread", lambda: started.append(True))

    s.start()

    assert started == []
    assert s.is_closed
    assert reg.torn_down == [(None, "open_failed")]


MASK = b"\x0a\x0b\x0c\x0d"

HANDSHAKE = (
    b"GET / HTTP/1.1\r\n"
    b"Upgrade: websocket\r\n"
    b"Connection: Upgrade\r\n"
    b"Sec-WebSocket-Key: dGhlIHNhbXBsZSBub25jZQ==\r\n\r\n"
)


def _text_frame(payload: bytes) -> bytes:
    return bytes([0x81, 0x80 | len(payload)]) + MASK + apply_mask(payload, MASK)


def test_non_finite_position_is_dropped():
    s, t, reg = _session()
    s._on_message(Frame.text('{"chipID":42,"position":NaN}'))
    assert reg.ingested == []
    assert not t.closed


def test_bad_frame_does_not_hold_back_the_next_one():
    chunk = _text_frame(b'{"chipID":42,"position":NaN}') + _text_frame(b'{"chipID":42,"position":500}')
    s, t, reg = _session(chunks=[HANDSHAKE, chunk])

    s._engine._pump_rx()
    s._engine._pump_rx()

    assert [(m.chip_id, m.position) for m in reg.ingested] == [("42", 500)]
    assert s.is_open
