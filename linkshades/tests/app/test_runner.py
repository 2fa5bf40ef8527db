from __future__ import annotations

import json
import socket
import struct
import time

import pytest

import linkshades.app.runner as mod
from linkshades.app.config import GatewayConfig
from linkshades.core.device_store import DeviceStore
from linkshades.core.errors import ListenerError
from linkshades.protocol.core.mask import apply_mask

MASK = b"\x5a\xa5\x0f\xf0"

HANDSHAKE = (
    b"GET / HTTP/1.1\r\n"
    b"Host: gateway\r\n"
    b"Upgrade: websocket\r\n"
    b"Connection: Upgrade\r\n"
    b"Sec-WebSocket-Key: dGhlIHNhbXBsZSBub25jZQ==\r\n"
    b"Sec-WebSocket-Version: 13\r\n\r\n"
)


def _wait_for(pred, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if pred():
            return True
        time.sleep(0.02)
    return pred()


def _text_frame(doc) -> bytes:
    payload = json.dumps(doc).encode()
    return bytes([0x81, 0x80 | len(payload)]) + MASK + apply_mask(payload, MASK)


def _recv_exact(sock, n):
    buf = b""
    while len(buf) < n:
        chunk = sock.recv(n - len(buf))
        if not chunk:
            raise ConnectionError("server closed")
        buf += chunk
    return buf


def _recv_head(sock):
    buf = b""
    while b"\r\n\r\n" not in buf:
        chunk = sock.recv(1024)
        if not chunk:
            raise ConnectionError("server closed")
        buf += chunk
    return buf


def _recv_frame(sock):
    b0, b1 = _recv_exact(sock, 2)
    n = b1 & 0x7F
    if n == 126:
        n = struct.unpack(">H", _recv_exact(sock, 2))[0]
    assert not b1 & 0x80
    return b0 & 0x0F, _recv_exact(sock, n)


def _device(address, chip_id=42, position=850):
    c = socket.create_connection(address, timeout=3.0)
    c.sendall(HANDSHAKE)
    head = _recv_head(c)
    assert head.startswith(b"HTTP/1.1 101")
    c.sendall(_text_frame({"chipID": chip_id, "position": position, "model": "wired", "version": 24}))
    return c


@pytest.fixture
def gateway(tmp_path):
    cfg = GatewayConfig(host="127.0.0.1", port=0, data_file=str(tmp_path / "shades.json"))
    run = mod.start_gateway(cfg)
    try:
        yield run
    finally:
        run.stop()


def test_device_status_command_and_disconnect(gateway, tmp_path):
    ctl = gateway.controller
    dev = _device(gateway.address)
    try:
        assert _wait_for(lambda: ctl.get_health().live_session_count == 1)
        assert ctl.get_device(42).current_percent == 85

        res = ctl.set_percent(42, 50)
        assert res.sent
        assert _recv_frame(dev) == (0x1, b'{"chipID":42,"command":87}')

        # ping is answered with the same payload
        dev.sendall(bytes([0x89, 0x84]) + MASK + apply_mask(b"beat", MASK))
        assert _recv_frame(dev) == (0xA, b"beat")
    finally:
        dev.close()

    assert _wait_for(lambda: ctl.get_health().live_session_count == 0)
    assert ctl.get_device(42).online is False
    assert ctl.set_percent(42, 50).status == "offline"

    stored = DeviceStore(tmp_path / "shades.json").load()
    assert stored["42"].online is False
    assert stored["42"].current_percent == 85


def test_reconnect_supersedes_previous_connection(gateway):
    ctl = gateway.controller
    first = _device(gateway.address, position=100)
    assert _wait_for(lambda: ctl.get_device(42) is not None)
    second = _device(gateway.address, position=200)
    try:
        assert _wait_for(lambda: ctl.get_device(42).current_percent == 20)

        # the old connection is dropped by the gateway
        first.settimeout(3.0)
        assert first.recv(16) == b""

        assert ctl.get_health().live_session_count == 1
        assert ctl.get_device(42).online is True

        ctl.set_raw_command(42, 90)
        assert _recv_frame(second) == (0x1, b'{"chipID":42,"command":90}')
    finally:
        first.close()
        second.close()


def test_handshake_without_key_is_dropped(gateway):
    c = socket.create_connection(gateway.address, timeout=3.0)
    try:
        c.sendall(HANDSHAKE.replace(b"Sec-WebSocket-Key: dGhlIHNhbXBsZSBub25jZQ==\r\n", b""))
        assert c.recv(64) == b""
    finally:
        c.close()
    assert gateway.controller.get_health().live_session_count == 0


def test_stop_marks_devices_offline(tmp_path):
    cfg = GatewayConfig(host="127.0.0.1", port=0, data_file=str(tmp_path / "shades.json"))
    run = mod.start_gateway(cfg)
    dev = _device(run.address)
    try:
        assert _wait_for(lambda: run.controller.get_health().live_session_count == 1)
        run.stop()
        assert _wait_for(lambda: run.controller.get_health().live_session_count == 0)
    finally:
        dev.close()

    assert DeviceStore(tmp_path / "shades.json").load()["42"].online is False


def test_event_log_is_written(tmp_path):
    log_path = tmp_path / "events.jsonl"
    cfg = GatewayConfig(
        host="127.0.0.1",
        port=0,
        data_file=str(tmp_path / "shades.json"),
        event_log=str(log_path),
    )
    with mod.start_gateway(cfg) as run:
        dev = _device(run.address)
        try:
            assert _wait_for(lambda: run.controller.get_health().live_session_count == 1)
        finally:
            dev.close()
        assert _wait_for(lambda: run.controller.get_health().live_session_count == 0)

    kinds = [json.loads(x)["kind"] for x in log_path.read_text(encoding="utf-8").splitlines()]
    assert kinds == ["status", "offline"]


def test_listen_failure_raises_listener_error(tmp_path):
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    try:
        cfg = GatewayConfig(host="127.0.0.1", port=blocker.getsockname()[1], data_file=str(tmp_path / "s.json"))
        with pytest.raises(ListenerError) as ei:
            mod.start_gateway(cfg)
        assert ei.value.details["port"] == cfg.port
    finally:
        blocker.close()
