from __future__ import annotations

import socket

import pytest

import linkshades.transport.tcp as mod
from linkshades.transport.errors import TransportClosed, TransportIOError, TransportOpenError


class FakeSock:
    def __init__(self, recv_script=()):
        self.recv_script = list(recv_script)
        self.sent = []
        self.opts = {}
        self.timeout = None
        self.shutdown_called = False
        self.closed = False

    def settimeout(self, t):
        self.timeout = t

    def setsockopt(self, level, opt, value):
        self.opts[(level, opt)] = value

    def recv(self, n):
        item = self.recv_script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def sendall(self, data):
        if isinstance(self.sent, Exception):
            raise self.sent
        self.sent.append(bytes(data))

    def shutdown(self, how):
        self.shutdown_called = True
        raise OSError("not connected")

    def close(self):
        self.closed = True


def test_from_accepted_formats_peer():
    t = mod.SocketTransport.from_accepted(FakeSock(), ("192.168.1.50", 51234))
    assert t.peer == "192.168.1.50:51234"


def test_open_sets_timeout_and_nodelay():
    s = FakeSock()
    t = mod.SocketTransport(s, "p", poll_timeout=0.25)
    t.open()
    assert s.timeout == 0.25
    assert s.opts[(socket.IPPROTO_TCP, socket.TCP_NODELAY)] == 1
    assert s.opts[(socket.SOL_SOCKET, socket.SO_KEEPALIVE)] == 1


def test_read_timeout_returns_empty():
    t = mod.SocketTransport(FakeSock([socket.timeout()]), "p")
    assert t.read(10) == b""


def test_read_eof_raises_closed():
    t = mod.SocketTransport(FakeSock([b""]), "p")
    with pytest.raises(TransportClosed):
        t.read(10)


def test_read_oserror_raises_io_error():
    t = mod.SocketTransport(FakeSock([ConnectionResetError("reset")]), "p")
    with pytest.raises(TransportIOError):
        t.read(10)


def test_read_returns_data():
    t = mod.SocketTransport(FakeSock([b"abc"]), "p")
    assert t.read(10) == b"abc"


def test_write_failure_raises_io_error():
    s = FakeSock()
    s.sent = BrokenPipeError("pipe")
    t = mod.SocketTransport(s, "p")
    with pytest.raises(TransportIOError):
        t.write(b"x")


def test_close_is_idempotent_and_tolerates_shutdown_error():
    s = FakeSock()
    t = mod.SocketTransport(s, "p")
    t.close()
    t.close()
    assert s.shutdown_called
    assert s.closed
    assert not t.is_open

    with pytest.raises(TransportClosed):
        t.read(1)
    with pytest.raises(TransportClosed):
        t.write(b"x")
    with pytest.raises(TransportOpenError):
        t.open()


def test_socketpair_round_trip():
    a, b = socket.socketpair()
    t = mod.SocketTransport(a, "pair", poll_timeout=0.2)
    try:
        t.open()
        t.write(b"hello")
        assert b.recv(16) == b"hello"

        b.sendall(b"world")
        assert t.read(16) == b"world"

        # Nothing pending: poll timeout, not an error
        assert t.read(16) == b""

        b.close()
        with pytest.raises(TransportClosed):
            t.read(16)
    finally:
        t.close()
