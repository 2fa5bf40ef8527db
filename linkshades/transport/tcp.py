# linkshades/transport/tcp.py
from __future__ import annotations

import socket
import threading
from typing import Optional

from .base import Transport
from .errors import TransportClosed, TransportIOError, TransportOpenError


def _enable_keepalive(sock: socket.socket, *, idle: int = 30, interval: int = 10, count: int = 3) -> None:
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    except OSError:
        return
    # Linux-only knobs; absent elsewhere
    for name, value in (("TCP_KEEPIDLE", idle), ("TCP_KEEPINTVL", interval), ("TCP_KEEPCNT", count)):
        opt = getattr(socket, name, None)
        if opt is None:
            continue
        try:
            sock.setsockopt(socket.IPPROTO_TCP, opt, value)
        except OSError:
            pass


def _disable_nagle(sock: socket.socket) -> None:
    """Small command frames should leave immediately."""
    try:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    except OSError:
        pass


class SocketTransport(Transport):
    """
    Transport over one accepted TCP connection.

    read(n) waits at most `poll_timeout` seconds and returns b"" on timeout so
    the reading thread can check for shutdown and idle limits.
    """

    def __init__(self, sock: socket.socket, peer: str = "-", *, poll_timeout: float = 0.5):
        self.sock: Optional[socket.socket] = sock
        self.peer = peer
        self.poll_timeout = float(poll_timeout)
        self._write_lock = threading.Lock()

    @classmethod
    def from_accepted(cls, sock: socket.socket, addr, *, poll_timeout: float = 0.5) -> "SocketTransport":
        try:
            peer = f"{addr[0]}:{addr[1]}"
        except (TypeError, IndexError):
            peer = str(addr)
        return cls(sock, peer, poll_timeout=poll_timeout)

    def open(self) -> None:
        if self.sock is None:
            raise TransportOpenError(f"socket for {self.peer} already closed")
        try:
            self.sock.settimeout(self.poll_timeout)
        except OSError as e:
            raise TransportOpenError(str(e)) from None
        _disable_nagle(self.sock)
        _enable_keepalive(self.sock)

    def close(self) -> None:
        sock, self.sock = self.sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        finally:
            sock.close()

    @property
    def is_open(self) -> bool:
        return self.sock is not None

    def read(self, n: int) -> bytes:
        sock = self.sock
        if sock is None:
            raise TransportClosed("read while transport closed")

        try:
            data = sock.recv(n)
        except socket.timeout:
            return b""
        except OSError as e:
            raise TransportIOError(f"socket read failed: {e}") from None

        if not data:
            raise TransportClosed(f"peer {self.peer} closed the connection")
        return data

    def write(self, data: bytes) -> int:
        sock = self.sock
        if sock is None:
            raise TransportClosed("write while transport closed")

        with self._write_lock:
            try:
                sock.sendall(data)
            except OSError as e:
                raise TransportIOError(f"socket write failed: {e}") from None
        return len(data)

    def flush(self) -> None:
        # sendall() leaves nothing buffered on our side
        if self.sock is None:
            raise TransportClosed("flush while transport closed")
