# linkshades/transport/server.py
from __future__ import annotations

import logging
import socket
import threading
import weakref
from typing import Callable, Optional, Tuple

from .tcp import SocketTransport

ConnectionHandler = Callable[[SocketTransport], None]


class TcpListener:
    """
    Accept loop for device connections.

    Each accepted socket is wrapped in a SocketTransport and handed to
    `on_connection` on the accept thread; the handler must not block (it is
    expected to start its own reader thread).
    """

    def __init__(
        self,
        host: str,
        port: int,
        on_connection: ConnectionHandler,
        *,
        backlog: int = 64,
        poll_timeout: float = 0.5,
        logger: Optional[logging.Logger] = None,
    ):
        self.host = host
        self.port = int(port)
        self._on_connection = on_connection
        self._backlog = int(backlog)
        self._poll_timeout = float(poll_timeout)
        self._log = logger or logging.getLogger(__name__)

        self._sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._conns: "weakref.WeakSet[SocketTransport]" = weakref.WeakSet()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the port is resolved when 0 was requested."""
        if self._sock is None:
            return (self.host, self.port)
        return self._sock.getsockname()[:2]

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return

        s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((self.host, self.port))
            s.listen(self._backlog)
        except OSError:
            s.close()
            raise
        # Periodic wakeups so stop() is honoured without a self-connect
        s.settimeout(self._poll_timeout)

        self._sock = s
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._accept_loop, name="linkshades-accept", daemon=True)
        self._thread.start()

        host, port = self.address
        self._log.info("LISTENER_STARTED host=%s port=%d", host, port)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._poll_timeout * 4)
            self._thread = None

        # Closing the sockets makes each reader thread tear its session down
        for t in list(self._conns):
            t.close()

        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None
            self._log.info("LISTENER_STOPPED")

    def _accept_loop(self) -> None:
        sock = self._sock
        assert sock is not None

        while not self._stop_event.is_set():
            try:
                conn, addr = sock.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._stop_event.is_set():
                    break
                self._log.exception("ACCEPT_FAILED")
                self._stop_event.wait(0.1)
                continue

            transport = SocketTransport.from_accepted(conn, addr, poll_timeout=self._poll_timeout)
            self._log.info("CONNECTION_ACCEPTED peer=%s", transport.peer)
            self._conns.add(transport)

            try:
                self._on_connection(transport)
            except Exception:
                self._log.exception("CONNECTION_HANDLER_FAILED peer=%s", transport.peer)
                transport.close()
