# linkshades/protocol/engine.py
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from linkshades.transport.base import Transport
from linkshades.transport.errors import TransportClosed, TransportError

from .core import Frame, FrameParser, build_handshake_response, parse_upgrade_request
from .core.defs import MAX_CONTROL_PAYLOAD, OP_BINARY, OP_CLOSE, OP_PING, OP_PONG, OP_TEXT, opcode_name
from .core.parser import DEFAULT_MAX_PAYLOAD
from .errors import HandshakeError, SendFailed
from ._internal.rx_worker import RxWorker

READ_CHUNK = 4096


class ProtocolEngine:
    """
    Low-level protocol engine for one device connection.

    Runs the upgrade handshake, then decodes inbound frames: control frames
    are answered here (ping -> pong, close -> shut down), data frames go to
    `on_message`. `on_closed` fires exactly once when the engine shuts down,
    whatever the cause.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        max_payload: int = DEFAULT_MAX_PAYLOAD,
        idle_timeout_s: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self.idle_timeout_s = float(idle_timeout_s) if idle_timeout_s else None

        self._log = logger or logging.getLogger(__name__)
        self._parser = FrameParser(max_payload=max_payload, logger=self._log)
        self._head = bytearray()

        self.on_message: Optional[Callable[[Frame], None]] = None
        self.on_open: Optional[Callable[[], None]] = None
        self.on_closed: Optional[Callable[[str], None]] = None

        self._rx_thread: Optional[RxWorker] = None
        self._lock = threading.Lock()
        self._handshaken = False
        self._closed = False
        self.close_reason: Optional[str] = None
        self.last_rx = time.monotonic()

    @property
    def is_open(self) -> bool:
        return self._handshaken and not self._closed

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ---------------- Send API ----------------
    def send_frame(self, frame: Frame) -> None:
        if self._closed:
            raise SendFailed(frame.type_name, "closed")

        raw = frame.encode()
        self._log.debug("SENDING_FRAME peer=%s opcode=%s len=%d", self.transport.peer, frame.type_name, len(raw))
        try:
            self.transport.write(raw)
            self.transport.flush()
        except TransportError as e:
            raise SendFailed(frame.type_name, str(e)) from None

    def send_text(self, data: str) -> None:
        self.send_frame(Frame.text(data))

    # ---------------- RX Thread ----------------
    def start_rx_thread(self) -> None:
        if self._rx_thread is None or not self._rx_thread.is_alive():
            self._rx_thread = RxWorker(self)
            self._rx_thread.start()
            self._log.debug("RX_THREAD_STARTED peer=%s", self.transport.peer)

    def stop_rx_thread(self) -> None:
        rx = self._rx_thread
        if rx is None:
            return
        rx.stop()
        if rx is not threading.current_thread():
            rx.join(timeout=2.0)

    def close(self, reason: str = "closed") -> None:
        """Close the connection and fire `on_closed` (once)."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self.close_reason = reason

        if self._rx_thread is not None:
            self._rx_thread.stop()

        try:
            self.transport.close()
        except Exception:
            self._log.exception("Failed to close transport peer=%s", self.transport.peer)

        cb = self.on_closed
        if cb is not None:
            try:
                cb(reason)
            except Exception:
                self._log.exception("ON_CLOSED_CALLBACK_ERROR peer=%s", self.transport.peer)

    # ---------------- RX Pump ----------------
    def _pump_rx(self) -> None:
        data = self.transport.read(READ_CHUNK)
        now = time.monotonic()

        if not data:
            if self.idle_timeout_s is not None and (now - self.last_rx) > self.idle_timeout_s:
                raise TransportClosed(f"idle for more than {self.idle_timeout_s}s")
            return

        self.last_rx = now

        if not self._handshaken:
            self._head.extend(data)
            if not self._try_handshake():
                return
        else:
            self._parser.feed(data)

        while not self._closed:
            frame = self._parser.get_frame()
            if frame is None:
                break
            try:
                self._dispatch(frame)
            except Exception:
                # The frame is already consumed; keep draining the buffer
                self._log.exception(
                    "DISPATCH_ERROR peer=%s opcode=%s len=%d",
                    self.transport.peer,
                    frame.type_name,
                    len(frame.payload),
                )

    def _try_handshake(self) -> bool:
        req = parse_upgrade_request(self._head)
        if req is None:
            return False  # Wait for the rest of the request head

        if not req.key:
            raise HandshakeError("missing Sec-WebSocket-Key")

        self.transport.write(build_handshake_response(req))
        self.transport.flush()
        self._handshaken = True
        self._head.clear()
        self._log.info("HANDSHAKE_OK peer=%s path=%s", self.transport.peer, req.path)

        if req.remainder:
            self._parser.feed(req.remainder)

        cb = self.on_open
        if cb is not None:
            cb()
        return True

    def _dispatch(self, frame: Frame) -> None:
        op = frame.opcode

        if op == OP_CLOSE:
            self._log.info("CLOSE_RECEIVED peer=%s", self.transport.peer)
            try:
                self.send_frame(Frame.close(frame.payload[:2]))
            except SendFailed:
                pass
            self.close("close_frame")
            return

        if op == OP_PING:
            if len(frame.payload) > MAX_CONTROL_PAYLOAD:
                self._log.warning(
                    "PING_TOO_LONG peer=%s len=%d (not answered)", self.transport.peer, len(frame.payload)
                )
                return
            try:
                self.send_frame(Frame.pong(frame.payload))
            except SendFailed as e:
                self._log.warning("PONG_SEND_FAILED peer=%s reason=%s", self.transport.peer, e.reason)
            return

        if op == OP_PONG:
            return

        if op in (OP_TEXT, OP_BINARY):
            cb = self.on_message
            if cb is not None:
                cb(frame)
            return

        self._log.debug("FRAME_IGNORED peer=%s opcode=%s", self.transport.peer, opcode_name(op))
