# linkshades/runtime/device_session.py
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from linkshades.protocol.core import Frame, StatusMessage
from linkshades.protocol.core.parser import DEFAULT_MAX_PAYLOAD
from linkshades.protocol.engine import ProtocolEngine
from linkshades.protocol.errors import DecodeError
from linkshades.transport.base import Transport
from linkshades.transport.errors import TransportOpenError

if TYPE_CHECKING:
    from linkshades.runtime.registry import DeviceRegistry


class DeviceSession:
    """
    One live device connection.

    Owns its transport exclusively. The session is anonymous until the first
    status message carrying a chipID binds it in the registry; teardown is
    reported to the registry once, whatever closed the connection.
    """

    def __init__(
        self,
        transport: Transport,
        registry: "DeviceRegistry",
        *,
        idle_timeout_s: Optional[float] = None,
        max_payload: int = DEFAULT_MAX_PAYLOAD,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self.peer = transport.peer
        self._registry = registry
        self._log = logger or logging.getLogger(__name__)

        # Written by the registry under its lock
        self.chip_id: Optional[str] = None
        self.superseded = False

        self._engine = ProtocolEngine(
            transport,
            max_payload=max_payload,
            idle_timeout_s=idle_timeout_s,
            logger=self._log,
        )
        self._engine.on_open = self._on_open
        self._engine.on_message = self._on_message
        self._engine.on_closed = self._on_closed

    def __repr__(self) -> str:
        return f"DeviceSession(peer={self.peer!r}, chip_id={self.chip_id!r})"

    @property
    def is_open(self) -> bool:
        return self._engine.is_open

    @property
    def is_closed(self) -> bool:
        return self._engine.is_closed

    def start(self) -> None:
        """Start the reader thread; the handshake runs on it."""
        try:
            self.transport.open()
        except TransportOpenError as e:
            self._log.warning("SESSION_OPEN_FAILED peer=%s error=%s", self.peer, e)
            self._engine.close("open_failed")
            return
        self._engine.start_rx_thread()

    def close(self, reason: str = "closed") -> None:
        self._engine.close(reason)

    # ---------------- outbound ----------------
    def send_json(self, data: Dict[str, Any]) -> None:
        """Send one JSON text message. Raises SendFailed if the write fails."""
        text = json.dumps(data, separators=(",", ":"))
        self._log.info("WS_SEND peer=%s chip_id=%s data=%s", self.peer, self.chip_id, text)
        self._engine.send_text(text)

    # ---------------- engine callbacks ----------------
    def _on_open(self) -> None:
        self._log.info("SESSION_OPEN peer=%s", self.peer)

    def _on_message(self, frame: Frame) -> None:
        self._log.debug("WS_RECV peer=%s payload=%r", self.peer, frame.payload[:256])

        try:
            msg = StatusMessage.from_payload(frame.payload)
        except DecodeError as e:
            self._log.warning("PAYLOAD_DROPPED peer=%s error=%s", self.peer, e)
            return

        if msg.chip_id is None:
            self._log.debug("STATUS_WITHOUT_CHIP_ID peer=%s", self.peer)
            return

        rec = self._registry.ingest_status(self, msg)
        self._log.info(
            "SHADE_STATUS chip_id=%s raw=%s percent=%s model=%s fw=%s",
            rec.chip_id,
            rec.raw_position,
            rec.current_percent,
            rec.model,
            rec.firmware,
        )

    def _on_closed(self, reason: str) -> None:
        self._log.info("SESSION_CLOSED peer=%s chip_id=%s reason=%s", self.peer, self.chip_id or "unknown", reason)
        self._registry.teardown(self, reason=reason)
