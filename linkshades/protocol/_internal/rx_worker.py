# linkshades/protocol/_internal/rx_worker.py
from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from linkshades.protocol.errors import FrameTooLarge, HandshakeError
from linkshades.transport.errors import TransportClosed, TransportError

if TYPE_CHECKING:
    from linkshades.protocol.engine import ProtocolEngine


class RxWorker(threading.Thread):
    """Thread that reads from one connection and feeds its ProtocolEngine until it closes."""

    def __init__(self, proto_engine: "ProtocolEngine"):
        super().__init__(daemon=True, name=f"linkshades-rx-{proto_engine.transport.peer}")
        self.engine = proto_engine
        self._stop_event = threading.Event()

    def run(self) -> None:
        reason = "stopped"
        log = self.engine._log
        peer = self.engine.transport.peer

        while not self._stop_event.is_set() and not self.engine.is_closed:
            try:
                self.engine._pump_rx()
            except TransportClosed as e:
                reason = "disconnected"
                log.info("CONNECTION_CLOSED peer=%s detail=%s", peer, e)
                break
            except HandshakeError as e:
                reason = "handshake_rejected"
                log.warning("HANDSHAKE_REJECTED peer=%s reason=%s", peer, e.reason)
                break
            except FrameTooLarge as e:
                reason = "frame_too_large"
                log.warning("FRAME_TOO_LARGE peer=%s declared=%d limit=%d", peer, e.declared, e.limit)
                break
            except TransportError as e:
                reason = "transport_error"
                log.warning("TRANSPORT_ERROR peer=%s error=%s", peer, e)
                break
            except Exception:
                log.exception("RX_WORKER_EXCEPTION peer=%s", peer)
                self._stop_event.wait(0.01)
            else:
                self._stop_event.wait(0.001)

        self.engine.close(reason)

    def stop(self) -> None:
        self._stop_event.set()
