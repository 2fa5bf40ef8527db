# linkshades/app/runner.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from linkshades.app.config import GatewayConfig
from linkshades.app.controller import GatewayController
from linkshades.core.device_store import DeviceStore, open_store
from linkshades.core.errors import ListenerError
from linkshades.core.recording.events import DeviceEventTrace
from linkshades.runtime.device_session import DeviceSession
from linkshades.runtime.registry import DeviceRegistry
from linkshades.transport.server import ConnectionHandler, TcpListener
from linkshades.transport.tcp import SocketTransport


def make_session_handler(
    registry: DeviceRegistry,
    cfg: GatewayConfig,
    *,
    logger: Optional[logging.Logger] = None,
) -> ConnectionHandler:
    log = logger or logging.getLogger("linkshades.session")

    def _on_connection(transport: SocketTransport) -> None:
        session = DeviceSession(
            transport,
            registry,
            idle_timeout_s=cfg.idle_timeout_s,
            max_payload=cfg.max_payload,
            logger=log,
        )
        session.start()

    return _on_connection


@dataclass
class GatewayRun:
    config: GatewayConfig
    store: DeviceStore
    registry: DeviceRegistry
    controller: GatewayController
    listener: TcpListener

    @property
    def address(self):
        return self.listener.address

    def stop(self) -> None:
        log = logging.getLogger(__name__)
        try:
            self.listener.stop()
        except Exception:
            log.exception("LISTENER_STOP_ERROR")
        try:
            self.registry.shutdown()
        except Exception:
            log.exception("REGISTRY_SHUTDOWN_ERROR")
        self.controller.close()
        try:
            self.store.close()
        except Exception:
            log.exception("STORE_CLOSE_ERROR")

    def __enter__(self) -> "GatewayRun":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def start_gateway(
    cfg: GatewayConfig,
    *,
    store: Optional[DeviceStore] = None,
    logger: Optional[logging.Logger] = None,
) -> GatewayRun:
    """Load the device store, start listening and return the running gateway."""
    log = logger or logging.getLogger(__name__)

    store = store or open_store(cfg.data_file, mode=cfg.persist_mode, flush_interval_s=cfg.persist_interval_s)
    registry = DeviceRegistry(store, logger=logging.getLogger("linkshades.registry"))
    known = registry.load()

    controller = GatewayController(registry, calibration=cfg.calibration, logger=log)
    if cfg.event_log:
        controller.add_sink(
            DeviceEventTrace(logger=logging.getLogger("linkshades.events"), file_path=Path(cfg.event_log))
        )

    listener = TcpListener(cfg.host, cfg.port, make_session_handler(registry, cfg), logger=log)
    try:
        listener.start()
    except OSError as e:
        controller.close()
        store.close()
        raise ListenerError(
            f"Could not listen on {cfg.host}:{cfg.port}.",
            hint=str(e),
            details={"host": cfg.host, "port": cfg.port},
        ) from None

    cal = cfg.calibration
    log.info(
        "GATEWAY_STARTED address=%s:%d known_devices=%d calibration=%d..%d persist=%s",
        *listener.address,
        known,
        cal.min_command,
        cal.max_command,
        cfg.persist_mode,
    )

    return GatewayRun(
        config=cfg,
        store=store,
        registry=registry,
        controller=controller,
        listener=listener,
    )
