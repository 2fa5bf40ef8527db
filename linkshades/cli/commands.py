# linkshades/cli/commands.py
from __future__ import annotations

import argparse
import threading
from typing import Optional

from linkshades.app.config import GatewayConfig
from linkshades.app.runner import start_gateway
from linkshades.core.device_store import DeviceStore
from linkshades.model.device import DeviceRecord
from linkshades.model.translate import raw_to_percent


# ---------------- Printing ----------------

def print_device(rec: DeviceRecord) -> None:
    pct = f"{rec.current_percent}%" if rec.current_percent is not None else "-"
    print(f"  - {rec.chip_id} '{rec.name}' position={pct} raw={rec.raw_position if rec.raw_position is not None else '-'}")
    print(f"      model={rec.model or '-'} firmware={rec.firmware if rec.firmware is not None else '-'}")
    print(f"      first_seen={rec.first_seen.isoformat()} last_seen={rec.last_seen.isoformat()}")


# ---------------- Commands ----------------

def cmd_serve(cfg: GatewayConfig, *, stop_event: Optional[threading.Event] = None) -> int:
    stop_event = stop_event or threading.Event()

    run = start_gateway(cfg)
    host, port = run.address
    print(f"LinkShades gateway listening on {host}:{port} (devices connect via ws://<this-host>:{port}/)")
    print(f"Device store: {cfg.data_file}  calibration: {cfg.shade_min}..{cfg.shade_max}")
    print("Press Ctrl+C to stop.")

    try:
        while not stop_event.wait(0.5):
            pass
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        run.stop()
    return 0


def cmd_devices(cfg: GatewayConfig) -> int:
    """Print the stored records. Live state belongs to a running gateway, so none is shown."""
    records = DeviceStore(cfg.data_file).load()
    if not records:
        print(f"No devices in {cfg.data_file}")
        return 0

    print(f"{len(records)} device(s) in {cfg.data_file}:")
    for rec in sorted(records.values(), key=lambda r: r.chip_id):
        print_device(rec)
    return 0


def cmd_convert(cfg: GatewayConfig, args: argparse.Namespace) -> int:
    cal = cfg.calibration
    if args.percent is not None:
        print(f"{args.percent}% -> command {cal.percent_to_command(args.percent)} (calibration {cal.min_command}..{cal.max_command})")
    elif args.command is not None:
        print(f"command {args.command} -> {cal.command_to_percent(args.command)}% (calibration {cal.min_command}..{cal.max_command})")
    else:
        print(f"raw position {args.raw} -> {raw_to_percent(args.raw)}%")
    return 0
