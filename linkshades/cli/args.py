# linkshades/cli/args.py
from __future__ import annotations

import argparse
from typing import Any, Dict, Optional

from linkshades.app.config import PERSIST_MODES


def _positive_float(v: str) -> float:
    try:
        f = float(v)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{v}'") from None
    if f <= 0:
        raise argparse.ArgumentTypeError(f"Must be positive, got {v}")
    return f


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="linkshades", description="Local gateway for LinkShade window-shade controllers.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="YAML config file.")
    common.add_argument("--data-file", dest="data_file", default=None, help="Device store JSON file.")

    calib = argparse.ArgumentParser(add_help=False)
    calib.add_argument("--shade-min", dest="shade_min", type=int, default=None, help="Command value for fully closed.")
    calib.add_argument("--shade-max", dest="shade_max", type=int, default=None, help="Command value for fully open.")

    ps = sub.add_parser("serve", parents=[common, calib], help="Run the gateway.")
    ps.add_argument("--host", default=None)
    ps.add_argument("--port", type=int, default=None)
    ps.add_argument("--persist-mode", dest="persist_mode", choices=PERSIST_MODES, default=None)
    ps.add_argument(
        "--idle-timeout",
        dest="idle_timeout_s",
        type=_positive_float,
        default=None,
        help="Drop device connections silent for this many seconds (default: never).",
    )
    ps.add_argument("--event-log", dest="event_log", default=None, help="Append device events to this JSONL file.")
    ps.add_argument("--log-level", dest="log_level", default=None)
    ps.add_argument("--log-file", dest="log_file", default=None)

    sub.add_parser("devices", parents=[common], help="Print the persisted device store.")

    pc = sub.add_parser("convert", parents=[common, calib], help="Translate between percent and device values.")
    grp = pc.add_mutually_exclusive_group(required=True)
    grp.add_argument("--percent", type=float, help="Percent (0-100) -> command value.")
    grp.add_argument("--command", type=int, help="Command value -> percent.")
    grp.add_argument("--raw", type=int, help="Reported raw position -> percent.")

    return parser


CONFIG_FIELDS = (
    "host",
    "port",
    "shade_min",
    "shade_max",
    "data_file",
    "persist_mode",
    "idle_timeout_s",
    "event_log",
    "log_level",
    "log_file",
)


def config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """CLI flags that were actually given, keyed by GatewayConfig field."""
    return {name: getattr(args, name) for name in CONFIG_FIELDS if getattr(args, name, None) is not None}


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
