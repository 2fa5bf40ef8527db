# linkshades/cli/main.py
from __future__ import annotations

import sys
from typing import Optional

from linkshades.app.config import load_config
from linkshades.common.logging_config import configure_logging
from linkshades.core.errors import GatewayError

from linkshades.cli.args import config_overrides, parse_args
from linkshades.cli.commands import cmd_convert, cmd_devices, cmd_serve


def main(argv: Optional[list[str]] = None) -> int:
    try:
        args = parse_args(argv)
        cfg = load_config(args.config, overrides=config_overrides(args))

        if args.cmd == "serve":
            configure_logging(cfg.log_level, cfg.log_file)
            return cmd_serve(cfg)
        if args.cmd == "devices":
            return cmd_devices(cfg)
        if args.cmd == "convert":
            return cmd_convert(cfg, args)

        return 2
    except GatewayError as e:
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
