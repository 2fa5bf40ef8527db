# linkshades/common/logging_config.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from linkshades.core.errors import ConfigError


@dataclass(frozen=True)
class LogDefaults:
    level: str = "INFO"
    fmt: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


DEFAULTS = LogDefaults()


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ConfigError(f"Unknown log level '{level}'.", hint="Use DEBUG, INFO, WARNING or ERROR.")
    return value


def configure_logging(level: str | int = DEFAULTS.level, log_file: Optional[str | Path] = None) -> None:
    """
    Console handler on the root logger, plus a file handler when `log_file`
    is given. Safe to call more than once.
    """
    root = logging.getLogger()
    lvl = _resolve_level(level)
    root.setLevel(lvl)
    formatter = logging.Formatter(DEFAULTS.fmt)

    if not any(getattr(h, "_linkshades_console", False) for h in root.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(formatter)
        ch._linkshades_console = True  # type: ignore[attr-defined]
        root.addHandler(ch)

    if log_file is None:
        return

    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    target = str(path.resolve())

    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target:
            return

    fh = logging.FileHandler(path, encoding="utf-8", delay=True)
    fh.setFormatter(formatter)
    root.addHandler(fh)
