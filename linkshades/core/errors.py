# linkshades/core/errors.py
from __future__ import annotations


class GatewayError(Exception):
    """
    Base class for all expected operational errors in the gateway.
    """

    #: Stable machine-readable identifier (for CLI exit mapping, APIs, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration / setup errors (nothing listening yet)
# ---------------------------------------------------------------------------

class ConfigError(GatewayError):
    """
    Gateway configuration is invalid.

    Examples:
      - unreadable or malformed YAML config file
      - non-numeric port or calibration value
      - calibration range with max <= min
    """
    code = "config_error"


class ListenerError(GatewayError):
    """
    The device listener could not be started.

    Examples:
      - port already in use
      - permission denied binding a privileged port
    """
    code = "listener_error"


# ---------------------------------------------------------------------------
# Runtime errors (logged, never fatal)
# ---------------------------------------------------------------------------

class PersistenceError(GatewayError):
    """
    The device store could not be written.

    In-memory state stays authoritative; the next mutating event retries.
    """
    code = "persistence_error"
