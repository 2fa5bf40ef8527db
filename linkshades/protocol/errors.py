# linkshades/protocol/errors.py

class ProtocolError(Exception):
    """Base for protocol-level failures (framing/handshake/payload semantics)."""

class DecodeError(ProtocolError):
    """A complete frame carried a payload that is not a valid status message."""

class HandshakeError(ProtocolError):
    def __init__(self, reason: str):
        super().__init__(f"handshake rejected: {reason}")
        self.reason = reason

class FrameTooLarge(ProtocolError):
    def __init__(self, declared: int, limit: int):
        super().__init__(f"declared payload {declared} exceeds limit {limit}")
        self.declared = declared
        self.limit = limit

class SendFailed(ProtocolError):
    def __init__(self, what: str, reason: str = "send_failed"):
        super().__init__(f"{what} send failed ({reason})")
        self.what = what
        self.reason = reason
