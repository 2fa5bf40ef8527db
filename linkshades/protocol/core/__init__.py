# protocol/core/__init__.py

from .frames import Frame, StatusMessage, CommandMessage
from .parser import FrameParser, decode_frame
from .handshake import UpgradeRequest, build_handshake_response, compute_accept_key, parse_upgrade_request

__all__ = [
    "Frame", "StatusMessage", "CommandMessage",
    "FrameParser", "decode_frame",
    "UpgradeRequest", "build_handshake_response", "compute_accept_key", "parse_upgrade_request",
]
