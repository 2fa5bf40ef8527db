# linkshades/protocol/core/handshake.py
from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass, field
from typing import Dict, Optional

from linkshades.protocol.errors import HandshakeError

from .defs import WS_GUID

HEAD_TERMINATOR = b"\r\n\r\n"
MAX_HEAD_BYTES = 16 * 1024


@dataclass(frozen=True)
class UpgradeRequest:
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    # bytes that arrived after the request head (first frames, if any)
    remainder: bytes = b""

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def key(self) -> Optional[str]:
        return self.header("sec-websocket-key")

    @property
    def subprotocol(self) -> Optional[str]:
        return self.header("sec-websocket-protocol")


def compute_accept_key(key: str) -> str:
    digest = hashlib.sha1((key + WS_GUID).encode("ascii")).digest()
    return base64.b64encode(digest).decode("ascii")


def parse_upgrade_request(buf: bytes) -> Optional[UpgradeRequest]:
    """
    Parse an HTTP/1.1 request head from `buf`.

    Returns None until the blank line ending the head has been buffered.
    """
    end = buf.find(HEAD_TERMINATOR)
    if end < 0:
        if len(buf) > MAX_HEAD_BYTES:
            raise HandshakeError("request head too large")
        return None

    head = bytes(buf[:end]).decode("latin-1")
    lines = head.split("\r\n")
    parts = lines[0].split()
    if len(parts) < 2:
        raise HandshakeError(f"malformed request line {lines[0]!r}")

    headers: Dict[str, str] = {}
    for line in lines[1:]:
        name, sep, value = line.partition(":")
        if not sep:
            continue
        headers[name.strip().lower()] = value.strip()

    return UpgradeRequest(
        method=parts[0].upper(),
        path=parts[1],
        headers=headers,
        remainder=bytes(buf[end + len(HEAD_TERMINATOR):]),
    )


def build_handshake_response(req: UpgradeRequest) -> bytes:
    key = req.key
    if not key:
        raise HandshakeError("missing Sec-WebSocket-Key")

    lines = [
        "HTTP/1.1 101 Switching Protocols",
        "Upgrade: websocket",
        "Connection: Upgrade",
        f"Sec-WebSocket-Accept: {compute_accept_key(key)}",
    ]
    if req.subprotocol:
        lines.append(f"Sec-WebSocket-Protocol: {req.subprotocol}")

    return ("\r\n".join(lines) + "\r\n\r\n").encode("ascii")
