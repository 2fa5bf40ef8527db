# linkshades/protocol/core/parser.py
from __future__ import annotations

import logging
from typing import Optional

from linkshades.protocol.errors import FrameTooLarge

from .frames import Frame
from .header import parse_header
from .mask import apply_mask

DEFAULT_MAX_PAYLOAD = 1 << 20


def decode_frame(buf: bytes) -> Optional[Frame]:
    """
    Decode one complete frame from the start of `buf`.

    Returns None ("insufficient data") when the header or the declared payload
    is not fully buffered; the buffer is never modified. On success the frame's
    `total_len` is the number of bytes the caller must drop from the buffer.
    """
    hdr = parse_header(buf)
    if hdr is None:
        return None

    hdr_len = hdr["hdr_len"]
    total_len = hdr_len + hdr["len"]
    if len(buf) < total_len:
        return None

    payload = bytes(buf[hdr_len:total_len])
    if hdr["masked"]:
        payload = apply_mask(payload, hdr["mask_key"])

    return Frame(
        opcode=hdr["opcode"],
        payload=payload,
        fin=hdr["fin"],
        total_len=total_len,
    )


class FrameParser:
    def __init__(self, *, max_payload: int = DEFAULT_MAX_PAYLOAD, logger: Optional[logging.Logger] = None):
        self.buffer = bytearray()
        self.max_payload = int(max_payload)
        self._log = logger or logging.getLogger(__name__)

    # ---------------- Public API ----------------
    def feed(self, data: bytes) -> None:
        """Feed raw bytes into the parser buffer."""
        self.buffer.extend(data)
        self._log.debug(
            "Parser fed %d bytes, buffer_len=%d",
            len(data),
            len(self.buffer),
        )

    def get_frame(self) -> Optional[Frame]:
        """Parse and return the next complete frame, if available."""
        hdr = parse_header(self.buffer)
        if hdr is None:
            return None  # Wait for more header bytes

        if hdr["len"] > self.max_payload:
            # Cannot resync inside an unframed stream; caller drops the connection.
            raise FrameTooLarge(hdr["len"], self.max_payload)

        frame = decode_frame(self.buffer)
        if frame is None:
            return None  # Wait for more payload bytes

        del self.buffer[: frame.total_len]

        self._log.debug(
            "Parsed frame opcode=%s fin=%s payload_len=%d total_len=%d",
            frame.type_name,
            frame.fin,
            len(frame.payload),
            frame.total_len,
        )
        return frame
