# linkshades/protocol/core/header.py
from __future__ import annotations

import struct
from typing import Any, Dict, Optional

from .defs import (
    FIN_BIT,
    LEN_16,
    LEN_64,
    LEN_MASK,
    MASK_BIT,
    MASK_KEY_LEN,
    OPCODE_MASK,
)

_U16 = struct.Struct(">H")
_U64 = struct.Struct(">Q")


def parse_header(buf: bytes) -> Optional[Dict[str, Any]]:
    """
    Parse a frame header from the start of `buf`.

    Returns None while the header (including any extended length field and
    mask key) is not fully buffered. The payload itself is not inspected.
    """
    if len(buf) < 2:
        return None

    b0 = buf[0]
    b1 = buf[1]
    masked = (b1 & MASK_BIT) != 0
    payload_len = b1 & LEN_MASK
    offset = 2

    if payload_len == LEN_16:
        if len(buf) < offset + _U16.size:
            return None
        payload_len = _U16.unpack_from(buf, offset)[0]
        offset += _U16.size
    elif payload_len == LEN_64:
        if len(buf) < offset + _U64.size:
            return None
        payload_len = _U64.unpack_from(buf, offset)[0]
        offset += _U64.size

    mask_key: Optional[bytes] = None
    if masked:
        if len(buf) < offset + MASK_KEY_LEN:
            return None
        mask_key = bytes(buf[offset: offset + MASK_KEY_LEN])
        offset += MASK_KEY_LEN

    return {
        "fin": (b0 & FIN_BIT) != 0,
        "rsv": (b0 >> 4) & 0x7,
        "opcode": b0 & OPCODE_MASK,
        "masked": masked,
        "len": payload_len,
        "mask_key": mask_key,
        "hdr_len": offset,
    }


def build_header(opcode: int, payload_len: int, *, fin: bool = True) -> bytes:
    """Build an unmasked header using the smallest length encoding."""
    if payload_len < 0:
        raise ValueError(f"Invalid payload length {payload_len}")

    b0 = (FIN_BIT if fin else 0) | (int(opcode) & OPCODE_MASK)

    if payload_len < LEN_16:
        return bytes((b0, payload_len))
    if payload_len < 0x10000:
        return bytes((b0, LEN_16)) + _U16.pack(payload_len)
    return bytes((b0, LEN_64)) + _U64.pack(payload_len)
