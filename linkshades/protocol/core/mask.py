# linkshades/protocol/core/mask.py
from __future__ import annotations

from .defs import MASK_KEY_LEN


def apply_mask(payload: bytes, mask_key: bytes) -> bytes:
    """XOR `payload` with the 4-byte `mask_key`, cycling every 4 bytes.

    Masking is its own inverse, so the same call masks and unmasks.
    """
    if len(mask_key) != MASK_KEY_LEN:
        raise ValueError(f"Mask key must be {MASK_KEY_LEN} bytes, got {len(mask_key)}")

    out = bytearray(payload)
    for i in range(len(out)):
        out[i] ^= mask_key[i % MASK_KEY_LEN]
    return bytes(out)
