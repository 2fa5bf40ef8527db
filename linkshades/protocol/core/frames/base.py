# linkshades/protocol/core/frames/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..defs import CONTROL_OPCODES, MAX_CONTROL_PAYLOAD, OP_BINARY, OP_CLOSE, OP_PING, OP_PONG, OP_TEXT, opcode_name
from ..header import build_header


@dataclass
class Frame:
    opcode: int
    payload: bytes = b""
    fin: bool = True
    # bytes consumed from the inbound buffer; None for outbound frames
    total_len: Optional[int] = None

    def __post_init__(self) -> None:
        self.opcode = int(self.opcode)
        if isinstance(self.payload, str):
            self.payload = self.payload.encode("utf-8")
        else:
            self.payload = bytes(self.payload)

    @classmethod
    def text(cls, data: str) -> "Frame":
        return cls(opcode=OP_TEXT, payload=data.encode("utf-8"))

    @classmethod
    def binary(cls, data: bytes) -> "Frame":
        return cls(opcode=OP_BINARY, payload=data)

    @classmethod
    def pong(cls, data: bytes = b"") -> "Frame":
        return cls(opcode=OP_PONG, payload=data)

    @classmethod
    def ping(cls, data: bytes = b"") -> "Frame":
        return cls(opcode=OP_PING, payload=data)

    @classmethod
    def close(cls, data: bytes = b"") -> "Frame":
        return cls(opcode=OP_CLOSE, payload=data)

    @property
    def is_control(self) -> bool:
        return self.opcode in CONTROL_OPCODES

    def encode(self) -> bytes:
        """Serialize for the wire. Server frames are never masked.

        Inbound frames are decoded whatever their size; only outgoing control
        frames are held to the wire limit.
        """
        if self.is_control and len(self.payload) > MAX_CONTROL_PAYLOAD:
            raise ValueError(f"Control frame payload too long: {len(self.payload)} > {MAX_CONTROL_PAYLOAD}")
        return build_header(self.opcode, len(self.payload), fin=self.fin) + self.payload

    @property
    def type_name(self) -> str:
        return opcode_name(self.opcode)

    def as_text(self, errors: str = "strict") -> str:
        return self.payload.decode("utf-8", errors=errors)
