# linkshades/protocol/core/defs.py
from __future__ import annotations

from typing import Dict

# Accept-token GUID appended to the client's handshake key.
WS_GUID = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"

# Opcodes (low nibble of the first header byte)
OP_CONTINUATION = 0x0
OP_TEXT = 0x1
OP_BINARY = 0x2
OP_CLOSE = 0x8
OP_PING = 0x9
OP_PONG = 0xA

OPCODE_NAMES: Dict[int, str] = {
    OP_CONTINUATION: "CONTINUATION",
    OP_TEXT: "TEXT",
    OP_BINARY: "BINARY",
    OP_CLOSE: "CLOSE",
    OP_PING: "PING",
    OP_PONG: "PONG",
}

DATA_OPCODES = (OP_TEXT, OP_BINARY)
CONTROL_OPCODES = (OP_CLOSE, OP_PING, OP_PONG)

FIN_BIT = 0x80
MASK_BIT = 0x80
OPCODE_MASK = 0x0F
LEN_MASK = 0x7F

# 7-bit length markers announcing an extended length field
LEN_16 = 126
LEN_64 = 127

MASK_KEY_LEN = 4

# Largest payload a control frame may carry on the wire
MAX_CONTROL_PAYLOAD = 125


def opcode_name(opcode: int) -> str:
    return OPCODE_NAMES.get(int(opcode), f"OP_{int(opcode):#x}")
