"""WebSocket frame model and frame header encoding."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

__all__ = ["ContentType", "WebsocketsFrame", "encode_header"]

_CONTROL_OPCODES = frozenset({0x8, 0x9, 0xA})


class ContentType(IntEnum):
    """Frame opcodes."""

    NONE = -1
    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CLOSE = 0x8
    PING = 0x9
    PONG = 0xA


@dataclass
class WebsocketsFrame:
    """A single frame as read from the wire."""

    fin: bool = False
    opcode: int = 0
    mask: bool = False
    mask_buf: bytes = b"\x00\x00\x00\x00"
    payload_length: int = 0
    payload: bytes = b""

    def is_control_frame(self) -> bool:
        return bool(self.fin) and self.opcode in _CONTROL_OPCODES

    def is_empty(self) -> bool:
        return not self.fin and self.opcode == 0 and self.payload_length == 0

    def is_beginning_of_fragments_stream(self) -> bool:
        return not self.fin and self.opcode != 0

    def is_continues_fragment(self) -> bool:
        return not self.fin and self.opcode == 0

    def is_end_of_fragments_stream(self) -> bool:
        return bool(self.fin) and self.opcode == 0

    def is_normal_unfragmented_message(self) -> bool:
        return bool(self.fin) and self.opcode != 0


def encode_header(length: int, opcode: int, fin: bool, mask: bool) -> bytes:
    """Build the frame header (without masking key) for a payload of ``length`` bytes."""
    if length < 0 or length >= 1 << 64:
        raise ValueError(f"payload length out of range: {length}")
    if not 0 <= int(opcode) <= 0xF:
        raise ValueError(f"opcode out of range: {opcode}")

    first = (0x80 if fin else 0) | int(opcode)
    mask_bit = 0x80 if mask else 0

    if length < 126:
        return bytes((first, mask_bit | length))
    if length < 65536:
        return bytes((first, mask_bit | 126)) + length.to_bytes(2, "big")
    return bytes((first, mask_bit | 127)) + length.to_bytes(8, "big")