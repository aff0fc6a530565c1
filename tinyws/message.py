"""Messages handed to the user, and the builder that joins fragmented ones."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from tinyws.frames import ContentType, WebsocketsFrame

__all__ = [
    "MessageType",
    "MessageRole",
    "message_type_from_opcode",
    "WebsocketsMessage",
    "StreamBuilder",
]


class MessageType(Enum):
    """Kind of a message."""

    EMPTY = auto()
    TEXT = auto()
    BINARY = auto()
    PING = auto()
    PONG = auto()
    CLOSE = auto()


class MessageRole(Enum):
    """Position of a message within a fragmented stream."""

    COMPLETE = auto()
    FIRST = auto()
    CONTINUATION = auto()
    LAST = auto()


_OPCODE_TYPES = {
    ContentType.BINARY: MessageType.BINARY,
    ContentType.TEXT: MessageType.TEXT,
    ContentType.PING: MessageType.PING,
    ContentType.PONG: MessageType.PONG,
    ContentType.CLOSE: MessageType.CLOSE,
}


def message_type_from_opcode(opcode: int) -> MessageType:
    """Map a frame opcode to a message type; unknown opcodes give ``EMPTY``."""
    return _OPCODE_TYPES.get(int(opcode), MessageType.EMPTY)


def _to_bytes(data: str | bytes | bytearray) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


@dataclass(frozen=True)
class WebsocketsMessage:
    """A message, or a single fragment of one when its role is not ``COMPLETE``."""

    type: MessageType = MessageType.EMPTY
    data: bytes = b""
    role: MessageRole = MessageRole.COMPLETE

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            object.__setattr__(self, "data", _to_bytes(self.data))

    @classmethod
    def from_frame(
        cls,
        frame: WebsocketsFrame,
        override_type: MessageType = MessageType.EMPTY,
    ) -> "WebsocketsMessage":
        """Build a message from a frame, deducing type and role from it."""
        msg_type = override_type
        if msg_type is MessageType.EMPTY:
            msg_type = message_type_from_opcode(frame.opcode)

        if frame.is_normal_unfragmented_message():
            role = MessageRole.COMPLETE
        elif frame.is_beginning_of_fragments_stream():
            role = MessageRole.FIRST
        elif frame.is_continues_fragment():
            role = MessageRole.CONTINUATION
        elif frame.is_end_of_fragments_stream():
            role = MessageRole.LAST
        else:
            role = MessageRole.COMPLETE

        return cls(msg_type, frame.payload, role)

    @property
    def length(self) -> int:
        return len(self.data)

    @property
    def text(self) -> str:
        """The payload decoded as UTF-8, with undecodable bytes replaced."""
        return self.data.decode("utf-8", errors="replace")

    def is_empty(self) -> bool:
        return self.type is MessageType.EMPTY

    def is_text(self) -> bool:
        return self.type is MessageType.TEXT

    def is_binary(self) -> bool:
        return self.type is MessageType.BINARY

    def is_ping(self) -> bool:
        return self.type is MessageType.PING

    def is_pong(self) -> bool:
        return self.type is MessageType.PONG

    def is_close(self) -> bool:
        return self.type is MessageType.CLOSE

    def is_complete(self) -> bool:
        return self.role is MessageRole.COMPLETE

    def is_partial(self) -> bool:
        return self.role is not MessageRole.COMPLETE

    def is_first(self) -> bool:
        return self.role is MessageRole.FIRST

    def is_continuation(self) -> bool:
        return self.role is MessageRole.CONTINUATION

    def is_last(self) -> bool:
        return self.role is MessageRole.LAST


class StreamBuilder:
    """Collects the fragments of one message.

    In dummy mode only the stream's validity and type are tracked; payloads
    are not kept.
    """

    def __init__(self, dummy_mode: bool = False) -> None:
        self._dummy_mode = dummy_mode
        self._empty = True
        self._complete = False
        self._errored = False
        self._content = bytearray()
        self._type = MessageType.EMPTY

    @property
    def type(self) -> MessageType:
        return self._type

    def first(self, frame: WebsocketsFrame) -> None:
        if not self._empty:
            self.bad_fragment()
            return

        self._empty = False
        if frame.is_beginning_of_fragments_stream():
            self._complete = False
            self._errored = False
            if not self._dummy_mode:
                self._content = bytearray(frame.payload)
            self._type = message_type_from_opcode(frame.opcode)
            if self._type is MessageType.EMPTY:
                self.bad_fragment()
        else:
            self._errored = True

    def append(self, frame: WebsocketsFrame) -> None:
        if self.is_errored():
            return
        if self.is_empty() or self.is_complete():
            self.bad_fragment()
            return

        if frame.is_continues_fragment():
            if not self._dummy_mode:
                self._content += frame.payload
        else:
            self.bad_fragment()

    def end(self, frame: WebsocketsFrame) -> None:
        if self.is_errored():
            return
        if self.is_empty() or self.is_complete():
            self.bad_fragment()
            return

        if frame.is_end_of_fragments_stream():
            if not self._dummy_mode:
                self._content += frame.payload
            self._complete = True
        else:
            self.bad_fragment()

    def bad_fragment(self) -> None:
        self._errored = True
        self._complete = False

    def is_errored(self) -> bool:
        return self._errored

    def is_ok(self) -> bool:
        return not self._errored

    def is_complete(self) -> bool:
        return self._complete

    def is_empty(self) -> bool:
        return self._empty

    def build(self) -> WebsocketsMessage:
        """Return the collected content as one complete message."""
        content = bytes(self._content)
        self._content = bytearray()
        return WebsocketsMessage(self._type, content, MessageRole.COMPLETE)