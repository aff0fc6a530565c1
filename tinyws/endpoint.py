"""WebSocket framing on top of a TCP transport: reading, writing and closing."""

from __future__ import annotations

from enum import Enum, IntEnum

from tinyws.frames import ContentType, WebsocketsFrame, encode_header
from tinyws.message import MessageRole, StreamBuilder, WebsocketsMessage
from tinyws.network import TcpClient

__all__ = [
    "BUFFER_SIZE",
    "DEFAULT_MASK",
    "CloseReason",
    "FragmentsPolicy",
    "get_close_reason",
    "WebsocketsEndpoint",
]

BUFFER_SIZE = 1024
DEFAULT_MASK = b"\x00\x00\x00\x00"
_MAX_CONTROL_PAYLOAD = 125


class CloseReason(IntEnum):
    """Close status codes the endpoint knows about."""

    NONE = -1
    NORMAL_CLOSURE = 1000
    GOING_AWAY = 1001
    PROTOCOL_ERROR = 1002
    UNSUPPORTED_DATA = 1003
    NO_STATUS_RCVD = 1005
    ABNORMAL_CLOSURE = 1006
    INVALID_PAYLOAD_DATA = 1007
    POLICY_VIOLATION = 1008
    MESSAGE_TOO_BIG = 1009
    INTERNAL_SERVER_ERROR = 1011


class FragmentsPolicy(Enum):
    """How fragmented messages are handed to the user."""

    AGGREGATE = "aggregate"
    NOTIFY = "notify"


def get_close_reason(code: int) -> CloseReason:
    """Map a numeric close code to a :class:`CloseReason`; unknown codes give ``NONE``."""
    try:
        return CloseReason(code)
    except ValueError:
        return CloseReason.NONE


def _to_bytes(data: str | bytes | bytearray | None) -> bytes:
    if data is None:
        return b""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _apply_mask(data: bytes, key: bytes) -> bytes:
    if not data or key == DEFAULT_MASK:
        return bytes(data)
    size = len(data)
    repeated = (key * (size // 4 + 1))[:size]
    masked = int.from_bytes(data, "big") ^ int.from_bytes(repeated, "big")
    return masked.to_bytes(size, "big")


class WebsocketsEndpoint:
    """Reads and writes WebSocket frames over a :class:`TcpClient`."""

    def __init__(
        self,
        client: TcpClient | None,
        fragments_policy: FragmentsPolicy = FragmentsPolicy.AGGREGATE,
        use_masking: bool = True,
        max_message_size: int | None = None,
    ) -> None:
        self._client = client
        self._fragments_policy = fragments_policy
        self._streaming = False
        self._stream_builder = self._new_builder()
        self._close_reason = CloseReason.NONE
        self.use_masking = use_masking
        self.max_message_size = max_message_size

    # -- configuration -------------------------------------------------

    @property
    def fragments_policy(self) -> FragmentsPolicy:
        return self._fragments_policy

    @fragments_policy.setter
    def fragments_policy(self, policy: FragmentsPolicy) -> None:
        self._fragments_policy = policy
        if self._stream_builder.is_empty():
            self._stream_builder = self._new_builder()

    @property
    def close_reason(self) -> CloseReason:
        """The reason recorded by the last close, sent or received."""
        return self._close_reason

    def set_internal_socket(self, socket: TcpClient | None) -> None:
        """Replace the transport the endpoint talks over."""
        self._client = socket

    def _new_builder(self) -> StreamBuilder:
        return StreamBuilder(self._fragments_policy is FragmentsPolicy.NOTIFY)

    def _client_available(self) -> bool:
        return self._client is not None and self._client.available()

    # -- receiving -----------------------------------------------------

    def poll(self) -> bool:
        """Return whether data is waiting on the transport."""
        if self._client is None:
            return False
        return self._client.poll()

    def _read_exact(self, length: int) -> bytes:
        received = bytearray()
        while len(received) < length and self._client_available():
            chunk = self._client.read(min(BUFFER_SIZE, length - len(received)))
            if not chunk:
                break
            received += chunk
        return bytes(received)

    def _recv_frame(self) -> WebsocketsFrame:
        if self._client is None:
            return WebsocketsFrame()

        head = self._read_exact(2)
        if len(head) < 2 or not self._client_available():
            return WebsocketsFrame()

        fin = bool(head[0] & 0x80)
        opcode = head[0] & 0x0F
        masked = bool(head[1] & 0x80)
        length = head[1] & 0x7F

        if length == 126:
            extended = self._read_exact(2)
            if len(extended) < 2 or not self._client_available():
                return WebsocketsFrame()
            length = int.from_bytes(extended, "big")
        elif length == 127:
            extended = self._read_exact(8)
            if len(extended) < 8 or not self._client_available():
                return WebsocketsFrame()
            length = int.from_bytes(extended, "big")

        if self.max_message_size is not None and length > self.max_message_size:
            return WebsocketsFrame()

        masking_key = DEFAULT_MASK
        if masked:
            masking_key = self._read_exact(4)
            if len(masking_key) < 4 or not self._client_available():
                return WebsocketsFrame()

        payload = self._read_exact(length)
        if len(payload) < length or not self._client_available():
            return WebsocketsFrame()

        if masked:
            payload = _apply_mask(payload, masking_key)

        return WebsocketsFrame(
            fin=fin,
            opcode=opcode,
            mask=masked,
            mask_buf=masking_key,
            payload_length=length,
            payload=payload,
        )

    def recv(self) -> WebsocketsMessage:
        """Read one frame and return what it means to the user.

        An empty message is returned when the frame was incomplete, when it
        only advanced a fragmented stream, or when it broke the protocol (the
        connection is then closed).
        """
        frame = self._recv_frame()
        if frame.is_empty():
            return WebsocketsMessage()
        if self._streaming:
            return self._handle_streaming_frame(frame)
        return self._handle_standard_frame(frame)

    def _handle_standard_frame(self, frame: WebsocketsFrame) -> WebsocketsMessage:
        if frame.is_normal_unfragmented_message() or frame.is_control_frame():
            message = WebsocketsMessage.from_frame(frame)
            self._handle_internally(message)
            return message
        if frame.is_beginning_of_fragments_stream():
            return self._handle_streaming_frame(frame)

        self.close(CloseReason.PROTOCOL_ERROR)
        return WebsocketsMessage()

    def _handle_streaming_frame(self, frame: WebsocketsFrame) -> WebsocketsMessage:
        notify = self._fragments_policy is FragmentsPolicy.NOTIFY
        builder = self._stream_builder

        if frame.is_control_frame():
            message = WebsocketsMessage.from_frame(frame)
            self._handle_internally(message)
            return message

        if frame.is_beginning_of_fragments_stream():
            self._streaming = True
            if builder.is_empty():
                builder.first(frame)
                if notify:
                    return WebsocketsMessage(builder.type, frame.payload, MessageRole.FIRST)
                return WebsocketsMessage()
        elif frame.is_continues_fragment():
            builder.append(frame)
            if builder.is_ok():
                if notify:
                    return WebsocketsMessage(
                        builder.type, frame.payload, MessageRole.CONTINUATION
                    )
                return WebsocketsMessage()
        elif frame.is_end_of_fragments_stream():
            self._streaming = False
            builder.end(frame)
            if builder.is_ok():
                if not notify:
                    complete = builder.build()
                    self._stream_builder = self._new_builder()
                    self._handle_internally(complete)
                    return complete
                message_type = builder.type
                self._stream_builder = self._new_builder()
                return WebsocketsMessage(message_type, frame.payload, MessageRole.LAST)

        self.close(CloseReason.PROTOCOL_ERROR)
        return WebsocketsMessage()

    def _handle_internally(self, message: WebsocketsMessage) -> None:
        if message.is_ping():
            self.pong(message.data)
        elif message.is_close():
            if len(message.data) >= 2:
                reason = get_close_reason(int.from_bytes(message.data[:2], "big"))
            else:
                reason = CloseReason.GOING_AWAY
            self.close(reason)

    # -- sending -------------------------------------------------------

    def send(
        self,
        data: str | bytes | bytearray | None,
        opcode: int,
        fin: bool = True,
        mask: bool | None = None,
        masking_key: bytes = DEFAULT_MASK,
    ) -> bool:
        """Send one frame; ``mask`` defaults to the endpoint's masking setting."""
        payload = _to_bytes(data)
        if mask is None:
            mask = self.use_masking
        masking_key = bytes(masking_key)
        if len(masking_key) != 4:
            raise ValueError("masking key must be exactly 4 bytes")
        if self.max_message_size is not None and len(payload) > self.max_message_size:
            return False

        frame = bytearray(encode_header(len(payload), opcode, fin, mask))
        if mask:
            frame += masking_key
            frame += _apply_mask(payload, masking_key)
        else:
            frame += payload

        if self._client is not None:
            self._client.send(bytes(frame))
        return True

    def ping(self, data: str | bytes | bytearray = b"") -> bool:
        """Send a ping; payloads over 125 bytes are refused."""
        payload = _to_bytes(data)
        if len(payload) > _MAX_CONTROL_PAYLOAD:
            return False
        return self.send(payload, ContentType.PING, True)

    def pong(self, data: str | bytes | bytearray = b"") -> bool:
        """Send a pong; payloads over 125 bytes are refused."""
        payload = _to_bytes(data)
        if len(payload) > _MAX_CONTROL_PAYLOAD:
            return False
        return self.send(payload, ContentType.PONG, True)

    def close(self, reason: CloseReason = CloseReason.NORMAL_CLOSURE) -> None:
        """Record ``reason``, send a close frame carrying it and close the transport."""
        reason = CloseReason(reason)
        self._close_reason = reason
        if not self._client_available():
            return

        if reason is CloseReason.NONE:
            self.send(b"", ContentType.CLOSE, True)
        else:
            self.send(int(reason).to_bytes(2, "big"), ContentType.CLOSE, True)
        self._client.close()