"""
Framed message codec shared by both directions of the agent protocol.

A frame is a 6 byte ASCII header followed by the payload::

    <tag><5 zero-padded decimal digits><payload>

The tag is ``c`` (command), ``o`` (output) or ``i`` (input) and the digits
give the payload length in bytes, so a payload can hold at most 99999 bytes.
"""
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple, Union

from cluster_agent.errors import (
    ConnectionClosed,
    MalformedHeader,
    PartialTransmission,
    PayloadTooLarge,
    TruncatedTransmission,
    UnexpectedFrameKind,
)

HEADER_SIZE = 6
LENGTH_DIGITS = HEADER_SIZE - 1
MAX_PAYLOAD_SIZE = 10 ** LENGTH_DIGITS - 1
RECV_CHUNK_SIZE = 65536
PAYLOAD_ENCODING = 'utf-8'
# Undecodable bytes survive a decode/encode round trip unchanged
PAYLOAD_ERRORS = 'surrogateescape'


class FrameKind(Enum):
    """Frame tags as they appear in the first header byte."""
    COMMAND = 'c'
    OUTPUT = 'o'
    INPUT = 'i'

    @classmethod
    def from_tag(cls, tag: bytes) -> Optional['FrameKind']:
        try:
            return cls(tag.decode('ascii'))
        except (UnicodeDecodeError, ValueError):
            return None


ALL_KINDS = frozenset(FrameKind)


class DispatchLayout(Enum):
    """
    Byte layout of an execution request sent by the coordinator.

    INPUT_FIRST: a complete Input frame followed by a complete Command frame.
    HEADERS_FIRST: command header, input header, input payload, command
    payload, as sent by the legacy C coordinator.
    """
    INPUT_FIRST = 'input-first'
    HEADERS_FIRST = 'headers-first'


@dataclass(frozen=True)
class Frame:
    kind: FrameKind
    payload: bytes

    @property
    def length(self) -> int:
        return len(self.payload)

    def text(self, encoding: str = PAYLOAD_ENCODING, errors: str = 'replace') -> str:
        return self.payload.decode(encoding, errors=errors)


def _as_bytes(payload: Union[bytes, str]) -> bytes:
    if isinstance(payload, str):
        return payload.encode(PAYLOAD_ENCODING, errors=PAYLOAD_ERRORS)
    return bytes(payload)


def encode_header(kind: FrameKind, length: int) -> bytes:
    """
    Builds the 6 byte header for a payload of the given length.

    :raises PayloadTooLarge: If the length does not fit in 5 digits
    """
    if length < 0:
        raise ValueError(f"Frame length cannot be negative: {length}")
    if length > MAX_PAYLOAD_SIZE:
        raise PayloadTooLarge(length, MAX_PAYLOAD_SIZE)
    return f"{kind.value}{length:0{LENGTH_DIGITS}d}".encode('ascii')


def encode(kind: FrameKind, payload: Union[bytes, str]) -> bytes:
    """
    Encodes a complete frame. ``str`` payloads are UTF-8 encoded, with
    surrogate escapes turned back into their original bytes, and the header
    carries the encoded byte length.

    :param kind: The frame kind
    :type kind: FrameKind
    :param payload: The frame payload
    :type payload: Union[bytes, str]
    :return: Header and payload
    :rtype: bytes
    :raises PayloadTooLarge: If the encoded payload exceeds 99999 bytes
    """
    data = _as_bytes(payload)
    return encode_header(kind, len(data)) + data


def decode_header(header: bytes, allowed: Iterable[FrameKind] = ALL_KINDS) -> Tuple[FrameKind, int]:
    """
    Parses a 6 byte header into its kind and payload length.

    :param header: Raw header bytes
    :type header: bytes
    :param allowed: Tags recognized for the direction being read
    :type allowed: Iterable[FrameKind]
    :return: (kind, length)
    :rtype: Tuple[FrameKind, int]
    :raises MalformedHeader: On a wrong size, an unrecognized tag or a non-numeric length
    """
    if len(header) != HEADER_SIZE:
        raise MalformedHeader(header, f"expected {HEADER_SIZE} bytes, got {len(header)}")

    kind = FrameKind.from_tag(header[:1])
    if kind is None or kind not in frozenset(allowed):
        raise MalformedHeader(header, f"unrecognized tag {header[:1]!r}")

    digits = header[1:]
    if not all(0x30 <= byte <= 0x39 for byte in digits):
        raise MalformedHeader(header, "length field is not numeric")
    return kind, int(digits)


def read_exact(sock: socket.socket, size: int, allow_eof: bool = False) -> bytes:
    """
    Reads exactly ``size`` bytes from a blocking socket.

    A clean end of stream before the first byte returns ``b""`` when
    ``allow_eof`` is set and raises :class:`ConnectionClosed` otherwise. Any
    other short read raises :class:`TruncatedTransmission`.
    """
    buffer = bytearray()
    while len(buffer) < size:
        try:
            chunk = sock.recv(min(size - len(buffer), RECV_CHUNK_SIZE))
        except socket.timeout as e:
            raise TruncatedTransmission(size, len(buffer), "read timed out") from e
        except OSError as e:
            raise TruncatedTransmission(size, len(buffer), str(e)) from e

        if not chunk:
            if not buffer:
                if allow_eof:
                    return b""
                raise ConnectionClosed("Peer closed the connection")
            raise TruncatedTransmission(size, len(buffer))
        buffer.extend(chunk)
    return bytes(buffer)


def read_header(sock: socket.socket, expected: Iterable[FrameKind] = ALL_KINDS,
                allow_eof: bool = False) -> Optional[Tuple[FrameKind, int]]:
    """
    Reads and validates one header. Returns None on a clean end of stream
    when ``allow_eof`` is set.

    :raises UnexpectedFrameKind: If the tag is valid but not one of ``expected``
    """
    header = read_exact(sock, HEADER_SIZE, allow_eof=allow_eof)
    if not header:
        return None
    kind, length = decode_header(header)
    expected = frozenset(expected)
    if kind not in expected:
        raise UnexpectedFrameKind(sorted(expected, key=lambda k: k.value), kind)
    return kind, length


def read_frame(sock: socket.socket, expected: Iterable[FrameKind] = ALL_KINDS,
               allow_eof: bool = False) -> Optional[Frame]:
    """
    Reads a full frame: the fixed header, then exactly ``length`` payload bytes.
    """
    parsed = read_header(sock, expected, allow_eof=allow_eof)
    if parsed is None:
        return None
    kind, length = parsed
    return Frame(kind, read_exact(sock, length))


def write_frame(sock: socket.socket, kind: FrameKind, payload: Union[bytes, str]) -> int:
    """
    Encodes and writes one frame.

    :return: Number of bytes written
    :rtype: int
    :raises PayloadTooLarge: If the payload exceeds 99999 bytes
    :raises PartialTransmission: If the frame could not be written completely
    """
    message = encode(kind, payload)
    try:
        sock.sendall(message)
    except OSError as e:
        raise PartialTransmission(f"Unable to send the complete {kind.name.lower()} frame "
                                  f"({len(message)} bytes): {e}") from e
    return len(message)
