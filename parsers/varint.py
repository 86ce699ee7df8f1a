"""
Varint codec
============
Base-128 variable-length integers, the atomic unit of the protobuf wire
format used by the live RTP endpoint.

Signed quantities arrive as their full unsigned 64-bit two's-complement form,
so decoded values routinely sit near 2^64. Python ints carry them exactly.
"""

from typing import Tuple

UINT64_MASK = (1 << 64) - 1

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5


def decode_varint(buffer: bytes, offset: int = 0) -> Tuple[int, int]:
    """
    Decode a varint starting at offset

    Args:
        buffer: Bytes to read from
        offset: Starting position

    Returns:
        Tuple of (value, bytes_consumed). When the buffer ends before a byte
        with the high bit clear, returns (0, 0): callers must treat that as
        end of input, not as a decoded zero.

    Examples:
        >>> decode_varint(b'\\xac\\x02')
        (300, 2)
        >>> decode_varint(b'\\x80')
        (0, 0)
    """
    result = 0
    shift = 0
    bytes_read = 0

    while True:
        if offset + bytes_read >= len(buffer):
            return 0, 0

        byte = buffer[offset + bytes_read]
        bytes_read += 1
        result |= (byte & 0x7F) << shift
        shift += 7

        if not byte & 0x80:
            break

    return result & UINT64_MASK, bytes_read


def encode_varint(value: int) -> bytes:
    """
    Encode a non-negative integer as a varint

    Examples:
        >>> encode_varint(1)
        b'\\x01'
        >>> encode_varint(300)
        b'\\xac\\x02'
    """
    if value < 0:
        raise ValueError(f"Cannot encode negative value: {value}")

    result = bytearray()
    while value > 0x7F:
        result.append((value & 0x7F) | 0x80)
        value >>= 7
    result.append(value & 0x7F)

    return bytes(result)


def encode_tag(field_number: int, wire_type: int) -> bytes:
    """Encode a field tag (field number and wire type) as a varint."""
    return encode_varint((field_number << 3) | wire_type)


def encode_varint_field(field_number: int, value: int) -> bytes:
    """Encode a complete varint field: tag followed by the value."""
    return encode_tag(field_number, WIRE_VARINT) + encode_varint(value)


def encode_length_delimited_field(field_number: int, payload: bytes) -> bytes:
    """Encode a complete length-delimited field: tag, length, payload."""
    return encode_tag(field_number, WIRE_LENGTH_DELIMITED) + encode_varint(len(payload)) + payload
