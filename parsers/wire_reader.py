"""
Wire-format reader
==================
Walks a protobuf-encoded buffer without a schema, yielding one WireField per
step. Interpretation of each value is left to the caller, keyed by field
number: a length-delimited span may be a nested message, a UTF-8 string or
arbitrary binary.

The endpoint is untrusted. Running past the end of the buffer or meeting a
wire type other than 0/1/2/5 stops the walk; fields already yielded stay
valid. In the default lenient mode the reader records the problem on
``reader.error`` instead of raising.
"""

import enum
import struct
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from loguru import logger

from parsers.varint import decode_varint


class WireType(enum.IntEnum):
    """On-wire encoding shape of a field"""
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    FIXED32 = 5


class WireFormatError(ValueError):
    """Base class for malformed wire data"""

    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} at offset {offset}")
        self.offset = offset


class TruncatedMessageError(WireFormatError):
    """A value runs past the end of the buffer"""


class UnknownWireTypeError(WireFormatError):
    """A tag carries a wire type we cannot size, so the walk cannot resync"""

    def __init__(self, wire_type: int, offset: int):
        super().__init__(f"Unknown wire type {wire_type}", offset)
        self.wire_type = wire_type


@dataclass(frozen=True)
class WireField:
    """One decoded field: varint values are ints, everything else raw bytes."""
    field_number: int
    wire_type: WireType
    value: Union[int, bytes]
    offset: int

    def as_double(self) -> float:
        if self.wire_type is not WireType.FIXED64:
            raise TypeError(f"Field {self.field_number} is not a 64-bit fixed field")
        return struct.unpack("<d", self.value)[0]

    def as_float(self) -> float:
        if self.wire_type is not WireType.FIXED32:
            raise TypeError(f"Field {self.field_number} is not a 32-bit fixed field")
        return struct.unpack("<f", self.value)[0]

    def as_text(self) -> str:
        if self.wire_type is not WireType.LENGTH_DELIMITED:
            raise TypeError(f"Field {self.field_number} is not length-delimited")
        return self.value.decode("utf-8", errors="replace")


_KNOWN_WIRE_TYPES = frozenset(t.value for t in WireType)

_FIXED_SIZES = {
    WireType.FIXED64: 8,
    WireType.FIXED32: 4,
}


class WireReader:
    """
    Lazy field walker over one message.

    Usage:
        reader = WireReader(buffer)
        for wire_field in reader:
            ...
        if reader.error:
            # walk stopped early
    """

    def __init__(self, buffer: bytes, offset: int = 0, strict: bool = False):
        """
        Args:
            buffer: Message bytes
            offset: Where the first tag starts
            strict: Raise WireFormatError instead of recording it
        """
        self.buffer = bytes(buffer)
        self.offset = offset
        self.strict = strict
        self.error: Optional[WireFormatError] = None
        self._started = False

    def __iter__(self) -> Iterator[WireField]:
        if self._started:
            raise RuntimeError("WireReader cannot be restarted")
        self._started = True
        return self._walk()

    @property
    def exhausted(self) -> bool:
        """True when the walk consumed the whole buffer without error."""
        return self.error is None and self.offset >= len(self.buffer)

    def _fail(self, error: WireFormatError) -> None:
        self.error = error
        if self.strict:
            raise error
        logger.debug(f"WireReader stopped: {error}")

    def _walk(self) -> Iterator[WireField]:
        buffer = self.buffer
        end = len(buffer)

        while self.offset < end:
            start = self.offset
            tag, tag_len = decode_varint(buffer, start)
            if tag_len == 0:
                self._fail(TruncatedMessageError("Tag runs past end of buffer", start))
                return

            field_number = tag >> 3
            raw_type = tag & 0x07
            cursor = start + tag_len

            if raw_type not in _KNOWN_WIRE_TYPES:
                self._fail(UnknownWireTypeError(raw_type, start))
                return
            wire_type = WireType(raw_type)

            if wire_type is WireType.VARINT:
                value, size = decode_varint(buffer, cursor)
                if size == 0:
                    self._fail(TruncatedMessageError(f"Varint field {field_number} truncated", cursor))
                    return
                cursor += size

            elif wire_type is WireType.LENGTH_DELIMITED:
                length, size = decode_varint(buffer, cursor)
                if size == 0:
                    self._fail(TruncatedMessageError(f"Length of field {field_number} truncated", cursor))
                    return
                cursor += size
                if cursor + length > end:
                    self._fail(TruncatedMessageError(
                        f"Field {field_number} declares {length} bytes, {end - cursor} remain", cursor
                    ))
                    return
                value = buffer[cursor:cursor + length]
                cursor += length

            else:
                size = _FIXED_SIZES[wire_type]
                if cursor + size > end:
                    self._fail(TruncatedMessageError(
                        f"Fixed field {field_number} needs {size} bytes, {end - cursor} remain", cursor
                    ))
                    return
                value = buffer[cursor:cursor + size]
                cursor += size

            self.offset = cursor
            yield WireField(field_number, wire_type, value, start)


def iter_fields(buffer: bytes, offset: int = 0) -> Iterator[WireField]:
    """Convenience wrapper: walk a buffer leniently."""
    return iter(WireReader(buffer, offset))
