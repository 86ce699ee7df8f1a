"""
Test Suite for the Varint Codec
"""

import pytest
from parsers.varint import (
    decode_varint,
    encode_varint,
    encode_tag,
    encode_varint_field,
    WIRE_LENGTH_DELIMITED,
)


class TestDecodeVarint:

    def test_single_byte(self):
        assert decode_varint(b"\x01") == (1, 1)
        assert decode_varint(b"\x7f") == (127, 1)

    def test_multi_byte(self):
        assert decode_varint(b"\xac\x02") == (300, 2)

    def test_offset(self):
        assert decode_varint(b"\xff\xac\x02", 1) == (300, 2)

    def test_max_uint64(self):
        encoded = b"\xff" * 9 + b"\x01"
        assert decode_varint(encoded) == ((1 << 64) - 1, 10)

    def test_unterminated_returns_zero_zero(self):
        """A continuation bit on the last byte means end of input, not zero."""
        assert decode_varint(b"\x80") == (0, 0)
        assert decode_varint(b"\xff\xff") == (0, 0)

    def test_empty_or_past_end(self):
        assert decode_varint(b"") == (0, 0)
        assert decode_varint(b"\x01", 5) == (0, 0)


class TestEncodeVarint:

    def test_known_encodings(self):
        assert encode_varint(0) == b"\x00"
        assert encode_varint(1) == b"\x01"
        assert encode_varint(300) == b"\xac\x02"

    @pytest.mark.parametrize("value", [0, 1, 127, 128, 16384, 2 ** 63, 2 ** 64 - 1])
    def test_round_trip(self, value):
        encoded = encode_varint(value)
        assert decode_varint(encoded) == (value, len(encoded))

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            encode_varint(-1)

    def test_request_bodies(self):
        """Daily and weekly request bodies of the live RTP endpoint."""
        assert encode_varint_field(1, 1) + encode_varint_field(2, 2) == bytes([0x08, 0x01, 0x10, 0x02])
        assert encode_varint_field(1, 2) + encode_varint_field(2, 2) == bytes([0x08, 0x02, 0x10, 0x02])

    def test_tag(self):
        assert encode_tag(2, WIRE_LENGTH_DELIMITED) == b"\x12"
