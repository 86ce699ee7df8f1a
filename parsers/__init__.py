"""Wire-format decoding for the live RTP endpoint"""

from parsers.varint import decode_varint, encode_varint
from parsers.wire_reader import (
    WireField,
    WireReader,
    WireType,
    WireFormatError,
    TruncatedMessageError,
    UnknownWireTypeError,
    iter_fields,
)
from parsers.game_record_parser import (
    FrameExtraction,
    extract_games,
    parse_game_record,
    parse_provider_name,
    scan_frame,
)

__all__ = [
    "decode_varint",
    "encode_varint",
    "WireField",
    "WireReader",
    "WireType",
    "WireFormatError",
    "TruncatedMessageError",
    "UnknownWireTypeError",
    "iter_fields",
    "FrameExtraction",
    "extract_games",
    "parse_game_record",
    "parse_provider_name",
    "scan_frame",
]
