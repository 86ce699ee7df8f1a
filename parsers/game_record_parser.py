"""
Parser for the live RTP frame

Frame layout, as observed on the wire (no published schema):

    0A 02 08 <window>          envelope (skipped when present)
    12 <len> <game message>    repeated, field 2 length-delimited
    ...

Game message fields:

    1  varint   game id
    2  bytes    game name (UTF-8)
    3  bytes    provider sub-message (name in its field 2)
    4  bytes    image path, accepted when it starts with /static
    5  varint   RTP deviation magnitude in basis points
    6  varint   deviation sign, int64 stored as uint64
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from analysis.sign import to_sign
from models.rtp_models import GameRecord, Window
from parsers.varint import decode_varint
from parsers.wire_reader import WireField, WireFormatError, WireReader, WireType

ENVELOPE_SIGNATURE = b"\x0a\x02"
ENVELOPE_SIZE = 4
GAME_TAG = 0x12
IMAGE_PREFIX = "/static"
MAX_REPORTED_ERRORS = 10


def _set_game_id(record: GameRecord, wire_field: WireField) -> None:
    record.game_id = str(wire_field.value)


def _set_game_name(record: GameRecord, wire_field: WireField) -> None:
    record.game_name = wire_field.as_text()


def _set_provider(record: GameRecord, wire_field: WireField) -> None:
    record.provider = parse_provider_name(wire_field.value)


def _set_image_path(record: GameRecord, wire_field: WireField) -> None:
    path = wire_field.as_text()
    if path.startswith(IMAGE_PREFIX):
        record.image_path = path


def _set_magnitude(record: GameRecord, wire_field: WireField) -> None:
    record.magnitude_bps = int(wire_field.value)


def _set_sign(record: GameRecord, wire_field: WireField) -> None:
    record.sign = to_sign(wire_field.value)


# (field number, wire type) -> handler. Anything not listed is ignored; the
# reader has already advanced past it.
GAME_FIELD_HANDLERS: Dict[Tuple[int, WireType], Callable[[GameRecord, WireField], None]] = {
    (1, WireType.VARINT): _set_game_id,
    (2, WireType.LENGTH_DELIMITED): _set_game_name,
    (3, WireType.LENGTH_DELIMITED): _set_provider,
    (4, WireType.LENGTH_DELIMITED): _set_image_path,
    (5, WireType.VARINT): _set_magnitude,
    (6, WireType.VARINT): _set_sign,
}


@dataclass
class FrameExtraction:
    """Games recovered from one frame plus a parse report"""
    window: Optional[Window]
    frame_size: int
    games: List[GameRecord] = field(default_factory=list)
    candidates: int = 0          # 0x12-tagged sub-messages found
    dropped: int = 0             # sub-messages without a game name
    incomplete: int = 0          # sub-messages whose walk stopped early
    truncated: bool = False      # frame ended inside a declared sub-message
    wire_errors: List[str] = field(default_factory=list)
    drift_suspected: bool = False
    drift_reason: Optional[str] = None

    def record_error(self, message: str) -> None:
        if len(self.wire_errors) < MAX_REPORTED_ERRORS:
            self.wire_errors.append(message)

    @property
    def parse_ratio(self) -> float:
        if self.candidates == 0:
            return 0.0
        return len(self.games) / self.candidates

    def check_drift(self, max_records: int, min_parse_ratio: float) -> bool:
        """
        Flag frames that look like an upstream format change rather than
        "no games right now".
        """
        reason = None
        if self.frame_size > ENVELOPE_SIZE and not self.games:
            reason = f"{self.frame_size}-byte frame produced no game records"
        elif self.candidates and self.parse_ratio < min_parse_ratio:
            reason = f"only {len(self.games)}/{self.candidates} sub-messages parsed as games"
        elif len(self.games) > max_records:
            reason = f"{len(self.games)} records exceeds bound of {max_records}"

        self.drift_suspected = reason is not None
        self.drift_reason = reason
        return self.drift_suspected

    def to_dict(self) -> Dict:
        return {
            "window": self.window.value if self.window else None,
            "frame_size": self.frame_size,
            "games": len(self.games),
            "candidates": self.candidates,
            "dropped": self.dropped,
            "incomplete": self.incomplete,
            "truncated": self.truncated,
            "wire_errors": list(self.wire_errors),
            "drift_suspected": self.drift_suspected,
            "drift_reason": self.drift_reason,
        }


def parse_provider_name(buffer: bytes) -> Optional[str]:
    """Provider name from the nested provider message (field 2), or None."""
    for wire_field in WireReader(buffer):
        if wire_field.field_number == 2 and wire_field.wire_type is WireType.LENGTH_DELIMITED:
            return wire_field.as_text()
    return None


def parse_game_record(buffer: bytes) -> GameRecord:
    """
    Parse one game sub-message

    A walk that stops early keeps whatever fields were read before the stop.
    """
    record, _ = _parse_game_record(buffer)
    return record


def _parse_game_record(buffer: bytes) -> Tuple[GameRecord, Optional[WireFormatError]]:
    record = GameRecord()
    reader = WireReader(buffer)

    for wire_field in reader:
        handler = GAME_FIELD_HANDLERS.get((wire_field.field_number, wire_field.wire_type))
        if handler is not None:
            handler(record, wire_field)

    if reader.error is not None:
        logger.warning(f"Game sub-message parse stopped early: {reader.error}")
    return record, reader.error


def scan_frame(frame: bytes, window: Optional[Window] = None) -> FrameExtraction:
    """
    Split a frame into game sub-messages and parse each one

    The top level is not strictly self-delimiting, so any byte that is not
    the game tag is skipped one at a time.

    Args:
        frame: Raw response bytes for one window
        window: Window the frame was requested for (reporting only)

    Returns:
        FrameExtraction with the kept records and a parse report
    """
    frame = bytes(frame or b"")
    result = FrameExtraction(window=window, frame_size=len(frame))
    offset = 0

    if frame[:2] == ENVELOPE_SIGNATURE:
        offset = ENVELOPE_SIZE

    while offset < len(frame):
        if frame[offset] != GAME_TAG:
            offset += 1
            continue

        offset += 1
        size, size_bytes = decode_varint(frame, offset)
        if size_bytes == 0:
            result.truncated = True
            result.record_error(f"Sub-message length runs past end of frame at offset {offset}")
            break
        offset += size_bytes

        if size == 0:
            break
        if offset + size > len(frame):
            logger.warning(
                f"Frame truncated: sub-message declares {size} bytes at offset {offset}, "
                f"{len(frame) - offset} remain"
            )
            result.truncated = True
            result.record_error(f"Sub-message of {size} bytes at offset {offset} exceeds frame")
            break

        result.candidates += 1
        record, error = _parse_game_record(frame[offset:offset + size])
        if error is not None:
            result.incomplete += 1
            result.record_error(f"Sub-message at frame offset {offset}: {error}")

        if record.game_name is not None:
            result.games.append(record)
        else:
            result.dropped += 1

        offset += size

    return result


def extract_games(frame: bytes, window: Optional[Window] = None) -> List[GameRecord]:
    """Ordered game records from one frame; records without a name are dropped."""
    return scan_frame(frame, window).games
