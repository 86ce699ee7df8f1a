"""
Shared test fixtures for the live RTP monitor test suite.
"""

import sys
import os
from pathlib import Path

import pytest

# Ensure project root is on sys.path so package imports resolve
PROJECT_ROOT = str(Path(__file__).parent.parent)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# In-memory database, no artwork downloads, no network during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("IMAGE_CACHE_ENABLED", "false")
os.environ.setdefault("API_KEY", "test-api-key")

from parsers.varint import (  # noqa: E402
    encode_length_delimited_field,
    encode_varint,
    encode_varint_field,
)

UINT64_MINUS_ONE = (1 << 64) - 1


def build_game_message(
    game_id=None,
    name=None,
    provider=None,
    image_path=None,
    magnitude_bps=None,
    sign=None,
) -> bytes:
    """Encode one game sub-message; None fields are left out"""
    message = b""
    if game_id is not None:
        message += encode_varint_field(1, game_id)
    if name is not None:
        message += encode_length_delimited_field(2, name.encode("utf-8"))
    if provider is not None:
        message += encode_length_delimited_field(3, encode_length_delimited_field(2, provider.encode("utf-8")))
    if image_path is not None:
        message += encode_length_delimited_field(4, image_path.encode("utf-8"))
    if magnitude_bps is not None:
        message += encode_varint_field(5, magnitude_bps)
    if sign is not None:
        # -1 travels as its 64-bit two's complement
        message += encode_varint_field(6, sign & UINT64_MINUS_ONE)
    return message


def build_frame(*messages: bytes, selector: int = 1) -> bytes:
    """Envelope followed by 0x12-tagged game sub-messages"""
    frame = bytes([0x0A, 0x02, 0x08, selector])
    for message in messages:
        frame += b"\x12" + encode_varint(len(message)) + message
    return frame


@pytest.fixture
def game_message():
    return build_game_message


@pytest.fixture
def frame_builder():
    return build_frame


@pytest.fixture
def sweet_bonanza_frame():
    message = build_game_message(
        game_id=12345,
        name="Sweet Bonanza",
        provider="Pragmatic Play",
        magnitude_bps=20335,
        sign=-1,
    )
    return build_frame(message)


@pytest.fixture
def db_session():
    """Fresh schema on the in-memory engine"""
    from database.db import SessionLocal, engine
    from database.models import Base

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
