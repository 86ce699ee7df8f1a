"""
Sign / magnitude interpreter

The endpoint sends an RTP deviation as two varints: field 5 carries the
unsigned magnitude in basis points, field 6 carries a signed int64 squeezed
into an unsigned varint (two's complement).

Two conversion scales exist and feed different consumers:

- display:      bps / 100                -> signed percent (direct display variant)
- statistical:  bps / 10000 / 100        -> signed fraction (Bayesian engine)

Never substitute one for the other.
"""

from typing import Optional

TWO_63 = 1 << 63
TWO_64 = 1 << 64


def to_signed_int64(value: int) -> int:
    """Reinterpret an unsigned 64-bit integer as two's-complement int64."""
    return value - TWO_64 if value >= TWO_63 else value


def to_sign(value: int) -> int:
    """-1, 0 or 1 for the int64 carried in an unsigned varint."""
    signed = to_signed_int64(value)
    if signed < 0:
        return -1
    if signed > 0:
        return 1
    return 0


def basis_points_to_percent(magnitude_bps: Optional[int], sign: Optional[int]) -> Optional[float]:
    """Display scale: 20335 bps with sign -1 -> -203.35"""
    if magnitude_bps is None or sign is None:
        return None
    return (magnitude_bps / 100) * sign


def basis_points_to_percentage_points(magnitude_bps: Optional[int], sign: Optional[int]) -> Optional[float]:
    """Statistical scale, first step: 20335 bps with sign -1 -> -2.0335 pp"""
    if magnitude_bps is None or sign is None:
        return None
    return (magnitude_bps / 10000) * sign


def basis_points_to_fraction(magnitude_bps: Optional[int], sign: Optional[int]) -> Optional[float]:
    """Statistical scale: 20335 bps with sign -1 -> -0.020335"""
    if magnitude_bps is None or sign is None:
        return None
    return (magnitude_bps / 10000 / 100) * sign
