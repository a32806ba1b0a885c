"""Packed coordinate codec for counting area frames

Each point takes 13 bits, 7 for x followed by 6 for y, with no alignment
between points. The stream is left padded so the whole frame is a whole
number of bytes; the padding is discarded before decoding.
"""

from dataclasses import dataclass
import math
import logging
from typing import Tuple
from . import FormatError
from .primitives import bytes_to_bit_string

logger = logging.getLogger(__name__)

X_PACK_SIZE = 7
Y_PACK_SIZE = 6
POINT_SIZE = X_PACK_SIZE + Y_PACK_SIZE

@dataclass(frozen=True)
class Coordinate:
    """A single area vertex"""
    x: int  # 0-127
    y: int  # 0-63

@dataclass(frozen=True)
class AreaPayload:
    """Decoded counting area"""
    declared_count: int            # Point count announced in byte 0
    points: Tuple[Coordinate, ...]

def decode_points(bit_string: str) -> Tuple[Coordinate, ...]:
    """Convert a bit string to a sequence of coordinates

    Example:
        "00000000000001010000111100" -> (Coordinate(0, 0), Coordinate(80, 60))
    """
    padding = len(bit_string) % POINT_SIZE
    bit_string = bit_string[padding:]

    points = []
    for i in range(len(bit_string) // POINT_SIZE):
        start = POINT_SIZE * i
        x = bit_string[start:start + X_PACK_SIZE]
        y = bit_string[start + X_PACK_SIZE:start + POINT_SIZE]
        points.append(Coordinate(int(x, 2), int(y, 2)))
    return tuple(points)

def decode_area_payload(payload: bytes) -> AreaPayload:
    """Decode an area frame: a point count followed by packed points

    Raises:
        FormatError: If the packed data length does not match the count
    """
    if len(payload) < 1:
        raise FormatError("Inconsistent number of points")

    declared_count = payload[0]
    points_bytes = payload[1:]
    expected_bytes = math.ceil(declared_count * POINT_SIZE / 8)

    if len(points_bytes) != expected_bytes:
        logger.debug(
            f"Area frame declares {declared_count} points, "
            f"expected {expected_bytes} bytes, got {len(points_bytes)}"
        )
        raise FormatError("Inconsistent number of points")

    return AreaPayload(
        declared_count=declared_count,
        points=decode_points(bytes_to_bit_string(points_bytes)),
    )
