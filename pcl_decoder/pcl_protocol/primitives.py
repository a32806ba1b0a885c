"""Bit and byte level helpers shared by the frame decoders"""

import numpy as np
from . import LengthError

UINT16_BYTES = 2
UINT32_BYTES = 4

def is_bit_set(byte: int, k: int) -> bool:
    """Check bit k of an 8-bit value (0 is the least significant bit)"""
    return bool(byte & (1 << k))

def bytes_to_bit_string(data: bytes) -> str:
    """Concatenate the 8-bit big-endian binary form of each byte

    Example:
        bytes([0, 1, 255]) -> "000000000000000111111111"
    """
    bits = np.unpackbits(np.frombuffer(bytes(data), dtype=np.uint8))
    return "".join(str(bit) for bit in bits)

def decode_uint(data: bytes, width: int) -> int:
    """Decode exactly `width` bytes as a big-endian unsigned integer

    Args:
        data: Raw bytes
        width: Expected number of bytes

    Returns:
        Decoded value

    Raises:
        LengthError: If data does not hold exactly `width` bytes
    """
    if len(data) != width:
        raise LengthError(f"uint{width * 8} must have exactly {width} bytes, got {len(data)}")
    return int.from_bytes(bytes(data), 'big', signed=False)

def uint16(data: bytes) -> int:
    return decode_uint(data, UINT16_BYTES)

def uint32(data: bytes) -> int:
    return decode_uint(data, UINT32_BYTES)
