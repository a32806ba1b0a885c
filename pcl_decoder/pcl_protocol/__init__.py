"""People Counter LoRaWAN Uplink Protocol Implementation

This package implements decoding of the people counter uplink frames, with
separate modules for bit-level primitives, the packed area point codec,
the command table and the frame dispatcher.
"""

from enum import IntEnum
from typing import Optional

class Channel(IntEnum):
    """LoRaWAN fPort numbers used by the device"""
    COUNTING_DATA = 1          # Counting event, custom frame
    COUNTS = 2                 # Count get/set/reset
    REBOOT = 3                 # Device and TPC reboot
    SOFTWARE_VERSION = 4       # Component software versions
    ACCESS_POINT = 5           # WiFi access point state
    REJOIN = 6                 # Forced network rejoin
    TIME_SYNC = 7              # Forced time sync
    COUNTING_PARAM = 100       # Mounting height, direction, push period
    GET_AREA = 101             # Counting area points, custom frame
    SET_AREA = 102             # Counting area update

class FrameFormat(IntEnum):
    """How the bytes on a channel are laid out"""
    COUNTING_EVENT = 0x01      # Two counters and a flag byte
    AREA_POINTS = 0x02         # Point count and packed coordinates
    GENERIC = 0x03             # Header, then command payload

class DecodeError(ValueError):
    """Base class for every payload decoding failure"""

class RangeError(DecodeError):
    """Channel or command id outside the registrable range"""

class NotFoundError(DecodeError):
    """No command registered for a channel and command id"""

class LengthError(DecodeError):
    """Slice or frame has the wrong number of bytes"""

class FormatError(DecodeError):
    """Frame content contradicts its own declared layout"""

def get_frame_format(channel: int,
                     counting_channel: int = Channel.COUNTING_DATA,
                     area_channel: int = Channel.GET_AREA) -> FrameFormat:
    """Determine frame format from the channel number"""
    if channel == counting_channel:
        return FrameFormat.COUNTING_EVENT
    if channel == area_channel:
        return FrameFormat.AREA_POINTS
    return FrameFormat.GENERIC

def get_channel(channel: int) -> Optional[Channel]:
    """Map a raw fPort to a known channel, None when the device never uses it"""
    try:
        return Channel(channel)
    except ValueError:
        return None

# Export common types
__all__ = [
    'Channel', 'FrameFormat', 'get_frame_format', 'get_channel',
    'DecodeError', 'RangeError', 'NotFoundError', 'LengthError', 'FormatError',
    'primitives', 'points', 'commands', 'messages',
]
