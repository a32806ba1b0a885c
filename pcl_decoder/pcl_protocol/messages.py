"""Device to network uplink decoding"""

from dataclasses import dataclass, asdict
from enum import Enum, IntFlag
from typing import Any, Dict, Optional
import logging
from . import (
    Channel, DecodeError, FrameFormat, LengthError, get_channel, get_frame_format,
)
from .commands import CommandRegistry
from .points import AreaPayload, decode_area_payload
from .primitives import is_bit_set, uint32

logger = logging.getLogger(__name__)

ACK_SENTINEL = 0xFF            # Leading byte of an acknowledge envelope
ACK_ENVELOPE_SIZE = 3          # Sentinel, command id, status
COUNTING_FRAME_SIZE = 9        # count_in, count_out, flags
AREA_COMMAND_NAME = "CMD_GET_AREA_PTS"

class FrameKind(str, Enum):
    """Header variants of generic frames"""
    ACKNOWLEDGE = "acknowledge"
    RESPONSE = "response"

class StatusFlag(IntFlag):
    """Status bits of the counting event flag byte"""
    TPC_STOPPED = 0x01
    TPC_STUCK = 0x02
    MULTI_DEV_ISSUE = 0x04
    WIFI_AP_ENABLED = 0x08

@dataclass(frozen=True)
class Header:
    """Header of a generic frame"""
    command_id: int
    acknowledged: bool  # False only for a negative acknowledge
    kind: FrameKind

@dataclass(frozen=True)
class CountingEvent:
    """Counting event frame"""
    count_in: int
    count_out: int
    flags: StatusFlag

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count_in': self.count_in,
            'count_out': self.count_out,
            'flags': flags_to_dict(self.flags),
        }

@dataclass(frozen=True)
class CommandResult:
    """Outcome of a command as reported by the device"""
    name: str
    id: Optional[int]     # None for frames without a command id
    success: bool
    value: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        cmd = {'name': self.name, 'id': self.id, 'success': self.success}
        if isinstance(self.value, AreaPayload):
            cmd['value'] = asdict(self.value)
            cmd['value']['points'] = list(cmd['value']['points'])
        elif self.value is not None:
            cmd['value'] = self.value
        return cmd

@dataclass(frozen=True)
class ProcessedUplink:
    """Processed uplink from the device"""
    channel: int
    frame_format: FrameFormat
    counting: Optional[CountingEvent] = None
    command: Optional[CommandResult] = None

    def to_data(self) -> Dict[str, Any]:
        """Render the JSON-like `data` member of a decode result"""
        if self.counting is not None:
            return self.counting.to_dict()
        return {'cmd': self.command.to_dict()}

def decode_flags(flag_byte: int) -> StatusFlag:
    flags = StatusFlag(0)
    for bit, flag in enumerate(StatusFlag):
        if is_bit_set(flag_byte, bit):
            flags |= flag
    return flags

def flags_to_dict(flags: StatusFlag) -> Dict[str, int]:
    """Set flags only, each mapped to 1"""
    return {flag.name: 1 for flag in StatusFlag if flag in flags}

def parse_header(data: bytes) -> Header:
    """Split a generic frame header into command id and ack status

    A leading 0xFF marks an acknowledge envelope [0xFF, cmd_id, status]
    where status 0xFF is a negative acknowledge. Any other first byte is
    the command id of a direct response.

    Raises:
        LengthError: If the frame is empty or the envelope is truncated
    """
    if len(data) < 1:
        raise LengthError("Empty frame")

    if data[0] == ACK_SENTINEL:
        if len(data) < ACK_ENVELOPE_SIZE:
            raise LengthError(
                f"Acknowledge frame needs {ACK_ENVELOPE_SIZE} bytes, got {len(data)}"
            )
        return Header(
            command_id=data[1],
            acknowledged=data[2] != ACK_SENTINEL,
            kind=FrameKind.ACKNOWLEDGE,
        )

    return Header(command_id=data[0], acknowledged=True, kind=FrameKind.RESPONSE)

def process_uplink(channel: int, data: bytes, registry: CommandRegistry,
                   counting_channel: int = Channel.COUNTING_DATA,
                   area_channel: int = Channel.GET_AREA) -> ProcessedUplink:
    """Process a received uplink frame

    Args:
        channel: fPort the frame arrived on
        data: Raw frame bytes
        registry: Frozen command table used for generic frames
        counting_channel: fPort carrying counting events
        area_channel: fPort carrying area point frames

    Returns:
        ProcessedUplink holding the decoded frame

    Raises:
        DecodeError: If the frame cannot be decoded
    """
    data = bytes(data)
    frame_format = get_frame_format(channel, counting_channel, area_channel)

    if logger.isEnabledFor(logging.DEBUG):
        known = get_channel(channel)
        logger.debug(
            f"Uplink on fPort {channel} ({known.name if known else 'unknown'}), "
            f"{frame_format.name}: {data.hex(' ')}"
        )

    if frame_format == FrameFormat.COUNTING_EVENT:
        return ProcessedUplink(
            channel=channel,
            frame_format=frame_format,
            counting=_decode_counting_event(data),
        )

    if frame_format == FrameFormat.AREA_POINTS:
        return ProcessedUplink(
            channel=channel,
            frame_format=frame_format,
            command=CommandResult(
                name=AREA_COMMAND_NAME,
                id=None,
                success=True,
                value=decode_area_payload(data),
            ),
        )

    header = parse_header(data)
    descriptor = registry.lookup(channel, header.command_id)

    value = None
    if header.kind == FrameKind.RESPONSE:
        value = descriptor.parse(data[1:])
    elif header.acknowledged and len(data) > ACK_ENVELOPE_SIZE:
        # Positive acknowledge followed by the command's response payload
        try:
            value = descriptor.parse(data[ACK_ENVELOPE_SIZE:])
        except DecodeError as e:
            logger.debug(f"Ignoring acknowledge trailer of {descriptor.name}: {e}")

    return ProcessedUplink(
        channel=channel,
        frame_format=frame_format,
        command=CommandResult(
            name=descriptor.name,
            id=header.command_id,
            success=header.acknowledged,
            value=value,
        ),
    )

def _decode_counting_event(data: bytes) -> CountingEvent:
    """Decode a counting event frame (internal helper)"""
    if len(data) < COUNTING_FRAME_SIZE:
        raise LengthError(
            f"Counting frame needs {COUNTING_FRAME_SIZE} bytes, got {len(data)}"
        )
    return CountingEvent(
        count_in=uint32(data[0:4]),
        count_out=uint32(data[4:8]),
        flags=decode_flags(data[8]),
    )
