"""Command table and per-command payload parsers"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional
import logging
from . import RangeError, NotFoundError, LengthError
from .primitives import uint16, uint32

logger = logging.getLogger(__name__)

MIN_CHANNEL = 1
MAX_CHANNEL = 255
MIN_COMMAND_ID = 0
MAX_COMMAND_ID = 254

PayloadParser = Callable[[bytes], Dict[str, Any]]

@dataclass(frozen=True)
class CommandDescriptor:
    """A registered command and how to read its response payload"""
    name: str                              # e.g. CMD_CNT_GET
    parser: Optional[PayloadParser] = None  # None for commands without a value

    def parse(self, payload: bytes) -> Optional[Dict[str, Any]]:
        """Parse a response payload, None if the command carries no value"""
        if self.parser is None:
            return None
        return self.parser(payload)

def command_key(channel: int, command_id: int) -> str:
    """Registry key: two lowercase hex digits for each component"""
    return f"{channel:02x}{command_id:02x}"

class CommandRegistry:
    """Table of commands keyed by (channel, command id)

    Filled through register() at start-up, then frozen and only read.
    """

    def __init__(self):
        self._commands: Dict[str, CommandDescriptor] = {}
        self._frozen = False

    def register(self, channel: int, command_id: int, name: str,
                 parser: Optional[PayloadParser] = None) -> CommandDescriptor:
        """Register a command

        Args:
            channel: fPort, 1-255
            command_id: Command id, 0-254
            name: Command name reported in decoded frames
            parser: Optional payload parser

        Returns:
            The stored descriptor

        Raises:
            RangeError: If channel or command id is out of range
            RuntimeError: If the registry has been frozen
        """
        if self._frozen:
            raise RuntimeError("Command registry is frozen")
        if not MIN_CHANNEL <= channel <= MAX_CHANNEL:
            raise RangeError(f"channel must be between {MIN_CHANNEL} and {MAX_CHANNEL}, got {channel}")
        if not MIN_COMMAND_ID <= command_id <= MAX_COMMAND_ID:
            raise RangeError(f"command id must be between {MIN_COMMAND_ID} and {MAX_COMMAND_ID}, got {command_id}")

        key = command_key(channel, command_id)
        if key in self._commands:
            logger.debug(f"Overwriting command {self._commands[key].name} at key {key} with {name}")

        descriptor = CommandDescriptor(name=name, parser=parser)
        self._commands[key] = descriptor
        return descriptor

    def lookup(self, channel: int, command_id: int) -> CommandDescriptor:
        """Find the command registered for a channel and command id

        Raises:
            NotFoundError: If nothing is registered under that key
        """
        descriptor = self._commands.get(command_key(channel, command_id))
        if descriptor is None:
            raise NotFoundError("command not registered")
        return descriptor

    def freeze(self) -> 'CommandRegistry':
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def commands(self) -> Mapping[str, CommandDescriptor]:
        return MappingProxyType(self._commands)

    def __contains__(self, key: str) -> bool:
        return key in self._commands

    def __len__(self) -> int:
        return len(self._commands)

def _require(payload: bytes, size: int, what: str):
    if len(payload) < size:
        raise LengthError(f"{what} payload needs {size} bytes, got {len(payload)}")

def parse_counts(payload: bytes) -> Dict[str, Any]:
    return {
        'count_in': uint32(payload[0:4]),
        'count_out': uint32(payload[4:8]),
    }

def parse_count_direction(payload: bytes) -> Dict[str, Any]:
    _require(payload, 1, "Count direction")
    return {'direction': "reversed" if payload[0] == 1 else "normal"}

def parse_access_point_state(payload: bytes) -> Dict[str, Any]:
    _require(payload, 1, "Access point state")
    return {'state': "enabled" if payload[0] == 1 else "disabled"}

def parse_mounting_height(payload: bytes) -> Dict[str, Any]:
    return {'mounting_height': uint16(payload[0:2])}

def parse_push_period(payload: bytes) -> Dict[str, Any]:
    return {'push_period_min': uint16(payload[0:2])}

def parse_software_version(payload: bytes) -> Dict[str, Any]:
    """Version triple, one byte per component (major.minor.patch)"""
    _require(payload, 3, "Software version")
    return {'software_version': f"{payload[0]}.{payload[1]}.{payload[2]}"}

# Parser names as referenced by the command table in config.yaml
PAYLOAD_PARSERS: Mapping[str, PayloadParser] = MappingProxyType({
    'counts': parse_counts,
    'count_direction': parse_count_direction,
    'access_point_state': parse_access_point_state,
    'mounting_height': parse_mounting_height,
    'push_period': parse_push_period,
    'software_version': parse_software_version,
})
