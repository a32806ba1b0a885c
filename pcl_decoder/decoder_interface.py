from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import os
import yaml
import logging
import threading
from pathlib import Path

from .pcl_protocol import Channel, DecodeError, FormatError
from .pcl_protocol.commands import CommandRegistry, PAYLOAD_PARSERS
from .pcl_protocol.messages import ProcessedUplink, process_uplink


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config", "config.yaml")
AREA_ERROR_PREFIX = "Couldn't decode area payload: "


@dataclass(frozen=True)
class CommandSpec:
    """One entry of the command table"""

    channel: int  # fPort
    command_id: int  # Command id within the channel
    name: str  # Reported command name
    parser: Optional[str] = None  # Key into PAYLOAD_PARSERS


@dataclass(frozen=True)
class DecoderConfig:
    """Configuration for the uplink decoder"""

    counting_channel: int = Channel.COUNTING_DATA
    area_channel: int = Channel.GET_AREA
    commands: Tuple[CommandSpec, ...] = ()


@dataclass
class DecodeResult:
    """Result envelope of a single decode call"""

    data: Optional[Dict[str, Any]] = None  # Decoded record, None on failure
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.data is not None and not self.errors

    def to_dict(self) -> Dict[str, Any]:
        """Render the network server envelope, omitting empty members"""
        result: Dict[str, Any] = {}
        if self.data is not None:
            result["data"] = self.data
        if self.warnings:
            result["warnings"] = list(self.warnings)
        if self.errors:
            result["errors"] = list(self.errors)
        return result


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> DecoderConfig:
    """Load decoder configuration from YAML file

    Args:
        config_path: Path to config file

    Returns:
        DecoderConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r") as f:
        config = yaml.safe_load(f) or {}

    if "PeopleCounter" not in config:
        raise ValueError("Missing required keys in config: {'PeopleCounter'}")
    config = config["PeopleCounter"] or {}

    required_keys = {"commands"}
    missing = required_keys - set(config.keys())
    if missing:
        raise ValueError(f"Missing required keys in config: {missing}")

    commands = []
    for entry in config["commands"]:
        missing = {"channel", "id", "name"} - set(entry.keys())
        if missing:
            raise ValueError(f"Missing required keys in command entry {entry}: {missing}")
        parser = entry.get("parser")
        if parser is not None and parser not in PAYLOAD_PARSERS:
            raise ValueError(
                f"Unknown payload parser '{parser}' for {entry['name']}. "
                f"Valid: {list(PAYLOAD_PARSERS)}"
            )
        commands.append(
            CommandSpec(
                channel=int(entry["channel"]),
                command_id=int(entry["id"]),
                name=str(entry["name"]),
                parser=parser,
            )
        )

    return DecoderConfig(
        counting_channel=int(config.get("counting_channel", Channel.COUNTING_DATA)),
        area_channel=int(config.get("area_channel", Channel.GET_AREA)),
        commands=tuple(commands),
    )


def build_registry(config: DecoderConfig) -> CommandRegistry:
    """Register every command of the config and freeze the table

    Raises:
        RangeError: If an entry has an out-of-range channel or command id
    """
    registry = CommandRegistry()
    for entry in config.commands:
        parser = PAYLOAD_PARSERS[entry.parser] if entry.parser else None
        registry.register(entry.channel, entry.command_id, entry.name, parser)
    logger.debug(f"Registered {len(registry)} commands")
    return registry.freeze()


class PeopleCounterDecoder:
    """Uplink decoder for the people counter"""

    def __init__(self, config: Optional[DecoderConfig] = None):
        """Initialize decoder

        Args:
            config: Decoder configuration, the bundled config if omitted
        """
        self.config = config if config is not None else load_config()
        self.registry = build_registry(self.config)
        logger.info(
            f"Decoder ready: {len(self.registry)} commands, counting fPort "
            f"{self.config.counting_channel}, area fPort {self.config.area_channel}"
        )

    @classmethod
    def from_yaml(cls, config_path: str) -> "PeopleCounterDecoder":
        return cls(load_config(config_path))

    def process(self, data: bytes, channel: int) -> ProcessedUplink:
        """Decode a frame, raising DecodeError on failure"""
        return process_uplink(
            channel,
            data,
            self.registry,
            counting_channel=self.config.counting_channel,
            area_channel=self.config.area_channel,
        )

    def decode(self, data: bytes, channel: int) -> DecodeResult:
        """Decode a frame into a result envelope

        Args:
            data: Raw frame bytes (bytes or a list of ints 0-255)
            channel: fPort the frame arrived on

        Returns:
            DecodeResult with either data or a single error message
        """
        if not isinstance(data, (bytes, bytearray, list, tuple)):
            logger.warning(f"Rejected uplink on fPort {channel}: bytes is {type(data).__name__}")
            return DecodeResult(errors=[
                f"Invalid input field bytes: expected a byte sequence, got {type(data).__name__}"
            ])

        try:
            uplink = self.process(bytes(data), channel)
        except FormatError as e:
            logger.warning(f"Failed to decode area payload on fPort {channel}: {e}")
            return DecodeResult(errors=[f"{AREA_ERROR_PREFIX}{e}"])
        except (DecodeError, ValueError, TypeError) as e:
            logger.warning(f"Failed to decode uplink on fPort {channel}: {e}")
            return DecodeResult(errors=[str(e)])

        return DecodeResult(data=uplink.to_data())


_default_decoder: Optional[PeopleCounterDecoder] = None
_default_decoder_lock = threading.Lock()


def get_default_decoder() -> PeopleCounterDecoder:
    """Decoder built from the bundled config, created on first use

    Convenience for callers of decode_uplink that do not hold their own
    PeopleCounterDecoder. The instance is fully built before it is published.
    """
    global _default_decoder
    with _default_decoder_lock:
        if _default_decoder is None:
            _default_decoder = PeopleCounterDecoder()
        return _default_decoder


def decode_uplink(uplink: Dict[str, Any],
                  decoder: Optional[PeopleCounterDecoder] = None) -> Dict[str, Any]:
    """Network server entry point

    Args:
        uplink: {"bytes": [...], "fPort": n}; "channel" is accepted for "fPort"
        decoder: Decoder to use, the default decoder if omitted

    Returns:
        {"data": {...}} on success, {"errors": ["..."]} on failure
    """
    data = uplink.get("bytes")
    channel = uplink.get("fPort", uplink.get("channel"))
    if data is None:
        return DecodeResult(errors=["Missing required input field: bytes"]).to_dict()
    if channel is None:
        return DecodeResult(errors=["Missing required input field: fPort"]).to_dict()

    decoder = decoder if decoder is not None else get_default_decoder()
    return decoder.decode(data, channel).to_dict()
