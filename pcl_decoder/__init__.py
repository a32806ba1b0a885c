# pcl_decoder/__init__.py

from .decoder_interface import (
    PeopleCounterDecoder,
    DecoderConfig,
    CommandSpec,
    DecodeResult,
    load_config,
    build_registry,
    decode_uplink,
)
from .pcl_protocol import (
    Channel,
    DecodeError,
    RangeError,
    NotFoundError,
    LengthError,
    FormatError,
)

__all__ = [
    'PeopleCounterDecoder',
    'DecoderConfig',
    'CommandSpec',
    'DecodeResult',
    'load_config',
    'build_registry',
    'decode_uplink',
    'Channel',
    'DecodeError',
    'RangeError',
    'NotFoundError',
    'LengthError',
    'FormatError',
]
