"""
Configuration ingestion: segments, label names and constants.

A segments file is a JSON document:

    {
        "data": [
            {"from": "$0900", "to": "$09ff", "type": "all"},
            {"from": 2560, "to": 2575, "type": "text"}
        ],
        "labels":    {"$0810": "main", "2100": "!loop"},
        "constants": {"$d020": "BORDER"}
    }

Addresses may be integers, decimal strings, `$hex` or `0xhex`. They are
normalized to int here; nothing past this module sees the string forms.
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigError
from .segments import Segment, SegmentKind

__all__ = [
    'DisassemblerConfig', 'parse_address', 'load_default_constants',
    'DEFAULT_CONSTANTS_PATH',
]

logger = logging.getLogger(__name__)

DEFAULT_CONSTANTS_PATH = Path(__file__).parent / "data" / "default_constants.json"


def parse_address(value: Any) -> int:
    """Parse an address that may be hex ($ or 0x prefix), decimal, or int."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid address: {value!r}")
    if isinstance(value, int):
        address = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            if text.startswith('$'):
                address = int(text[1:], 16)   # Commodore hex convention
            elif text.lower().startswith('0x'):
                address = int(text, 16)
            else:
                address = int(text, 10)
        except ValueError:
            raise ConfigError(f"Invalid address: {value!r}")
    else:
        raise ConfigError(f"Invalid address: {value!r}")

    if not 0 <= address <= 0xFFFF:
        raise ConfigError(f"Address out of range: {value!r}")
    return address


def _address_map(raw: Any, what: str) -> Dict[int, str]:
    if not isinstance(raw, dict):
        raise ConfigError(f"'{what}' must be an object of address -> name")
    result: Dict[int, str] = {}
    for key, value in raw.items():
        # Labels may also be given as {"name": ...}
        if isinstance(value, dict):
            value = value.get('name')
        if not isinstance(value, str) or not value:
            raise ConfigError(f"Invalid {what} name for {key}: {value!r}")
        result[parse_address(key)] = value
    return result


def _segment(raw: Any) -> Segment:
    if not isinstance(raw, dict) or 'from' not in raw or 'to' not in raw:
        raise ConfigError(f"Segment needs 'from' and 'to': {raw!r}")
    kind_name = raw.get('type', SegmentKind.SINGLE_BYTES.value)
    try:
        kind = SegmentKind(kind_name)
    except ValueError:
        raise ConfigError(f"Unknown segment type {kind_name!r}")
    return Segment(parse_address(raw['from']), parse_address(raw['to']), kind)


def load_default_constants(path: Union[str, Path, None] = None) -> Dict[int, str]:
    """Load the bundled hardware register names."""
    path = Path(path) if path else DEFAULT_CONSTANTS_PATH
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot load constants {path}: {e}")
    return _address_map(raw, 'constants')


@dataclass
class DisassemblerConfig:
    """Everything a run needs besides the image itself."""
    segments: List[Segment] = field(default_factory=list)
    labels: Dict[int, str] = field(default_factory=dict)
    constants: Dict[int, str] = field(default_factory=dict)
    address_comments: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any],
                  defaults: Optional[Dict[int, str]] = None) -> "DisassemblerConfig":
        """Build a config from parsed JSON; file constants override defaults."""
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object")
        segments_raw = data.get('data', [])
        if not isinstance(segments_raw, list):
            raise ConfigError("'data' must be a list of segments")

        constants = dict(load_default_constants() if defaults is None else defaults)
        constants.update(_address_map(data.get('constants', {}), 'constants'))

        return cls(
            segments=[_segment(seg) for seg in segments_raw],
            labels=_address_map(data.get('labels', {}), 'labels'),
            constants=constants,
        )

    @classmethod
    def load(cls, path: Union[str, Path, None] = None,
             defaults: Optional[Dict[int, str]] = None) -> "DisassemblerConfig":
        """Read a segments file, or just the defaults when path is None."""
        if path is None:
            return cls.from_dict({}, defaults)
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read segments file {path}: {e}")
        except ValueError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}")
        config = cls.from_dict(data, defaults)
        logger.debug(f"Loaded {path}: {len(config.segments)} segments, "
                     f"{len(config.labels)} labels, {len(config.constants)} constants")
        return config
