"""
Segment Classifier.

Caller-declared address ranges override instruction decoding:
  all    the whole range becomes one `.byte` line
  text   the whole range becomes one `.text` line (screen codes)
  bytes  every byte in the range becomes its own `.byte` line

`all` and `text` only trigger when the cursor sits exactly on the first
address of the range. Landing inside one (e.g. after a misaligned
instruction) falls back to byte-by-byte output for the rest of it.
"""

from __future__ import annotations
import enum
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .errors import ConfigError, UnknownCharacterError

__all__ = [
    'SegmentKind', 'Segment', 'Classification', 'SegmentClassifier',
    'CharacterTable', 'CHARACTER_TABLE_PATH',
]

CHARACTER_TABLE_PATH = Path(__file__).parent / "data" / "c64screen.json"


class SegmentKind(enum.Enum):
    ALL_BYTES = 'all'
    TEXT = 'text'
    SINGLE_BYTES = 'bytes'


@dataclass(frozen=True)
class Segment:
    start: int
    end: int    # inclusive
    kind: SegmentKind = SegmentKind.SINGLE_BYTES

    def __post_init__(self):
        if self.end < self.start:
            raise ConfigError(
                f"Segment end ${self.end:04x} is before start ${self.start:04x}")

    def __contains__(self, address: int) -> bool:
        return self.start <= address <= self.end

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True)
class Classification:
    kind: SegmentKind
    length: int


class SegmentClassifier:
    """First-match lookup over an ordered segment list."""

    def __init__(self, segments: Iterable[Segment] = ()):
        self.segments: List[Segment] = list(segments)

    def classify(self, address: int) -> Optional[Classification]:
        for seg in self.segments:
            if address == seg.start and seg.kind is not SegmentKind.SINGLE_BYTES:
                return Classification(seg.kind, seg.length)
            if address in seg:
                return Classification(SegmentKind.SINGLE_BYTES, 1)
        return None


class CharacterTable:
    """Byte -> character mapping for `.text` output (256 entries)."""

    def __init__(self, mapping: Dict[int, str]):
        self._chars: List[Optional[str]] = [None] * 256
        for code, char in mapping.items():
            if not 0 <= code <= 0xFF:
                raise ConfigError(f"Character code {code} out of range")
            self._chars[code] = char

    @classmethod
    def load(cls, path: Union[str, Path, None] = None) -> "CharacterTable":
        path = Path(path) if path else CHARACTER_TABLE_PATH
        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
            mapping = {int(code): char for code, char in raw.items() if char}
        except (OSError, ValueError, AttributeError) as e:
            raise ConfigError(f"Cannot load character table {path}: {e}")
        return cls(mapping)

    def decode(self, data: bytes, address: int = 0) -> str:
        chars = []
        for i, byte in enumerate(data):
            char = self._chars[byte]
            if char is None:
                raise UnknownCharacterError(f"Unknown char {byte} (${byte:02x})", address + i)
            chars.append(char)
        return ''.join(chars)
