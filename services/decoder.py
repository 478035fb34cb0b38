"""Conversion between holding-register words and float32 readings.

Each reading spans two consecutive registers. The device sends the low word
first, so a pair ``(w0, w1)`` carries the float whose big-endian bit
pattern is ``w1 << 16 | w0``. Byte order inside a word is whatever the
transport delivered.
"""

from __future__ import annotations

import struct
from typing import List, Sequence, Tuple

from models.records import SensorReading

WORDS_PER_READING = 2

_WORD_PAIR = struct.Struct(">HH")
_FLOAT32 = struct.Struct(">f")


class DecodeError(ValueError):
    """Register block does not match the fixed float32 layout."""


def decode(words: Sequence[int]) -> List[SensorReading]:
    if len(words) % WORDS_PER_READING:
        raise DecodeError(
            f"Register block has {len(words)} words; float32 readings need an even count."
        )

    readings: List[SensorReading] = []
    for index in range(len(words) // WORDS_PER_READING):
        low = words[index * WORDS_PER_READING]
        high = words[index * WORDS_PER_READING + 1]
        for word in (low, high):
            if not isinstance(word, int) or not 0 <= word <= 0xFFFF:
                raise DecodeError(f"Register value {word!r} is not an unsigned 16-bit word.")
        (value,) = _FLOAT32.unpack(_WORD_PAIR.pack(high, low))
        readings.append(SensorReading(index=index, value=value))
    return readings


def encode(value: float) -> Tuple[int, int]:
    """Split ``value`` into ``(low, high)`` register words, the inverse of ``decode``."""
    high, low = _WORD_PAIR.unpack(_FLOAT32.pack(value))
    return low, high
