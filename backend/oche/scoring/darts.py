from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from oche.scoring.errors import InvalidDartError

BULL = 25
VALID_SEGMENTS: tuple[int, ...] = (*range(0, 21), BULL)
MAX_DARTS_PER_ROUND = 3


class Multiplier(str, Enum):
    SINGLE = "S"
    DOUBLE = "D"
    TRIPLE = "T"

    @property
    def factor(self) -> int:
        return {"S": 1, "D": 2, "T": 3}[self.value]

    @classmethod
    def parse(cls, value: Multiplier | str) -> Multiplier:
        if isinstance(value, Multiplier):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as e:
            raise InvalidDartError(f"unknown multiplier {value!r}") from e


@dataclass(frozen=True)
class Dart:
    """
    A single dart throw.

    - segment: 1-20 for standard beds, 25 for bull, 0 for a miss
    - multiplier: S (single), D (double), T (triple)

    The score is always derived from (multiplier, segment). A single bull
    scores 25 and a double bull 50, which falls out of the normal arithmetic.
    """

    multiplier: Multiplier
    segment: int

    def __post_init__(self) -> None:
        if not isinstance(self.multiplier, Multiplier):
            raise InvalidDartError(f"unknown multiplier {self.multiplier!r}")
        if isinstance(self.segment, bool) or not isinstance(self.segment, int):
            raise InvalidDartError("segment must be an integer")
        if self.segment not in VALID_SEGMENTS:
            raise InvalidDartError("segment must be 1-20, 25 (bull), or 0 (miss)")
        if self.segment == BULL and self.multiplier is Multiplier.TRIPLE:
            raise InvalidDartError("bull cannot be a triple")

    @property
    def score(self) -> int:
        return self.segment * self.multiplier.factor

    @property
    def is_double(self) -> bool:
        return self.multiplier is Multiplier.DOUBLE and self.segment != 0

    @property
    def is_triple(self) -> bool:
        return self.multiplier is Multiplier.TRIPLE and self.segment != 0

    @property
    def is_bull(self) -> bool:
        return self.segment == BULL

    @property
    def is_miss(self) -> bool:
        return self.segment == 0

    @property
    def display(self) -> str:
        if self.segment == 0:
            return "Miss"
        if self.segment == BULL:
            return "Bull" if self.multiplier is Multiplier.DOUBLE else "S-Bull"
        return f"{self.multiplier.value}{self.segment}"

    def __str__(self) -> str:
        return self.display


def make_dart(multiplier: Multiplier | str, segment: int) -> Dart:
    return Dart(Multiplier.parse(multiplier), segment)


@dataclass(frozen=True)
class Round:
    """
    Up to three darts thrown by one player in one turn.
    """

    darts: tuple[Dart, ...]
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if len(self.darts) > MAX_DARTS_PER_ROUND:
            raise InvalidDartError("a round may include at most 3 darts")

    @property
    def total(self) -> int:
        return sum(d.score for d in self.darts)

    @property
    def is_complete(self) -> bool:
        return len(self.darts) == MAX_DARTS_PER_ROUND

    @property
    def last_dart(self) -> Dart | None:
        return self.darts[-1] if self.darts else None


def make_round(darts: Iterable[Dart], *, timestamp: float | None = None) -> Round:
    dart_list = tuple(darts)
    for d in dart_list:
        if not isinstance(d, Dart):
            raise InvalidDartError(f"not a dart: {d!r}")
    if timestamp is None:
        return Round(dart_list)
    return Round(dart_list, timestamp)


# Text input ("treble 20", "D16", "double bull", "5") as produced by voice or
# keyboard front-ends. Anything unrecognised yields no dart.
_BULL_RE = re.compile(r"\b(bullseye|bulls eye|bull)\b")
_TRIPLE_RE = re.compile(r"^(?:triple|treble|t)\s*(\d+)$")
_DOUBLE_RE = re.compile(r"^(?:double|d)\s*(\d+)$")
_SINGLE_RE = re.compile(r"^(?:single|s)?\s*(\d+)$")


def parse_dart(text: str) -> Dart | None:
    cleaned = " ".join(text.lower().split())
    if not cleaned:
        return None

    if cleaned in {"miss", "missed", "zero"}:
        return Dart(Multiplier.SINGLE, 0)

    if _BULL_RE.search(cleaned):
        if "single" in cleaned or "outer" in cleaned:
            return Dart(Multiplier.SINGLE, BULL)
        is_double = "double" in cleaned or cleaned == "bull"
        return Dart(Multiplier.DOUBLE if is_double else Multiplier.SINGLE, BULL)

    m = _TRIPLE_RE.match(cleaned)
    if m:
        num = int(m.group(1))
        return Dart(Multiplier.TRIPLE, num) if 1 <= num <= 20 else None

    m = _DOUBLE_RE.match(cleaned)
    if m:
        num = int(m.group(1))
        return Dart(Multiplier.DOUBLE, num) if (1 <= num <= 20 or num == BULL) else None

    m = _SINGLE_RE.match(cleaned)
    if m:
        num = int(m.group(1))
        return Dart(Multiplier.SINGLE, num) if num in VALID_SEGMENTS else None

    return None
