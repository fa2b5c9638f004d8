from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from oche.scoring.darts import BULL, Dart, Multiplier

Difficulty = Literal["easy", "medium", "hard"]

MAX_CHECKOUT = 170

# Standard finishes as called by most players. Values missing here are
# filled in by the route search below.
CURATED_CHECKOUTS: dict[int, tuple[str, ...]] = {
    170: ("T20", "T20", "D25"),
    167: ("T20", "T19", "D25"),
    164: ("T20", "T18", "D25"),
    161: ("T20", "T17", "D25"),
    160: ("T20", "T20", "D20"),
    158: ("T20", "T20", "D19"),
    157: ("T20", "T19", "D20"),
    156: ("T20", "T20", "D18"),
    155: ("T20", "T19", "D19"),
    154: ("T20", "T18", "D20"),
    153: ("T20", "T19", "D18"),
    152: ("T20", "T20", "D16"),
    151: ("T20", "T17", "D20"),
    150: ("T20", "T18", "D18"),
    140: ("T20", "T20", "D10"),
    130: ("T20", "T18", "D8"),
    120: ("T20", "S20", "D20"),
    110: ("T20", "S18", "D16"),
    100: ("T20", "D20"),
    90: ("T20", "D15"),
    80: ("T20", "D10"),
    70: ("T18", "D8"),
    60: ("S20", "D20"),
    50: ("S18", "D16"),
    40: ("D20",),
    32: ("D16",),
    24: ("D12",),
    16: ("D8",),
    8: ("D4",),
    4: ("D2",),
    2: ("D1",),
}


@dataclass(frozen=True)
class CheckoutSuggestion:
    """
    A suggested finish for a remaining score in a double-out game.
    """

    score: int
    path: tuple[str, ...]
    difficulty: Difficulty

    @property
    def description(self) -> str:
        return " → ".join(self.path)

    @property
    def darts_needed(self) -> int:
        return len(self.path)


def dart_label(d: Dart) -> str:
    # Checkout paths always spell the bull as S25/D25, unlike Dart.display.
    return f"{d.multiplier.value}{d.segment}"


def _all_scoring_darts() -> tuple[Dart, ...]:
    darts: list[Dart] = []
    for v in range(1, 21):
        darts.append(Dart(Multiplier.SINGLE, v))
        darts.append(Dart(Multiplier.DOUBLE, v))
        darts.append(Dart(Multiplier.TRIPLE, v))
    darts.append(Dart(Multiplier.SINGLE, BULL))
    darts.append(Dart(Multiplier.DOUBLE, BULL))
    return tuple(darts)


ALL_DARTS: tuple[Dart, ...] = _all_scoring_darts()

# score -> finishing doubles that make it (only D25 and D(n/2) can, so at most one).
_FINISHING_DOUBLES: dict[int, Dart] = {d.score: d for d in ALL_DARTS if d.is_double}


def _dart_preference_weight(d: Dart) -> int:
    """
    Lower is better.

    - Prefer not using bull unless it is the obvious route.
    - Prefer T20/T19/T18 as setup darts.
    - Prefer common finishing doubles (D20, D16, D18, D10, D8, D12, D6, D4, D2, D25).
    """
    if d.segment == BULL:
        return 60 if d.multiplier is Multiplier.SINGLE else 30

    if d.multiplier is Multiplier.DOUBLE:
        common = [20, 16, 18, 10, 8, 12, 6, 4, 2]
        if d.segment in common:
            return common.index(d.segment)
        return 15 + (20 - d.segment)

    if d.multiplier is Multiplier.TRIPLE:
        if d.segment in (20, 19, 18, 17, 16):
            return 5 + (20 - d.segment)
        return 25 + (20 - d.segment)

    return 40 + (20 - d.segment)


def _route_weight(route: tuple[Dart, ...]) -> tuple[int, int, int, str]:
    """
    Sort key for routes. Lower tuples are preferred.
    """
    # 1) fewer darts
    # 2) nicer finishing double
    # 3) nicer setup darts
    # 4) formatted route, so ties resolve the same way on every run
    finish_weight = _dart_preference_weight(route[-1])
    setup_weight = sum(_dart_preference_weight(d) for d in route[:-1])
    formatted = ",".join(dart_label(d) for d in route)
    return (len(route), finish_weight, setup_weight, formatted)


@lru_cache(maxsize=512)
def checkout_routes(remaining: int, *, max_darts: int = 3, limit: int = 6) -> tuple[tuple[Dart, ...], ...]:
    """
    Return up to `limit` double-out routes that finish `remaining` exactly,
    best first.
    """
    if max_darts not in (1, 2, 3):
        raise ValueError("max_darts must be 1, 2, or 3")
    if remaining < 2 or remaining > MAX_CHECKOUT or limit <= 0:
        return tuple()

    routes: list[tuple[Dart, ...]] = []

    finish = _FINISHING_DOUBLES.get(remaining)
    if finish is not None:
        routes.append((finish,))

    if max_darts >= 2:
        for d1 in ALL_DARTS:
            finish = _FINISHING_DOUBLES.get(remaining - d1.score)
            if finish is not None:
                routes.append((d1, finish))

    if max_darts >= 3:
        for d1 in ALL_DARTS:
            r1 = remaining - d1.score
            if r1 <= 2:
                continue
            for d2 in ALL_DARTS:
                finish = _FINISHING_DOUBLES.get(r1 - d2.score)
                if finish is not None:
                    routes.append((d1, d2, finish))

    routes.sort(key=_route_weight)

    seen: set[str] = set()
    out: list[tuple[Dart, ...]] = []
    for route in routes:
        key = ",".join(dart_label(d) for d in route)
        if key in seen:
            continue
        seen.add(key)
        out.append(route)
        if len(out) >= limit:
            break
    return tuple(out)


def table_path(remaining: int) -> tuple[str, ...] | None:
    """
    The known finish for `remaining`: curated first, then a direct double for
    even scores up to 40, then the best searched route.
    """
    curated = CURATED_CHECKOUTS.get(remaining)
    if curated is not None:
        return curated
    if 2 <= remaining <= 40 and remaining % 2 == 0:
        return (f"D{remaining // 2}",)
    routes = checkout_routes(remaining, limit=1)
    if not routes:
        return None
    return tuple(dart_label(d) for d in routes[0])


def _setup_label(setup: int) -> str | None:
    """
    The simplest single dart worth exactly `setup` points, if any.
    """
    if setup <= 20:
        return f"S{setup}"
    if setup == BULL:
        return "S25"
    if setup == 2 * BULL:
        return "D25"
    if setup % 3 == 0 and setup // 3 <= 20:
        return f"T{setup // 3}"
    if setup % 2 == 0 and setup // 2 <= 20:
        return f"D{setup // 2}"
    return None


def difficulty_for(remaining: int) -> Difficulty:
    if remaining <= 40:
        return "easy"
    if remaining <= 100:
        return "medium"
    return "hard"


def suggest_checkout(remaining: int) -> CheckoutSuggestion | None:
    """
    Suggest a finish for `remaining` in a double-out game.

    Returns None for 1 (no double leaves it) and above 170 (no three-dart finish).
    """
    if remaining == 1 or remaining > MAX_CHECKOUT or remaining < 2:
        return None

    difficulty = difficulty_for(remaining)

    path = table_path(remaining)
    if path is not None:
        return CheckoutSuggestion(score=remaining, path=path, difficulty=difficulty)

    # Bogey numbers: set up a known finish with one extra dart.
    if remaining < MAX_CHECKOUT:
        for setup in range(1, 61):
            label = _setup_label(setup)
            if label is None:
                continue
            after = table_path(remaining - setup)
            if after is not None:
                return CheckoutSuggestion(score=remaining, path=(label, *after), difficulty=difficulty)

    return None


def checkout_advice(remaining: int) -> str:
    if remaining == 1:
        return "Bust territory! You can't check out on 1. Aim for a setup score."
    if remaining > MAX_CHECKOUT:
        return f"{remaining} remaining. Focus on scoring high to get into checkout range."

    suggestion = suggest_checkout(remaining)
    if suggestion is None:
        return f"{remaining} remaining. Set up for a known checkout."
    return f"Checkout available ({suggestion.difficulty}): {suggestion.description}"
