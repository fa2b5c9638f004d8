from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    rarity: Rarity
    celebration_message: str


@dataclass(frozen=True)
class GameStats:
    """
    Cumulative per-game stats for one player.

    Every completed round (busts included) counts toward round_scores,
    highest_round and darts_thrown. checkout_score is the total of the
    winning round and is only set once the game is won.
    """

    round_scores: tuple[int, ...] = field(default_factory=tuple)
    doubles_hit: int = 0
    trebles_hit: int = 0
    bullseyes_hit: int = 0
    highest_round: int = 0
    darts_thrown: int = 0
    game_won: bool = False
    checkout_score: int | None = None


ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement(
        "first_180",
        "Maximum Score!",
        "Score 180 in a single round",
        Rarity.LEGENDARY,
        "MAXIMUM! 180! Three perfect triple twenties!",
    ),
    Achievement("ton_80", "Ton 80", "Score exactly 180", Rarity.LEGENDARY, "TON EIGHTY! Absolutely magnificent!"),
    Achievement(
        "high_ton", "High Ton", "Score 100 or more in a single round", Rarity.RARE, "High ton! Brilliant darts!"
    ),
    Achievement(
        "perfect_checkout",
        "Perfect Checkout",
        "Finish a game with a checkout of 100 or more",
        Rarity.EPIC,
        "PERFECT CHECKOUT! What a finish!",
    ),
    Achievement(
        "bullseye_finish", "Bulls Eye Finish", "Win a game with a bullseye", Rarity.RARE, "BULLSEYE FINISH! Right in the heart!"
    ),
    Achievement(
        "first_win", "First Victory", "Win your first game", Rarity.COMMON, "First win! Welcome to the winners circle!"
    ),
    Achievement(
        "comeback_king",
        "Comeback King",
        "Win after being behind by 200+ points",
        Rarity.EPIC,
        "COMEBACK KING! What a turnaround!",
    ),
    Achievement("hat_trick", "Hat Trick", "Win 3 games in a row", Rarity.RARE, "Hat trick! Three wins in a row!"),
    Achievement(
        "shanghai",
        "Shanghai",
        "Hit single, double, and triple of the same number",
        Rarity.EPIC,
        "SHANGHAI! Single, double, and triple!",
    ),
    Achievement(
        "nine_darter",
        "Nine Darter",
        "Finish a 501 game in 9 darts",
        Rarity.LEGENDARY,
        "NINE DART FINISH! LEGENDARY! ABSOLUTELY LEGENDARY!",
    ),
    Achievement(
        "double_trouble",
        "Double Trouble",
        "Hit 5 doubles in a single game",
        Rarity.RARE,
        "Double trouble! Five doubles in one game!",
    ),
    Achievement(
        "treble_master",
        "Treble Master",
        "Hit 10 trebles in a single game",
        Rarity.EPIC,
        "Treble master! Ten trebles! Incredible accuracy!",
    ),
)

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}

Predicate = Callable[[GameStats, Optional[GameStats]], bool]

# Catalog entries without a predicate need cross-game history the engine
# does not track; they are listed but never unlocked here.
_PREDICATES: dict[str, Predicate] = {
    "first_180": lambda s, p: 180 in s.round_scores,
    "high_ton": lambda s, p: s.highest_round >= 100,
    "perfect_checkout": lambda s, p: s.game_won and (s.checkout_score or 0) >= 100,
    "first_win": lambda s, p: s.game_won and (p is None or not p.game_won),
    "nine_darter": lambda s, p: s.game_won and s.darts_thrown == 9,
    "double_trouble": lambda s, p: s.doubles_hit >= 5,
    "treble_master": lambda s, p: s.trebles_hit >= 10,
}


def evaluate(stats: GameStats, prior: GameStats | None = None) -> list[Achievement]:
    """
    Return every achievement whose condition holds for `stats`, in catalog order.

    Pure: the same inputs always give the same list. Deduplicating against
    achievements already celebrated is the caller's job.
    """
    unlocked: list[Achievement] = []
    for achievement_id, predicate in _PREDICATES.items():
        achievement = ACHIEVEMENTS_BY_ID.get(achievement_id)
        if achievement is None:
            continue
        if predicate(stats, prior):
            unlocked.append(achievement)
    unlocked.sort(key=ACHIEVEMENTS.index)
    return unlocked


def get_achievement(achievement_id: str) -> Achievement | None:
    return ACHIEVEMENTS_BY_ID.get(achievement_id)
