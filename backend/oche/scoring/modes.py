from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from oche.scoring.darts import BULL, Round

if TYPE_CHECKING:
    from oche.scoring.game import PlayerState


class GameMode(str, Enum):
    X01_501 = "501"
    X01_301 = "301"
    CRICKET = "cricket"
    CLOCK = "clock"
    KILLER = "killer"
    SHANGHAI = "shanghai"

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]


_MODE_LABELS: dict[GameMode, str] = {
    GameMode.X01_501: "501 Double Out",
    GameMode.X01_301: "301 Double Out",
    GameMode.CRICKET: "Cricket",
    GameMode.CLOCK: "Around the Clock",
    GameMode.KILLER: "Killer",
    GameMode.SHANGHAI: "Shanghai",
}


class Outcome(str, Enum):
    NORMAL = "normal"
    BUST = "bust"
    WIN = "win"


@dataclass(frozen=True)
class RoundResult:
    score: int
    outcome: Outcome
    message: str

    @property
    def bust(self) -> bool:
        return self.outcome is Outcome.BUST

    @property
    def won(self) -> bool:
        return self.outcome is Outcome.WIN


CLOCK_SEQUENCE: tuple[int, ...] = (*range(1, 21), BULL)


class RuleSet:
    """
    Scoring rules for one game mode.

    `score` means points for most modes and the target index for Around the Clock.
    """

    mode: GameMode
    is_double_out = False

    def initial_score(self) -> int:
        raise NotImplementedError

    def score_round(self, player: PlayerState, rnd: Round) -> RoundResult:
        raise NotImplementedError

    def target_label(self, score: int) -> str:
        return str(score)


class X01RuleSet(RuleSet):
    """
    Count down from the starting score (501 or 301), finishing on exactly 0.

    - Bust: the round would take the score below 0 or leave exactly 1.
      The score reverts to the start of the round and the turn passes.
    - By default any round reaching exactly 0 wins. With strict_double_out,
      the last dart must be a double (double bull included) or it is a bust.
    """

    is_double_out = True

    def __init__(self, mode: GameMode, *, strict_double_out: bool = False) -> None:
        if mode not in (GameMode.X01_501, GameMode.X01_301):
            raise ValueError(f"{mode.value} is not an X01 mode")
        self.mode = mode
        self.starting_score = 501 if mode is GameMode.X01_501 else 301
        self.strict_double_out = strict_double_out

    def initial_score(self) -> int:
        return self.starting_score

    def score_round(self, player: PlayerState, rnd: Round) -> RoundResult:
        current = player.score
        total = rnd.total
        remaining = current - total

        if remaining < 0 or remaining == 1:
            return RoundResult(current, Outcome.BUST, f"Bust! You scored {total} but needed {current}.")

        if remaining == 0:
            last = rnd.last_dart
            if self.strict_double_out and (last is None or not last.is_double):
                return RoundResult(current, Outcome.BUST, f"Bust! {current} must be finished on a double.")
            return RoundResult(0, Outcome.WIN, f"Game Shot! {player.display_name} wins the leg!")

        if total > 100:
            return RoundResult(remaining, Outcome.NORMAL, f"Wow! A massive {total}! {remaining} left.")
        return RoundResult(remaining, Outcome.NORMAL, f"{total} scored! {remaining} remaining.")


class ClockRuleSet(RuleSet):
    """
    Hit 1 through 20 in order, then the bull. Each dart is judged on its own,
    so one round can advance the target several times.
    """

    mode = GameMode.CLOCK

    def initial_score(self) -> int:
        return 0

    def score_round(self, player: PlayerState, rnd: Round) -> RoundResult:
        index = player.score
        hits = 0
        for dart in rnd.darts:
            if index >= len(CLOCK_SEQUENCE):
                break
            if dart.segment != CLOCK_SEQUENCE[index]:
                continue
            hits += 1
            index += 1
            if index == len(CLOCK_SEQUENCE):
                return RoundResult(index, Outcome.WIN, "BULLSEYE! GAME WON!")

        noun = "hit" if hits == 1 else "hits"
        if hits == 0:
            message = f"Miss! Still on {self.target_label(index)}."
        else:
            message = f"{hits} {noun}! Next target: {self.target_label(index)}."
        return RoundResult(index, Outcome.NORMAL, message)

    def target_label(self, score: int) -> str:
        if score >= len(CLOCK_SEQUENCE):
            return "DONE"
        target = CLOCK_SEQUENCE[score]
        return "BULL" if target == BULL else str(target)


class AccumulateRuleSet(RuleSet):
    """
    Points simply add up. Used for Cricket, Killer and Shanghai, whose closing
    and elimination rules are not modelled; a winner is declared from outside.
    """

    def __init__(self, mode: GameMode) -> None:
        self.mode = mode

    def initial_score(self) -> int:
        return 0

    def score_round(self, player: PlayerState, rnd: Round) -> RoundResult:
        new_score = player.score + rnd.total
        return RoundResult(new_score, Outcome.NORMAL, f"{rnd.total} points. Total is {new_score}.")


def rule_set_for(mode: GameMode | str, *, strict_double_out: bool = False) -> RuleSet:
    mode = GameMode(mode)
    if mode in (GameMode.X01_501, GameMode.X01_301):
        return X01RuleSet(mode, strict_double_out=strict_double_out)
    if mode is GameMode.CLOCK:
        return ClockRuleSet()
    return AccumulateRuleSet(mode)
