from __future__ import annotations

from dataclasses import dataclass, field

from oche.scoring.checkout import MAX_CHECKOUT
from oche.scoring.game import MatchState, VisitResult
from oche.scoring.modes import GameMode

_X01_MODES = (GameMode.X01_501, GameMode.X01_301)

# Visits counted towards the first-nine average.
_OPENING_VISITS = 3


@dataclass(frozen=True)
class PlayerStats:
    player_index: int
    name: str
    visits: int
    darts_thrown: int
    scored_points: int
    busts: int
    checkouts: int
    checkout_attempts: int
    best_checkout: int
    highest_visit: int
    count_180: int
    count_140_plus: int
    count_100_plus: int
    first_nine_points: int = 0
    first_nine_darts: int = 0

    @property
    def three_dart_average(self) -> float:
        if self.darts_thrown == 0:
            return 0.0
        return (self.scored_points / self.darts_thrown) * 3.0

    @property
    def first_nine_average(self) -> float:
        if self.first_nine_darts == 0:
            return 0.0
        return (self.first_nine_points / self.first_nine_darts) * 3.0

    @property
    def checkout_percentage(self) -> float:
        if self.checkout_attempts == 0:
            return 0.0
        return (self.checkouts / self.checkout_attempts) * 100.0


@dataclass(frozen=True)
class MatchStats:
    players: tuple[PlayerStats, ...]

    def leader(self) -> PlayerStats | None:
        """Best three-dart average; ties go to the earlier player."""
        played = [p for p in self.players if p.visits]
        if not played:
            return None
        return max(played, key=lambda p: (p.three_dart_average, -p.player_index))


@dataclass
class _Tally:
    visits: int = 0
    darts: int = 0
    points: int = 0
    busts: int = 0
    checkouts: int = 0
    attempts: int = 0
    best_checkout: int = 0
    totals: list[int] = field(default_factory=list)
    opening_points: int = 0
    opening_darts: int = 0

    def add(self, v: VisitResult, *, x01: bool) -> None:
        darts = len(v.round.darts)
        if self.visits < _OPENING_VISITS:
            self.opening_darts += darts
            if not v.bust:
                self.opening_points += v.total
        self.visits += 1
        self.darts += darts

        # Busted points revert, so they never count as scored.
        if v.bust:
            self.busts += 1
        else:
            self.points += v.total
            self.totals.append(v.total)

        if x01 and 1 < v.score_before <= MAX_CHECKOUT:
            self.attempts += 1
        if x01 and v.won:
            self.checkouts += 1
            self.best_checkout = max(self.best_checkout, v.total)


def compute_match_stats(state: MatchState) -> MatchStats:
    """
    Per-player statistics derived from the match's visit history.

    Checkout attempts only exist in X01 modes: any visit that starts on a
    finishable score counts, whether or not it ends in a double.
    """
    x01 = state.mode in _X01_MODES
    tallies = [_Tally() for _ in state.players]
    for v in state.history:
        tallies[v.player_index].add(v, x01=x01)

    return MatchStats(
        players=tuple(
            PlayerStats(
                player_index=i,
                name=p.name,
                visits=t.visits,
                darts_thrown=t.darts,
                scored_points=t.points,
                busts=t.busts,
                checkouts=t.checkouts,
                checkout_attempts=t.attempts,
                best_checkout=t.best_checkout,
                highest_visit=max(t.totals, default=0),
                count_180=t.totals.count(180),
                count_140_plus=sum(1 for x in t.totals if x >= 140),
                count_100_plus=sum(1 for x in t.totals if x >= 100),
                first_nine_points=t.opening_points,
                first_nine_darts=t.opening_darts,
            )
            for i, (p, t) in enumerate(zip(state.players, tallies))
        )
    )
