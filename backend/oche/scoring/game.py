from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from threading import RLock
from typing import Any, Iterable, Sequence, Union

from oche.scoring.achievements import Achievement, GameStats, evaluate
from oche.scoring.darts import MAX_DARTS_PER_ROUND, Dart, Multiplier, Round, make_round
from oche.scoring.errors import (
    InvalidDartError,
    MatchOverError,
    RoundInProgressError,
    SnapshotMismatchError,
)
from oche.scoring.modes import GameMode, Outcome, RoundResult, RuleSet, rule_set_for

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class PlayerState:
    name: str
    alias: str = ""
    score: int = 0  # points, or the target index for Around the Clock
    rounds: tuple[Round, ...] = field(default_factory=tuple)
    stats: GameStats = field(default_factory=GameStats)

    @property
    def display_name(self) -> str:
        return self.alias or self.name


@dataclass(frozen=True)
class VisitResult:
    """
    A completed round as scored by the rule set.
    """

    player_index: int
    round: Round
    outcome: Outcome
    score_before: int
    score_after: int

    @property
    def total(self) -> int:
        return self.round.total

    @property
    def bust(self) -> bool:
        return self.outcome is Outcome.BUST

    @property
    def won(self) -> bool:
        return self.outcome is Outcome.WIN


@dataclass(frozen=True)
class MatchState:
    mode: GameMode
    players: tuple[PlayerState, ...]
    current_player_index: int = 0
    current_darts: tuple[Dart, ...] = field(default_factory=tuple)  # round in progress
    winner: int | None = None
    last_result: RoundResult | None = None
    strict_double_out: bool = False
    history: tuple[VisitResult, ...] = field(default_factory=tuple)

    @property
    def is_over(self) -> bool:
        return self.winner is not None

    @property
    def current_player(self) -> PlayerState:
        return self.players[self.current_player_index]

    @property
    def current_round_total(self) -> int:
        return sum(d.score for d in self.current_darts)


# --- Effects: side effects the host performs after a transition commits ---


@dataclass(frozen=True)
class Narration:
    text: str


@dataclass(frozen=True)
class AnalyticsEvent:
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AchievementUnlocked:
    player_index: int
    achievement: Achievement


@dataclass(frozen=True)
class TurnChanged:
    player_index: int
    delay_s: float = 0.0


@dataclass(frozen=True)
class Snapshot:
    data: dict[str, Any]


Effect = Union[Narration, AnalyticsEvent, AchievementUnlocked, TurnChanged, Snapshot]


def _next_stats(prev: GameStats, rnd: Round, result: RoundResult) -> GameStats:
    return GameStats(
        round_scores=(*prev.round_scores, rnd.total),
        doubles_hit=prev.doubles_hit + sum(1 for d in rnd.darts if d.is_double),
        trebles_hit=prev.trebles_hit + sum(1 for d in rnd.darts if d.is_triple),
        bullseyes_hit=prev.bullseyes_hit + sum(1 for d in rnd.darts if d.is_bull),
        highest_round=max(prev.highest_round, rnd.total),
        darts_thrown=prev.darts_thrown + len(rnd.darts),
        game_won=result.won,
        checkout_score=rnd.total if result.won else None,
    )


def _replace_player(
    players: tuple[PlayerState, ...], index: int, updated: PlayerState
) -> tuple[PlayerState, ...]:
    return (*players[:index], updated, *players[index + 1 :])


def _validated(dart: Dart) -> Dart:
    if not isinstance(dart, Dart):
        raise InvalidDartError(f"not a dart: {dart!r}")
    # Re-run validation in case the instance was built around __post_init__.
    return Dart(dart.multiplier, dart.segment)


class Match:
    """
    A multi-player darts match in a single game mode.

    Pure engine: nothing here imports web or storage code.

    - Darts are added one at a time to the current player's round. The round
      completes automatically at three darts, or early via complete_round_early().
    - A completed round is scored by the mode's rule set. Unless it wins the
      match, the turn passes round-robin (busts included).
    - Every mutating call returns a list of effects (narration, analytics,
      achievement unlocks, turn changes, a snapshot) for the host to perform.
      The state transition is committed before the effects are returned.
    - Achievements are deduplicated against the `unlocked` ids passed in; newly
      unlocked ids are added to that set.
    """

    def __init__(
        self,
        mode: GameMode | str,
        players: Sequence[str],
        *,
        aliases: Sequence[str] | None = None,
        strict_double_out: bool = False,
        unlocked: Iterable[str] = (),
        turn_delay_s: float = 0.0,
    ) -> None:
        if not players:
            raise ValueError("a match needs at least one player")
        if aliases is not None and len(aliases) != len(players):
            raise ValueError("aliases must match players one to one")

        self._lock = RLock()
        self._rules: RuleSet = rule_set_for(mode, strict_double_out=strict_double_out)
        self._unlocked: set[str] = set(unlocked)
        self._turn_delay_s = turn_delay_s

        start = self._rules.initial_score()
        self._state = MatchState(
            mode=self._rules.mode,
            players=tuple(
                PlayerState(name=name, alias=(aliases[i] if aliases else ""), score=start)
                for i, name in enumerate(players)
            ),
            strict_double_out=strict_double_out,
        )

    def state(self) -> MatchState:
        with self._lock:
            return self._state

    @property
    def rules(self) -> RuleSet:
        return self._rules

    @property
    def unlocked(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._unlocked)

    def opening_effects(self) -> list[Effect]:
        """
        Effects announcing a freshly started (or resumed) match.
        """
        with self._lock:
            state = self._state
            return [
                Narration(
                    f"Welcome to {state.mode.label}. {state.current_player.display_name}, step up to the oche!"
                ),
                AnalyticsEvent(
                    "game_start", {"game_mode": state.mode.value, "player_count": len(state.players)}
                ),
                Snapshot(self._snapshot_locked()),
            ]

    def add_dart(self, dart: Dart) -> list[Effect]:
        """
        Add a dart to the current round. The third dart completes the round.
        """
        with self._lock:
            if self._state.is_over:
                raise MatchOverError("match is already over")
            dart = _validated(dart)
            effects = self._append_dart(dart)
            if len(self._state.current_darts) >= MAX_DARTS_PER_ROUND:
                effects.extend(self._complete_round())
            else:
                effects.append(Snapshot(self._snapshot_locked()))
            return effects

    def undo_last_dart(self) -> list[Effect]:
        """
        Remove the most recent dart of the round in progress. Committed rounds are never rewound.
        """
        with self._lock:
            if not self._state.current_darts:
                return []
            self._state = replace(self._state, current_darts=self._state.current_darts[:-1])
            return [Snapshot(self._snapshot_locked())]

    def complete_round_early(self) -> list[Effect]:
        """
        Complete the round in progress with fewer than three darts. No-op if it is empty.
        """
        with self._lock:
            if not self._state.current_darts:
                return []
            return self._complete_round()

    def submit_visit(self, darts: Iterable[Dart]) -> list[Effect]:
        """
        Submit a whole visit (up to 3 darts) for the current player.
        """
        with self._lock:
            if self._state.is_over:
                raise MatchOverError("match is already over")
            if self._state.current_darts:
                raise RoundInProgressError("a round is already in progress; complete or undo it first")

            dart_list = tuple(_validated(d) for d in darts)
            if len(dart_list) > MAX_DARTS_PER_ROUND:
                raise InvalidDartError("a visit may include at most 3 darts")
            if not dart_list:
                # A "no score" visit counts as a single missed dart.
                dart_list = (Dart(Multiplier.SINGLE, 0),)

            effects: list[Effect] = []
            for d in dart_list:
                effects.extend(self._append_dart(d))
            effects.extend(self._complete_round())
            return effects

    def declare_winner(self, player_index: int) -> list[Effect]:
        """
        End the match with an externally detected winner.

        Modes without a native win condition (Cricket, Killer, Shanghai) rely on this.
        Pending darts of the round in progress are discarded.
        """
        with self._lock:
            state = self._state
            if state.is_over:
                raise MatchOverError("match is already over")
            if not 0 <= player_index < len(state.players):
                raise IndexError("player_index out of range")

            player = state.players[player_index]
            prior = player.stats
            stats = replace(prior, game_won=True)
            message = f"{player.display_name} wins the game!"
            self._state = replace(
                state,
                players=_replace_player(state.players, player_index, replace(player, stats=stats)),
                current_darts=(),
                winner=player_index,
            )

            effects: list[Effect] = [Narration(message)]
            effects.extend(self._achievement_effects(player_index, stats, prior))
            effects.append(self._game_end_event(player_index))
            effects.append(Snapshot(self._snapshot_locked()))
            return effects

    # --- internals (call with the lock held) ---

    def _append_dart(self, dart: Dart) -> list[Effect]:
        self._state = replace(self._state, current_darts=(*self._state.current_darts, dart))
        return [
            AnalyticsEvent(
                "dart_throw",
                {
                    "score": dart.score,
                    "multiplier": dart.multiplier.factor,
                    "is_double": dart.is_double,
                    "is_triple": dart.is_triple,
                },
            )
        ]

    def _complete_round(self) -> list[Effect]:
        state = self._state
        index = state.current_player_index
        player = state.players[index]

        rnd = make_round(state.current_darts)
        result = self._rules.score_round(player, rnd)
        stats = _next_stats(player.stats, rnd, result)
        updated = replace(player, score=result.score, rounds=(*player.rounds, rnd), stats=stats)

        visit = VisitResult(
            player_index=index,
            round=rnd,
            outcome=result.outcome,
            score_before=player.score,
            score_after=result.score,
        )

        next_index = index if result.won else (index + 1) % len(state.players)
        self._state = replace(
            state,
            players=_replace_player(state.players, index, updated),
            current_player_index=next_index,
            current_darts=(),
            winner=index if result.won else None,
            last_result=result,
            history=(*state.history, visit),
        )
        logger.debug(
            "round complete: player=%d total=%d outcome=%s score=%d",
            index,
            rnd.total,
            result.outcome.value,
            result.score,
        )

        effects: list[Effect] = [Narration(result.message)]
        effects.extend(self._achievement_effects(index, stats, player.stats))
        effects.append(
            AnalyticsEvent(
                "round_complete",
                {
                    "player_index": index,
                    "total": rnd.total,
                    "darts": len(rnd.darts),
                    "outcome": result.outcome.value,
                    "score": result.score,
                },
            )
        )
        if result.won:
            effects.append(self._game_end_event(index))
        else:
            effects.append(TurnChanged(next_index, self._turn_delay_s))
        effects.append(Snapshot(self._snapshot_locked()))
        return effects

    def _achievement_effects(self, index: int, stats: GameStats, prior: GameStats) -> list[Effect]:
        effects: list[Effect] = []
        for achievement in evaluate(stats, prior):
            if achievement.id in self._unlocked:
                continue
            self._unlocked.add(achievement.id)
            effects.append(AchievementUnlocked(index, achievement))
            effects.append(Narration(achievement.celebration_message))
            effects.append(
                AnalyticsEvent(
                    "achievement_unlocked",
                    {"achievement_id": achievement.id, "achievement_name": achievement.name},
                )
            )
        return effects

    def _game_end_event(self, winner: int) -> AnalyticsEvent:
        player = self._state.players[winner]
        return AnalyticsEvent(
            "game_end",
            {
                "game_mode": self._state.mode.value,
                "winner": player.name,
                "final_score": player.score,
                "rounds": len(player.rounds),
            },
        )

    # --- snapshots ---

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> dict[str, Any]:
        s = self._state
        return {
            "version": SNAPSHOT_VERSION,
            "mode": s.mode.value,
            "strict_double_out": s.strict_double_out,
            "current_player_index": s.current_player_index,
            "winner": s.winner,
            "last_result": _result_to_dict(s.last_result),
            "current_darts": [_dart_to_dict(d) for d in s.current_darts],
            "players": [
                {"name": p.name, "alias": p.alias, "score": p.score, "stats": _stats_to_dict(p.stats)}
                for p in s.players
            ],
            "history": [
                {
                    "player_index": v.player_index,
                    "darts": [_dart_to_dict(d) for d in v.round.darts],
                    "timestamp": v.round.timestamp,
                    "outcome": v.outcome.value,
                    "score_before": v.score_before,
                    "score_after": v.score_after,
                }
                for v in s.history
            ],
        }

    @classmethod
    def restore(
        cls,
        snapshot: dict[str, Any],
        mode: GameMode | str,
        player_count: int,
        *,
        unlocked: Iterable[str] = (),
        turn_delay_s: float = 0.0,
    ) -> Match:
        """
        Rebuild a match from a snapshot, verbatim.

        Raises SnapshotMismatchError if the snapshot is for another mode or
        another number of players, or cannot be read.
        """
        mode = GameMode(mode)
        try:
            snap_mode = GameMode(snapshot["mode"])
            raw_players = list(snapshot["players"])
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotMismatchError(f"unreadable snapshot: {e}") from e

        if snap_mode is not mode:
            raise SnapshotMismatchError(f"snapshot is for {snap_mode.value}, not {mode.value}")
        if len(raw_players) != player_count:
            raise SnapshotMismatchError(
                f"snapshot has {len(raw_players)} players, expected {player_count}"
            )

        try:
            match = cls(
                mode,
                [str(p["name"]) for p in raw_players],
                aliases=[str(p.get("alias", "")) for p in raw_players],
                strict_double_out=bool(snapshot.get("strict_double_out", False)),
                unlocked=unlocked,
                turn_delay_s=turn_delay_s,
            )
            history = tuple(
                VisitResult(
                    player_index=int(v["player_index"]),
                    round=make_round(
                        (_dart_from_dict(d) for d in v["darts"]), timestamp=float(v["timestamp"])
                    ),
                    outcome=Outcome(v["outcome"]),
                    score_before=int(v["score_before"]),
                    score_after=int(v["score_after"]),
                )
                for v in snapshot.get("history", [])
            )
            players = tuple(
                PlayerState(
                    name=str(p["name"]),
                    alias=str(p.get("alias", "")),
                    score=int(p["score"]),
                    rounds=tuple(v.round for v in history if v.player_index == i),
                    stats=_stats_from_dict(p.get("stats", {})),
                )
                for i, p in enumerate(raw_players)
            )
            current_index = int(snapshot.get("current_player_index", 0))
            winner = snapshot.get("winner")
            winner = int(winner) if winner is not None else None
            current_darts = tuple(_dart_from_dict(d) for d in snapshot.get("current_darts", []))
            last_result = _result_from_dict(snapshot.get("last_result"))
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotMismatchError(f"unreadable snapshot: {e}") from e

        if not 0 <= current_index < player_count:
            raise SnapshotMismatchError("current_player_index out of range")
        if winner is not None and not 0 <= winner < player_count:
            raise SnapshotMismatchError("winner out of range")
        if any(not 0 <= v.player_index < player_count for v in history):
            raise SnapshotMismatchError("history refers to an unknown player")
        if len(current_darts) >= MAX_DARTS_PER_ROUND:
            raise SnapshotMismatchError("snapshot holds a full round that was never completed")

        match._state = replace(
            match._state,
            players=players,
            current_player_index=current_index,
            current_darts=current_darts,
            winner=winner,
            last_result=last_result,
            history=history,
        )
        return match


def _result_to_dict(r: RoundResult | None) -> dict[str, Any] | None:
    if r is None:
        return None
    return {"score": r.score, "outcome": r.outcome.value, "message": r.message}


def _result_from_dict(raw: dict[str, Any] | None) -> RoundResult | None:
    if raw is None:
        return None
    return RoundResult(score=int(raw["score"]), outcome=Outcome(raw["outcome"]), message=str(raw["message"]))


def _dart_to_dict(d: Dart) -> dict[str, Any]:
    return {"multiplier": d.multiplier.value, "segment": d.segment}


def _dart_from_dict(raw: dict[str, Any]) -> Dart:
    return Dart(Multiplier.parse(raw["multiplier"]), int(raw["segment"]))


def _stats_to_dict(s: GameStats) -> dict[str, Any]:
    return {
        "round_scores": list(s.round_scores),
        "doubles_hit": s.doubles_hit,
        "trebles_hit": s.trebles_hit,
        "bullseyes_hit": s.bullseyes_hit,
        "highest_round": s.highest_round,
        "darts_thrown": s.darts_thrown,
        "game_won": s.game_won,
        "checkout_score": s.checkout_score,
    }


def _stats_from_dict(raw: dict[str, Any]) -> GameStats:
    checkout = raw.get("checkout_score")
    return GameStats(
        round_scores=tuple(int(x) for x in raw.get("round_scores", [])),
        doubles_hit=int(raw.get("doubles_hit", 0)),
        trebles_hit=int(raw.get("trebles_hit", 0)),
        bullseyes_hit=int(raw.get("bullseyes_hit", 0)),
        highest_round=int(raw.get("highest_round", 0)),
        darts_thrown=int(raw.get("darts_thrown", 0)),
        game_won=bool(raw.get("game_won", False)),
        checkout_score=int(checkout) if checkout is not None else None,
    )
