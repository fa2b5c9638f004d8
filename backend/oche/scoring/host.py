from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Iterable, Sequence

from oche.config import Settings, get_settings
from oche.scoring.achievements import Achievement
from oche.scoring.darts import Dart
from oche.scoring.errors import NoActiveMatchError
from oche.scoring.game import (
    AchievementUnlocked,
    AnalyticsEvent,
    Effect,
    Match,
    Narration,
    Snapshot,
    TurnChanged,
)
from oche.scoring.modes import GameMode
from oche.scoring.store import ACHIEVEMENTS_KEY, MATCH_KEY, InMemoryStore, JsonFileStore, PersistencePort

logger = logging.getLogger(__name__)

NarrationSink = Callable[[str], None]
AnalyticsSink = Callable[[AnalyticsEvent], None]


def _log_narration(text: str) -> None:
    logger.info("narration: %s", text)


def _log_analytics(event: AnalyticsEvent) -> None:
    logger.debug("analytics: %s %s", event.name, event.params)


@dataclass(frozen=True)
class Toast:
    achievement: Achievement
    player_index: int
    expires_at: float


class MatchHost:
    """
    Owns the current match and performs the effects it returns.

    Collaborators (narration, analytics, persistence) are best-effort: any
    failure is logged and swallowed so the match stays playable without them.
    """

    def __init__(
        self,
        *,
        persistence: PersistencePort | None = None,
        narrate: NarrationSink | None = None,
        analytics: AnalyticsSink | None = None,
        strict_double_out: bool = False,
        turn_delay_s: float = 0.0,
        achievement_toast_s: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = RLock()
        self._persistence: PersistencePort = persistence if persistence is not None else InMemoryStore()
        self._narrate = narrate or _log_narration
        self._analytics = analytics or _log_analytics
        self._strict_double_out = strict_double_out
        self._turn_delay_s = turn_delay_s
        self._achievement_toast_s = achievement_toast_s
        self._clock = clock

        self._match: Match | None = None
        self._unlocked: set[str] = set(self._load_unlocked())
        self._toast: Toast | None = None
        self._notice: str | None = None
        self._turn_ready_at: float = 0.0
        self.narrations: deque[str] = deque(maxlen=50)

    # --- match lifecycle ---

    def start_match(
        self,
        mode: GameMode | str,
        players: Sequence[str],
        *,
        aliases: Sequence[str] | None = None,
        strict_double_out: bool | None = None,
        resume: bool = False,
    ) -> Match:
        """
        Start a new match, or resume the persisted one.

        With resume=True a stored snapshot is restored verbatim; a snapshot for
        another mode or player count raises SnapshotMismatchError. With no
        stored snapshot a fresh match starts.
        """
        with self._lock:
            match: Match | None = None
            if resume:
                loaded, snapshot = self._best_effort("load match", lambda: self._persistence.load(MATCH_KEY))
                if loaded and snapshot is not None:
                    match = Match.restore(
                        snapshot,
                        mode,
                        len(players),
                        unlocked=self._unlocked,
                        turn_delay_s=self._turn_delay_s,
                    )
                    logger.info("resumed %s match with %d players", GameMode(mode).value, len(players))

            if match is None:
                strict = self._strict_double_out if strict_double_out is None else strict_double_out
                match = Match(
                    mode,
                    players,
                    aliases=aliases,
                    strict_double_out=strict,
                    unlocked=self._unlocked,
                    turn_delay_s=self._turn_delay_s,
                )
                logger.info("started %s match with %d players", match.state().mode.value, len(players))

            self._match = match
            self._toast = None
            self._notice = None
            self._turn_ready_at = 0.0
            self._perform(match.opening_effects())
            return match

    def exit_match(self) -> None:
        with self._lock:
            self._match = None
            self._toast = None
            self._best_effort("clear match", lambda: self._persistence.clear(MATCH_KEY))

    def reset(self) -> None:
        """Forget the current match and any transient UI state (persisted achievements stay)."""
        with self._lock:
            self.exit_match()
            self._notice = None
            self._turn_ready_at = 0.0
            self.narrations.clear()

    def match(self) -> Match:
        with self._lock:
            if self._match is None:
                raise NoActiveMatchError("no match in progress")
            return self._match

    @property
    def has_match(self) -> bool:
        return self._match is not None

    # --- gameplay, delegated to the engine ---

    def add_dart(self, dart: Dart) -> list[Effect]:
        with self._lock:
            return self._perform(self.match().add_dart(dart))

    def undo_last_dart(self) -> list[Effect]:
        with self._lock:
            return self._perform(self.match().undo_last_dart())

    def complete_round_early(self) -> list[Effect]:
        with self._lock:
            return self._perform(self.match().complete_round_early())

    def submit_visit(self, darts: Iterable[Dart]) -> list[Effect]:
        with self._lock:
            return self._perform(self.match().submit_visit(darts))

    def declare_winner(self, player_index: int) -> list[Effect]:
        with self._lock:
            return self._perform(self.match().declare_winner(player_index))

    # --- read side ---

    @property
    def unlocked(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._unlocked)

    def toast(self) -> Toast | None:
        """The latest unlocked achievement, while it is still visible."""
        with self._lock:
            if self._toast is not None and self._clock() >= self._toast.expires_at:
                self._toast = None
            return self._toast

    def notice(self) -> str | None:
        """A transient message about a failed collaborator, cleared once read."""
        with self._lock:
            notice, self._notice = self._notice, None
            return notice

    def turn_ready_in(self) -> float:
        """Seconds left of the pause before the next player is shown as active."""
        with self._lock:
            return max(0.0, self._turn_ready_at - self._clock())

    # --- effects ---

    def _perform(self, effects: list[Effect]) -> list[Effect]:
        # One toast per batch, for the first achievement unlocked.
        toasted = False
        for effect in effects:
            if isinstance(effect, Narration):
                self.narrations.append(effect.text)
                self._best_effort("narration", lambda: self._narrate(effect.text))
            elif isinstance(effect, AnalyticsEvent):
                self._best_effort("analytics", lambda: self._analytics(effect))
            elif isinstance(effect, AchievementUnlocked):
                self._unlocked.add(effect.achievement.id)
                if not toasted:
                    toasted = True
                    self._toast = Toast(
                        achievement=effect.achievement,
                        player_index=effect.player_index,
                        expires_at=self._clock() + self._achievement_toast_s,
                    )
                saved, _ = self._best_effort("save achievements", self._save_unlocked)
                if not saved:
                    self._notice = "Could not save achievements."
            elif isinstance(effect, TurnChanged):
                self._turn_ready_at = self._clock() + effect.delay_s
            elif isinstance(effect, Snapshot):
                saved, _ = self._best_effort("save match", lambda: self._persistence.save(MATCH_KEY, effect.data))
                if not saved:
                    self._notice = "Could not save the match. Play continues."
        return effects

    def _save_unlocked(self) -> None:
        self._persistence.save(ACHIEVEMENTS_KEY, sorted(self._unlocked))

    def _load_unlocked(self) -> list[str]:
        _, stored = self._best_effort("load achievements", lambda: self._persistence.load(ACHIEVEMENTS_KEY))
        if not isinstance(stored, list):
            return []
        return [str(x) for x in stored]

    def _best_effort(self, what: str, fn: Callable[[], Any]) -> tuple[bool, Any]:
        """
        Run a collaborator call. Returns (succeeded, result); failures are logged.
        """
        try:
            result = fn()
        except Exception:
            logger.exception("%s failed", what)
            return False, None
        return True, result


def build_host(settings: Settings | None = None) -> MatchHost:
    settings = settings or get_settings()
    persistence: PersistencePort
    if settings.data_dir is not None:
        persistence = JsonFileStore(settings.data_dir)
    else:
        persistence = InMemoryStore()
    return MatchHost(
        persistence=persistence,
        strict_double_out=settings.strict_double_out,
        turn_delay_s=settings.turn_delay_s,
        achievement_toast_s=settings.achievement_toast_s,
    )


_HOST: MatchHost | None = None


def get_host() -> MatchHost:
    global _HOST
    if _HOST is None:
        _HOST = build_host()
    return _HOST
