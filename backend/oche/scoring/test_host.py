from typing import Any

import pytest

from oche.scoring.darts import make_dart
from oche.scoring.errors import NoActiveMatchError, SnapshotMismatchError
from oche.scoring.game import AchievementUnlocked
from oche.scoring.host import MatchHost
from oche.scoring.modes import GameMode
from oche.scoring.store import ACHIEVEMENTS_KEY, MATCH_KEY, InMemoryStore

T20 = make_dart("T", 20)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class BrokenStore:
    def load(self, key: str) -> Any | None:
        raise OSError("disk gone")

    def save(self, key: str, value: Any) -> None:
        raise OSError("disk gone")

    def clear(self, key: str) -> None:
        raise OSError("disk gone")


def _boom(*_: Any) -> None:
    raise RuntimeError("speaker unplugged")


def test_no_match_raises() -> None:
    host = MatchHost()
    assert not host.has_match
    with pytest.raises(NoActiveMatchError):
        host.match()
    with pytest.raises(NoActiveMatchError):
        host.add_dart(T20)


def test_narration_reaches_sink_and_buffer() -> None:
    spoken: list[str] = []
    host = MatchHost(narrate=spoken.append)
    host.start_match(GameMode.X01_501, ["Ann", "Bob"])
    host.submit_visit([T20, T20, T20])
    assert spoken[0].startswith("Welcome")
    assert "MAXIMUM! 180! Three perfect triple twenties!" in spoken
    assert list(host.narrations) == spoken


def test_failing_collaborators_do_not_stop_play() -> None:
    host = MatchHost(persistence=BrokenStore(), narrate=_boom, analytics=_boom)
    host.start_match(GameMode.X01_501, ["Ann", "Bob"])
    assert host.notice() == "Could not save the match. Play continues."
    assert host.notice() is None

    host.submit_visit([T20, T20, T20])
    state = host.match().state()
    assert state.players[0].score == 321
    assert state.current_player_index == 1
    assert "first_180" in host.unlocked
    assert host.notice() is not None


def test_exit_clears_persisted_match() -> None:
    store = InMemoryStore()
    host = MatchHost(persistence=store)
    host.start_match(GameMode.X01_501, ["Ann"])
    assert store.load(MATCH_KEY) is not None
    host.exit_match()
    assert not host.has_match
    assert store.load(MATCH_KEY) is None


def test_achievements_persist_across_hosts() -> None:
    store = InMemoryStore()
    host = MatchHost(persistence=store)
    host.start_match(GameMode.X01_501, ["Ann", "Bob"])
    host.submit_visit([T20, T20, T20])
    assert store.load(ACHIEVEMENTS_KEY) == ["first_180", "high_ton"]

    again = MatchHost(persistence=store)
    assert {"first_180", "high_ton"} <= again.unlocked
    again.start_match(GameMode.X01_301, ["Cat"])
    effects = again.submit_visit([T20, T20, T20])
    assert not any(isinstance(e, AchievementUnlocked) for e in effects)


def test_toast_expires() -> None:
    clock = FakeClock()
    host = MatchHost(achievement_toast_s=5.0, clock=clock)
    host.start_match(GameMode.X01_501, ["Ann"])
    assert host.toast() is None

    host.submit_visit([T20, T20, T20])
    toast = host.toast()
    assert toast is not None
    assert toast.achievement.id == "first_180"
    assert toast.player_index == 0

    clock.now += 4.9
    assert host.toast() is not None
    clock.now += 0.2
    assert host.toast() is None


def test_turn_delay_counts_down() -> None:
    clock = FakeClock()
    host = MatchHost(turn_delay_s=1.5, clock=clock)
    host.start_match(GameMode.X01_501, ["Ann", "Bob"])
    assert host.turn_ready_in() == 0.0
    host.submit_visit([T20])
    assert host.turn_ready_in() == pytest.approx(1.5)
    clock.now += 1.0
    assert host.turn_ready_in() == pytest.approx(0.5)
    clock.now += 1.0
    assert host.turn_ready_in() == 0.0


def test_resume_restores_stored_match() -> None:
    store = InMemoryStore()
    host = MatchHost(persistence=store)
    host.start_match(GameMode.X01_501, ["Ann", "Bob"])
    host.submit_visit([T20, T20, T20])
    host.add_dart(T20)

    restarted = MatchHost(persistence=store)
    state = restarted.start_match(GameMode.X01_501, ["Ann", "Bob"], resume=True).state()
    assert state.players[0].score == 321
    assert state.current_player_index == 1
    assert state.current_darts == (T20,)


def test_resume_without_snapshot_starts_fresh() -> None:
    host = MatchHost()
    state = host.start_match(GameMode.X01_301, ["Ann"], resume=True).state()
    assert state.players[0].score == 301
    assert state.history == ()


def test_resume_with_mismatched_snapshot() -> None:
    store = InMemoryStore()
    MatchHost(persistence=store).start_match(GameMode.X01_501, ["Ann", "Bob"])
    host = MatchHost(persistence=store)
    with pytest.raises(SnapshotMismatchError):
        host.start_match(GameMode.X01_501, ["Ann"], resume=True)
    assert not host.has_match


def test_strict_double_out_default_comes_from_host() -> None:
    host = MatchHost(strict_double_out=True)
    assert host.start_match(GameMode.X01_501, ["Ann"]).state().strict_double_out
    assert not host.start_match(GameMode.X01_501, ["Ann"], strict_double_out=False).state().strict_double_out


def test_toast_shows_first_unlock_of_a_round_but_all_are_saved() -> None:
    store = InMemoryStore()
    host = MatchHost(persistence=store)
    host.start_match(GameMode.X01_501, ["Ann"])
    host.submit_visit([T20, T20, T20])

    toast = host.toast()
    assert toast is not None
    assert toast.achievement.id == "first_180"
    assert toast.achievement.name.startswith("Maximum Score")
    assert store.load(ACHIEVEMENTS_KEY) == ["first_180", "high_ton"]
