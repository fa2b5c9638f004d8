import pytest

from oche.scoring.darts import make_dart, make_round
from oche.scoring.game import PlayerState
from oche.scoring.modes import (
    CLOCK_SEQUENCE,
    AccumulateRuleSet,
    ClockRuleSet,
    GameMode,
    Outcome,
    X01RuleSet,
    rule_set_for,
)


def _round(*labels: str):
    return make_round(make_dart(label[0], int(label[1:])) for label in labels)


def test_initial_scores() -> None:
    assert rule_set_for(GameMode.X01_501).initial_score() == 501
    assert rule_set_for(GameMode.X01_301).initial_score() == 301
    assert rule_set_for(GameMode.CLOCK).initial_score() == 0
    for mode in (GameMode.CRICKET, GameMode.KILLER, GameMode.SHANGHAI):
        assert rule_set_for(mode).initial_score() == 0


def test_rule_set_dispatch() -> None:
    assert isinstance(rule_set_for("501"), X01RuleSet)
    assert isinstance(rule_set_for(GameMode.CLOCK), ClockRuleSet)
    assert isinstance(rule_set_for(GameMode.KILLER), AccumulateRuleSet)
    assert rule_set_for(GameMode.X01_301).is_double_out
    assert not rule_set_for(GameMode.CRICKET).is_double_out


def test_x01_normal_round() -> None:
    rules = rule_set_for(GameMode.X01_501)
    result = rules.score_round(PlayerState("Ann", score=501), _round("T20", "S20", "S20"))
    assert (result.score, result.outcome) == (401, Outcome.NORMAL)
    assert "401" in result.message


def test_x01_exact_finish_wins() -> None:
    rules = rule_set_for(GameMode.X01_501)
    result = rules.score_round(PlayerState("Ann", alias="The Arrow", score=40), _round("D20"))
    assert (result.score, result.outcome) == (0, Outcome.WIN)
    assert "The Arrow" in result.message


def test_x01_bust_below_zero_keeps_score() -> None:
    rules = rule_set_for(GameMode.X01_501)
    result = rules.score_round(PlayerState("Ann", score=50), _round("T20"))
    assert (result.score, result.outcome) == (50, Outcome.BUST)


def test_x01_bust_on_one() -> None:
    rules = rule_set_for(GameMode.X01_501)
    result = rules.score_round(PlayerState("Ann", score=2), _round("S1"))
    assert (result.score, result.outcome) == (2, Outcome.BUST)


def test_x01_lenient_finish_on_single_by_default() -> None:
    rules = rule_set_for(GameMode.X01_501)
    result = rules.score_round(PlayerState("Ann", score=20), _round("S20"))
    assert result.outcome is Outcome.WIN


def test_x01_strict_double_out_is_opt_in() -> None:
    rules = rule_set_for(GameMode.X01_501, strict_double_out=True)
    bust = rules.score_round(PlayerState("Ann", score=20), _round("S20"))
    assert (bust.score, bust.outcome) == (20, Outcome.BUST)

    win = rules.score_round(PlayerState("Ann", score=50), _round("D25"))
    assert win.outcome is Outcome.WIN


def test_x01_rejects_non_x01_mode() -> None:
    with pytest.raises(ValueError):
        X01RuleSet(GameMode.CLOCK)


def test_clock_hit_advances_and_miss_stays() -> None:
    rules = rule_set_for(GameMode.CLOCK)
    hit = rules.score_round(PlayerState("Ann", score=0), _round("S1"))
    assert (hit.score, hit.outcome) == (1, Outcome.NORMAL)
    assert rules.target_label(hit.score) == "2"

    miss = rules.score_round(PlayerState("Ann", score=1), _round("S5"))
    assert (miss.score, miss.outcome) == (1, Outcome.NORMAL)
    assert "Miss" in miss.message


def test_clock_processes_darts_in_order() -> None:
    rules = rule_set_for(GameMode.CLOCK)
    # 2 is not the target until 1 has been hit, so the order matters.
    result = rules.score_round(PlayerState("Ann", score=0), _round("S1", "T2", "S2"))
    assert result.score == 2
    assert "2 hits" in result.message

    result = rules.score_round(PlayerState("Ann", score=0), _round("S2", "S1"))
    assert result.score == 1


def test_clock_multiplier_does_not_matter() -> None:
    rules = rule_set_for(GameMode.CLOCK)
    result = rules.score_round(PlayerState("Ann", score=4), _round("D5", "T6", "S7"))
    assert result.score == 7


def test_clock_bull_wins() -> None:
    rules = rule_set_for(GameMode.CLOCK)
    assert CLOCK_SEQUENCE[20] == 25
    assert rules.target_label(20) == "BULL"
    result = rules.score_round(PlayerState("Ann", score=20), _round("S25"))
    assert result.outcome is Outcome.WIN
    assert result.score == len(CLOCK_SEQUENCE)


def test_clock_darts_after_the_win_are_ignored() -> None:
    rules = rule_set_for(GameMode.CLOCK)
    result = rules.score_round(PlayerState("Ann", score=19), _round("S20", "D25", "S1"))
    assert result.outcome is Outcome.WIN


@pytest.mark.parametrize("mode", [GameMode.CRICKET, GameMode.KILLER, GameMode.SHANGHAI])
def test_accumulate_modes_add_points(mode: GameMode) -> None:
    rules = rule_set_for(mode)
    result = rules.score_round(PlayerState("Ann", score=30), _round("T20", "S5"))
    assert (result.score, result.outcome) == (95, Outcome.NORMAL)
    assert result.message == "65 points. Total is 95."
