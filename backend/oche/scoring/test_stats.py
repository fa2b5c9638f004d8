from oche.scoring.darts import make_dart
from oche.scoring.game import Match
from oche.scoring.modes import GameMode
from oche.scoring.stats import compute_match_stats


def test_stats_exclude_busted_points() -> None:
    g = Match(GameMode.X01_301, ["Ann", "Bob"])

    # Ann: 301 -> 121
    g.submit_visit([make_dart("T", 20)] * 3)
    # Bob: scores 6
    g.submit_visit([make_dart("S", 6)])
    # Ann: bust (180 from 121)
    g.submit_visit([make_dart("T", 20)] * 3)

    stats = compute_match_stats(g.state())
    ann, bob = stats.players

    assert ann.visits == 2
    assert ann.busts == 1
    assert ann.scored_points == 180
    assert ann.highest_visit == 180
    assert ann.count_180 == 1
    assert ann.darts_thrown == 6
    assert ann.three_dart_average == 90.0

    assert bob.visits == 1
    assert bob.busts == 0
    assert bob.scored_points == 6
    assert bob.name == "Bob"


def test_stats_checkout_counts() -> None:
    g = Match(GameMode.X01_301, ["Ann"])
    g.submit_visit([make_dart("T", 20)] * 3)  # 121, a checkout attempt from here on
    g.submit_visit([make_dart("T", 20), make_dart("T", 19), make_dart("D", 2)])

    ann = compute_match_stats(g.state()).players[0]
    assert ann.checkouts == 1
    assert ann.checkout_attempts == 1
    assert ann.checkout_percentage == 100.0


def test_stats_for_accumulate_modes() -> None:
    g = Match(GameMode.CRICKET, ["Ann"])
    g.submit_visit([make_dart("T", 20), make_dart("S", 5)])
    ann = compute_match_stats(g.state()).players[0]
    assert ann.scored_points == 65
    assert ann.checkout_attempts == 0
    assert ann.checkout_percentage == 0.0


def test_empty_match_stats() -> None:
    stats = compute_match_stats(Match(GameMode.X01_501, ["Ann", "Bob"]).state())
    assert [p.visits for p in stats.players] == [0, 0]
    assert stats.players[0].three_dart_average == 0.0


def test_first_nine_average_and_best_checkout() -> None:
    g = Match(GameMode.X01_501, ["Ann"])
    g.submit_visit([make_dart("T", 20)] * 3)  # 321
    g.submit_visit([make_dart("S", 20)] * 3)  # 261
    g.submit_visit([make_dart("T", 20)] * 3)  # 81
    g.submit_visit([make_dart("S", 1)])  # 80, outside the first nine
    g.submit_visit([make_dart("T", 20), make_dart("D", 10)])

    ann = compute_match_stats(g.state()).players[0]
    assert ann.first_nine_darts == 9
    assert ann.first_nine_average == 140.0
    assert ann.best_checkout == 80
    assert ann.darts_thrown == 12


def test_leader_has_best_average() -> None:
    g = Match(GameMode.X01_501, ["Ann", "Bob", "Cat"])
    g.submit_visit([make_dart("S", 20)])
    g.submit_visit([make_dart("T", 20)])
    stats = compute_match_stats(g.state())
    leader = stats.leader()
    assert leader is not None and leader.name == "Bob"

    assert compute_match_stats(Match(GameMode.X01_501, ["Ann"]).state()).leader() is None
