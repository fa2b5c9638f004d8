import pytest

from oche.scoring.store import InMemoryStore, JsonFileStore


def test_in_memory_store_round_trip() -> None:
    store = InMemoryStore()
    assert store.load("match") is None
    value = {"mode": "501", "players": [{"name": "Ann"}]}
    store.save("match", value)
    loaded = store.load("match")
    assert loaded == value
    loaded["mode"] = "301"
    assert store.load("match")["mode"] == "501"
    store.clear("match")
    assert store.load("match") is None
    store.clear("match")


def test_json_file_store_round_trip(tmp_path) -> None:
    store = JsonFileStore(tmp_path / "data")
    assert store.load("achievements") is None
    store.save("achievements", ["first_180", "high_ton"])
    assert (tmp_path / "data" / "achievements.json").exists()
    assert JsonFileStore(tmp_path / "data").load("achievements") == ["first_180", "high_ton"]
    store.clear("achievements")
    assert store.load("achievements") is None
    store.clear("achievements")


def test_json_file_store_rejects_path_like_keys(tmp_path) -> None:
    store = JsonFileStore(tmp_path)
    with pytest.raises(ValueError):
        store.save("../escape", 1)
