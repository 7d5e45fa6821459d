import random
import threading

from puzzle_store import PuzzleStore, obtain_puzzle


def make_store(tmp_path, name="bank.json"):
    return PuzzleStore(tmp_path / name, rng=random.Random(0))


def test_empty_bank_has_no_puzzle(tmp_path):
    store = make_store(tmp_path)

    assert store.get_random_puzzle("Easy") is None
    assert store.count() == 0


def test_save_assigns_increasing_ids(tmp_path):
    store = make_store(tmp_path)

    first = store.save_puzzle("Easy", {"n": 1})
    second = store.save_puzzle("Hard", {"n": 2})

    assert (first, second) == (1, 2)
    assert store.count() == 2
    assert store.count("Hard") == 1


def test_random_puzzle_matches_difficulty(tmp_path):
    store = make_store(tmp_path)
    store.save_puzzle("Easy", {"n": 1})
    hard_id = store.save_puzzle("Hard", {"n": 2})

    assert store.get_random_puzzle("Hard") == {"id": hard_id, "data": {"n": 2}}
    assert store.get_random_puzzle("Expert") is None


def test_exclude_id_skips_current_puzzle(tmp_path):
    store = make_store(tmp_path)
    a = store.save_puzzle("Medium", {"n": "a"})
    b = store.save_puzzle("Medium", {"n": "b"})

    for _ in range(10):
        assert store.get_random_puzzle("Medium", exclude_id=a)["id"] == b
    store2 = make_store(tmp_path)
    assert store2.get_random_puzzle("Medium", exclude_id=b)["id"] == a


def test_only_puzzle_excluded_returns_none(tmp_path):
    store = make_store(tmp_path)
    only = store.save_puzzle("Easy", {})
    assert store.get_random_puzzle("Easy", exclude_id=only) is None


def test_corrupt_bank_is_reported_not_raised(tmp_path, caplog):
    path = tmp_path / "bank.json"
    path.write_text("{not json", encoding="utf-8")
    store = PuzzleStore(path)

    assert store.get_random_puzzle("Easy") is None
    assert store.save_puzzle("Easy", {}) is None
    assert "puzzle bank" in caplog.text or "saving puzzle" in caplog.text


def test_obtain_generates_and_saves_when_bank_is_empty(tmp_path, unique_verifier):
    store = make_store(tmp_path)

    puzzle_id, data = obtain_puzzle(store, "Easy", seed=7, verifier=unique_verifier)

    assert puzzle_id == 1
    assert data["difficulty"] == "Easy"
    assert store.get_random_puzzle("Easy") == {"id": 1, "data": data}


def test_obtain_prefers_the_bank(tmp_path, unique_verifier):
    store = make_store(tmp_path)
    saved = store.save_puzzle("Hard", {"difficulty": "Hard"})

    puzzle_id, data = obtain_puzzle(store, "Hard", verifier=unique_verifier)

    assert puzzle_id == saved
    assert data == {"difficulty": "Hard"}
    assert unique_verifier.calls == []


def test_obtain_uses_the_given_generator(tmp_path):
    store = make_store(tmp_path)
    requested = []

    def generate(difficulty):
        requested.append(difficulty)
        return {"difficulty": difficulty}

    assert obtain_puzzle(store, "Expert", generate=generate) == (1, {"difficulty": "Expert"})
    assert requested == ["Expert"]
    assert store.count("Expert") == 1


def test_obtain_saves_nothing_when_generation_gives_up(tmp_path):
    store = make_store(tmp_path)

    assert obtain_puzzle(store, "Hard", generate=lambda difficulty: None) == (None, None)
    assert store.count() == 0


# ---------- Concurrency ----------


def test_concurrent_saves_get_distinct_ids(tmp_path):
    store = make_store(tmp_path)
    ids = []

    def save_many(n):
        for i in range(5):
            ids.append(store.save_puzzle("Easy", {"n": n, "i": i}))

    threads = [threading.Thread(target=save_many, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)

    assert sorted(ids) == list(range(1, 41))
    assert store.count("Easy") == 40
