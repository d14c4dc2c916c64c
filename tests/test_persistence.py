import json
import os

import pytest

from stampede.persistence import (
    FailureRecord,
    failure_file,
    load_failures,
    load_store,
    persist_failure,
)
from test_fixtures import DEPLOYER

COUNTER = f"{DEPLOYER}.counter"


@pytest.fixture
def regressions_dir(tmp_path):
    return str(tmp_path / "regressions")


def test_load_without_file(regressions_dir):
    assert load_failures(COUNTER, "invariant", regressions_dir) == []
    assert load_store(COUNTER, regressions_dir) == {"invariant": [], "test": []}


def test_persist_and_load(regressions_dir):
    assert persist_failure(COUNTER, "invariant", 1234, base_dir=regressions_dir)
    assert persist_failure(COUNTER, "test", -7, "0:1", base_dir=regressions_dir)

    path = failure_file(COUNTER, regressions_dir)
    assert path == os.path.join(regressions_dir, f"{COUNTER}.json")
    assert os.path.exists(path)

    [invariant] = load_failures(COUNTER, "invariant", regressions_dir)
    assert invariant.seed == 1234
    assert invariant.path is None
    assert invariant.timestamp > 0

    [test] = load_failures(COUNTER, "test", regressions_dir)
    assert (test.seed, test.path) == (-7, "0:1")


def test_file_layout(regressions_dir):
    persist_failure(COUNTER, "invariant", 1, base_dir=regressions_dir)

    with open(failure_file(COUNTER, regressions_dir)) as f:
        store = json.load(f)

    assert set(store) == {"invariant", "test"}
    assert store["test"] == []
    assert set(store["invariant"][0]) == {"seed", "path", "timestamp"}


def test_duplicate_seed_is_not_recorded(regressions_dir):
    assert persist_failure(COUNTER, "invariant", 42, base_dir=regressions_dir)
    assert not persist_failure(COUNTER, "invariant", 42, base_dir=regressions_dir)

    # the same seed in the other mode is a different failure
    assert persist_failure(COUNTER, "test", 42, base_dir=regressions_dir)

    assert len(load_failures(COUNTER, "invariant", regressions_dir)) == 1


def test_most_recent_failures_are_kept(regressions_dir):
    for seed in range(5):
        persist_failure(COUNTER, "invariant", seed, base_dir=regressions_dir, max_failures=3)

    seeds = [r.seed for r in load_failures(COUNTER, "invariant", regressions_dir)]
    assert seeds == [2, 3, 4]


def test_corrupt_file_starts_fresh(regressions_dir):
    os.makedirs(regressions_dir)
    with open(failure_file(COUNTER, regressions_dir), "w") as f:
        f.write("{not json")

    assert load_failures(COUNTER, "invariant", regressions_dir) == []
    assert persist_failure(COUNTER, "invariant", 9, base_dir=regressions_dir)
    assert [r.seed for r in load_failures(COUNTER, "invariant", regressions_dir)] == [9]


def test_record_from_json():
    assert FailureRecord.from_json({"seed": 3}) == FailureRecord(3, None, 0)
    assert FailureRecord.from_json({"seed": 3, "path": "1", "timestamp": 10}) == FailureRecord(
        3, "1", 10
    )
