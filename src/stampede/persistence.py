# SPDX-License-Identifier: AGPL-3.0

"""
Regression store of failing seeds.

Every falsified run is recorded in `<regressions_dir>/<contract_id>.json`:

    {
      "invariant": [{"seed": 1234, "path": null, "timestamp": 1700000000000}],
      "test": []
    }

Records are unique per seed and mode. Only the `max_failures` most recent
records are kept. `--replay` runs the stored seeds again before a fresh run.
"""

import json
import os
import time
from dataclasses import asdict, dataclass

from .logs import debug, warn

DEFAULT_REGRESSIONS_DIR = "stampede-regressions"
DEFAULT_MAX_FAILURES = 100
MODES = ("invariant", "test")


@dataclass(frozen=True)
class FailureRecord:
    seed: int
    path: str | None = None
    # milliseconds since the epoch
    timestamp: int = 0

    @staticmethod
    def from_json(item: dict) -> "FailureRecord":
        return FailureRecord(item["seed"], item.get("path"), item.get("timestamp", 0))


def failure_file(contract_id: str, base_dir: str) -> str:
    return os.path.join(base_dir, f"{contract_id}.json")


def empty_store() -> dict[str, list[dict]]:
    return {mode: [] for mode in MODES}


def load_store(contract_id: str, base_dir: str) -> dict[str, list[dict]]:
    path = failure_file(contract_id, base_dir)

    try:
        with open(path, encoding="utf-8") as f:
            store = json.load(f)
    except FileNotFoundError:
        return empty_store()
    except (OSError, json.JSONDecodeError) as err:
        warn(f"Could not read {path}, starting fresh: {err}")
        return empty_store()

    if not isinstance(store, dict):
        warn(f"Unexpected content in {path}, starting fresh")
        return empty_store()

    for mode in MODES:
        store.setdefault(mode, [])
    return store


def save_store(contract_id: str, base_dir: str, store: dict) -> None:
    os.makedirs(base_dir, exist_ok=True)
    path = failure_file(contract_id, base_dir)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(store, f, indent=2)
        f.write("\n")


def persist_failure(
    contract_id: str,
    mode: str,
    seed: int,
    path: str | None = None,
    base_dir: str = DEFAULT_REGRESSIONS_DIR,
    max_failures: int = DEFAULT_MAX_FAILURES,
) -> bool:
    """
    Record a failing seed. Returns False if the seed was already recorded.
    """

    store = load_store(contract_id, base_dir)
    failures = store[mode]

    if any(item.get("seed") == seed for item in failures):
        debug(f"seed {seed} is already recorded for {contract_id}")
        return False

    record = FailureRecord(seed, path, int(time.time() * 1000))
    failures.append(asdict(record))

    if len(failures) > max_failures:
        # oldest first, so the most recent records are at the end
        failures.sort(key=lambda item: item.get("timestamp", 0))
        del failures[: len(failures) - max_failures]

    save_store(contract_id, base_dir, store)
    return True


def load_failures(
    contract_id: str, mode: str, base_dir: str = DEFAULT_REGRESSIONS_DIR
) -> list[FailureRecord]:
    store = load_store(contract_id, base_dir)
    return [FailureRecord.from_json(item) for item in store[mode]]
