"""Tests for the upload engine and retry policy."""

import random
import threading
import time

import pytest

from csv2store.converter import UploadRecord
from csv2store.store import DocumentStore
from csv2store.store.types import OK, other, permanent, transient
from csv2store.uploader import RetryPolicy, UploadEngine, partition_bounds


def make_records(n: int) -> list[UploadRecord]:
    return [UploadRecord(f"k{i}", f'{{"i": {i}}}') for i in range(n)]


class ScriptedStore(DocumentStore):
    """Store answering from a per-key script; unscripted keys succeed."""

    def __init__(self, script=None, delay: float = 0.0):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.delay = delay
        self.calls: list[str] = []
        self.stored: dict[str, str] = {}
        self.threads: set[str] = set()
        self._lock = threading.Lock()

    def connect(self) -> None:
        pass

    def close(self) -> None:
        pass

    def add(self, key, document):
        if self.delay:
            time.sleep(random.random() * self.delay)
        with self._lock:
            self.calls.append(key)
            self.threads.add(threading.current_thread().name)
            answers = self.script.get(key)
            result = answers.pop(0) if answers else OK
            if isinstance(result, Exception):
                raise result
            if result.success:
                self.stored[key] = document
        return result

    def get(self, key):
        return None

    def remove(self, key):
        return False


class TestPartitioning:
    def test_even_split(self):
        bounds = partition_bounds(16, 4)
        assert [stop - start for start, stop in bounds] == [4, 4, 4, 4]

    def test_last_partition_takes_remainder(self):
        bounds = partition_bounds(17, 4)
        assert [stop - start for start, stop in bounds] == [4, 4, 4, 5]
        assert bounds == [(0, 4), (4, 8), (8, 12), (12, 17)]

    def test_fewer_records_than_workers(self):
        assert partition_bounds(3, 4) == [(0, 0), (0, 0), (0, 0), (0, 3)]

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            partition_bounds(10, 0)

    def test_small_batch_single_worker(self):
        engine = UploadEngine(ScriptedStore(), workers=4, min_batch=10000)
        assert engine.plan(100) == [(0, 100)]

    def test_empty_partitions_not_planned(self):
        engine = UploadEngine(ScriptedStore(), workers=4, min_batch=0)
        assert engine.plan(3) == [(0, 3)]
        assert engine.plan(0) == []


class TestUpload:
    def test_small_batch_runs_on_one_thread(self):
        store = ScriptedStore()
        outcome = UploadEngine(store, workers=4, min_batch=10000).upload(make_records(100))
        assert outcome.total == 100
        assert outcome.skipped == 0
        assert outcome.sent == 100
        assert len(outcome.partitions) == 1
        assert len(store.threads) == 1
        assert store.calls == [f"k{i}" for i in range(100)]

    def test_large_batch_partitions(self):
        store = ScriptedStore()
        outcome = UploadEngine(store, workers=4, min_batch=10).upload(make_records(17))
        assert [p.size for p in outcome.partitions] == [4, 4, 4, 5]
        assert outcome.sent == 17
        assert len(store.stored) == 17

    def test_order_within_partition(self):
        store = ScriptedStore(delay=0.002)
        UploadEngine(store, workers=2, min_batch=0).upload(make_records(10))
        first = [k for k in store.calls if int(k[1:]) < 5]
        second = [k for k in store.calls if int(k[1:]) >= 5]
        assert first == [f"k{i}" for i in range(5)]
        assert second == [f"k{i}" for i in range(5, 10)]

    def test_empty_batch(self):
        outcome = UploadEngine(ScriptedStore()).upload([])
        assert outcome.total == 0
        assert outcome.skipped == 0
        assert outcome.partitions == []

    def test_other_failure_skips_one(self):
        store = ScriptedStore({"k1": [other(500, "boom")]})
        outcome = UploadEngine(store, min_batch=100).upload(make_records(4))
        assert outcome.skipped == 1
        assert set(store.stored) == {"k0", "k2", "k3"}

    def test_permanent_failure_aborts_partition(self):
        store = ScriptedStore({"k1": [permanent(507)]})
        outcome = UploadEngine(store, min_batch=100).upload(make_records(5))
        assert outcome.skipped == 4
        assert outcome.sent == 1
        assert outcome.aborted
        assert store.calls == ["k0", "k1"]

    @pytest.mark.parametrize("attempt", range(5))
    def test_skipped_counts_aggregate_across_workers(self, attempt):
        # partitions of 4: [k0..k3] [k4..k7] [k8..k11]
        store = ScriptedStore(
            {
                "k1": [permanent("full")],
                "k5": [permanent("full")],
                "k10": [other("bad")],
            },
            delay=0.003,
        )
        outcome = UploadEngine(store, workers=3, min_batch=0).upload(make_records(12))
        assert outcome.skipped == 7
        assert outcome.sent == 5
        assert [p.skipped for p in outcome.partitions] == [3, 3, 1]
        assert [p.aborted for p in outcome.partitions] == [True, True, False]
        assert set(store.stored) == {"k0", "k4", "k8", "k9", "k11"}

    def test_unexpected_error_skips_remainder(self):
        store = ScriptedStore({"k2": [RuntimeError("socket closed")]})
        outcome = UploadEngine(store, workers=2, min_batch=0).upload(make_records(8))
        assert outcome.skipped == 2
        assert outcome.partitions[0].skipped == 2
        assert outcome.partitions[1].skipped == 0
        assert isinstance(outcome.errors[0], RuntimeError)
        assert set(store.stored) == {"k0", "k1", "k4", "k5", "k6", "k7"}


class TestRetry:
    def test_transient_failure_retried(self):
        store = ScriptedStore({"k0": [transient(503), transient(503)]})
        sleeps: list[float] = []
        policy = RetryPolicy(base_delay=0.1, jitter=0.3)
        engine = UploadEngine(store, min_batch=100, retry=policy, sleep=sleeps.append)
        outcome = engine.upload(make_records(2))
        assert outcome.skipped == 0
        assert store.calls == ["k0", "k0", "k0", "k1"]
        assert len(sleeps) == 2
        assert all(0.1 <= s <= 0.4 for s in sleeps)

    def test_transient_retries_bounded(self):
        store = ScriptedStore({"k0": [transient(503)] * 10})
        sleeps: list[float] = []
        engine = UploadEngine(
            store, min_batch=100, retry=RetryPolicy(max_attempts=3), sleep=sleeps.append
        )
        outcome = engine.upload(make_records(2))
        assert outcome.skipped == 1
        assert store.calls == ["k0", "k0", "k0", "k1"]
        assert len(sleeps) == 2

    def test_elapsed_limit(self):
        store = ScriptedStore({"k0": [transient(429)] * 10})
        engine = UploadEngine(
            store,
            min_batch=100,
            retry=RetryPolicy(max_elapsed=0.0),
            sleep=lambda s: None,
        )
        outcome = engine.upload(make_records(1))
        assert outcome.skipped == 1
        assert store.calls == ["k0"]

    def test_delay_range(self):
        policy = RetryPolicy(base_delay=0.1, jitter=0.3)
        rng = random.Random(42)
        delays = [policy.delay(rng) for _ in range(200)]
        assert min(delays) >= 0.1
        assert max(delays) <= 0.4

    def test_exhausted(self):
        policy = RetryPolicy(max_attempts=12, max_elapsed=5.0)
        assert not policy.exhausted(1, 0.0)
        assert policy.exhausted(12, 0.0)
        assert policy.exhausted(1, 5.0)
