"""Concurrent bulk upload of (key, document) records with retry and backoff."""

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Sequence

from csv2store.converter import UploadRecord
from csv2store.store import DocumentStore, StoreStatus

logger = logging.getLogger(__name__)

MIN_BATCH = 10000
WORKER_COUNT = 8
MAX_RETRIES = 12


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff for transient store failures.

    Each retry sleeps ``base_delay`` plus a uniform jitter in ``[0, jitter]``
    seconds. A record is given up after ``max_attempts`` transient failures
    or once ``max_elapsed`` seconds have passed since its first attempt.
    """

    base_delay: float = 0.1
    jitter: float = 0.3
    max_attempts: int = MAX_RETRIES
    max_elapsed: float | None = None

    def delay(self, rng: random.Random) -> float:
        return self.base_delay + rng.random() * self.jitter

    def exhausted(self, attempts: int, elapsed: float) -> bool:
        if attempts >= self.max_attempts:
            return True
        return self.max_elapsed is not None and elapsed >= self.max_elapsed


@dataclass
class PartitionResult:
    index: int
    size: int
    sent: int = 0
    skipped: int = 0
    aborted: bool = False
    error: BaseException | None = None


@dataclass
class UploadOutcome:
    total: int
    skipped: int
    partitions: list[PartitionResult] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return self.total - self.skipped

    @property
    def aborted(self) -> bool:
        return any(p.aborted for p in self.partitions)

    @property
    def errors(self) -> list[BaseException]:
        return [p.error for p in self.partitions if p.error is not None]


def partition_bounds(count: int, workers: int) -> list[tuple[int, int]]:
    """Split ``range(count)`` into ``workers`` contiguous (start, stop) ranges.

    The first ``workers - 1`` ranges hold ``count // workers`` items each;
    the last one absorbs the remainder.
    """
    if workers < 1:
        raise ValueError("workers must be >= 1")
    size = count // workers
    bounds = [(i * size, (i + 1) * size) for i in range(workers - 1)]
    bounds.append(((workers - 1) * size, count))
    return bounds


class UploadEngine:
    """Uploads records to a DocumentStore, one worker thread per partition.

    Batches smaller than ``min_batch`` run on a single worker. Larger batches
    are split statically into ``workers`` contiguous partitions; each worker
    processes its partition in order and reports a PartitionResult.
    """

    def __init__(
        self,
        store: DocumentStore,
        workers: int = WORKER_COUNT,
        min_batch: int = MIN_BATCH,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._store = store
        self._workers = workers
        self._min_batch = min_batch
        self._retry = retry or RetryPolicy()
        self._sleep = sleep

    def plan(self, count: int) -> list[tuple[int, int]]:
        """Return the non-empty partitions a batch of ``count`` records is split into."""
        if count < self._min_batch:
            bounds = [(0, count)]
        else:
            bounds = partition_bounds(count, self._workers)
        return [(start, stop) for start, stop in bounds if stop > start]

    def upload(self, records: Sequence[UploadRecord]) -> UploadOutcome:
        total = len(records)
        bounds = self.plan(total)
        logger.info("Uploading %d records on %d worker(s)", total, len(bounds))
        if not bounds:
            return UploadOutcome(total=0, skipped=0)

        with ThreadPoolExecutor(
            max_workers=len(bounds), thread_name_prefix="upload"
        ) as executor:
            futures = [
                executor.submit(self._send_partition, i, records[start:stop])
                for i, (start, stop) in enumerate(bounds)
            ]
            results = [f.result() for f in futures]

        skipped = sum(r.skipped for r in results)
        outcome = UploadOutcome(total=total, skipped=skipped, partitions=results)
        logger.info("Upload done: %d sent, %d skipped", outcome.sent, outcome.skipped)
        return outcome

    def _send_partition(self, index: int, records: Sequence[UploadRecord]) -> PartitionResult:
        result = PartitionResult(index=index, size=len(records))
        rng = random.Random()
        position = 0
        try:
            while position < len(records):
                status = self._send_record(records[position], rng)
                if status is StoreStatus.SUCCESS:
                    result.sent += 1
                elif status is StoreStatus.PERMANENT:
                    result.aborted = True
                    logger.warning(
                        "Partition %d: store capacity exhausted, skipping %d remaining records",
                        index,
                        len(records) - position,
                    )
                    break
                position += 1
        except Exception as e:
            result.error = e
            logger.exception(
                "Partition %d: unexpected failure, skipping %d remaining records",
                index,
                len(records) - position,
            )
        finally:
            # every record not sent counts as skipped
            result.skipped = result.size - result.sent
        return result

    def _send_record(self, record: UploadRecord, rng: random.Random) -> StoreStatus:
        """Store one record, retrying transient failures. Returns the final status."""
        attempts = 0
        started = time.monotonic()
        while True:
            result = self._store.add(record.key, record.document)
            if result.status is not StoreStatus.TRANSIENT:
                if result.status is StoreStatus.OTHER:
                    logger.warning(
                        "Skipping record %s: %s %s", record.key, result.code, result.message
                    )
                return result.status

            attempts += 1
            if self._retry.exhausted(attempts, time.monotonic() - started):
                logger.warning(
                    "Skipping record %s after %d transient failures (last: %s)",
                    record.key,
                    attempts,
                    result.code,
                )
                return StoreStatus.OTHER
            delay = self._retry.delay(rng)
            logger.debug(
                "Transient failure %s on %s, retrying in %.2fs", result.code, record.key, delay
            )
            self._sleep(delay)
