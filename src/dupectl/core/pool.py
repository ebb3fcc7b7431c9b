"""Bounded-concurrency hashing over a lazy stream of file sources."""

import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from dupectl.core.cache import CacheStore
from dupectl.core.digest import CHUNK_SIZE, Fingerprint, compute, resolve_algorithms
from dupectl.core.errors import Cancelled, Truncated, Unreadable
from dupectl.core.source import FileIdentity, FileSource

logger = logging.getLogger(__name__)

UNREADABLE = "unreadable"
TRUNCATED = "truncated"


def default_workers() -> int:
    return max(1, (os.cpu_count() or 1) // 2)


class CancelToken:
    """Shared stop flag, checked by workers at chunk boundaries."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class ProgressEvent:
    files_completed: int
    bytes_processed: int
    cache_hits: int


@dataclass(frozen=True)
class SkippedFile:
    """A file left out of the results, and why."""

    path: str
    reason: str
    message: str = ""


@dataclass(frozen=True)
class PoolResult:
    fingerprint: Fingerprint | None = None
    skipped: SkippedFile | None = None


class WorkerPool:
    """Drive digest computations with at most ``workers`` in flight.

    Cache lookups happen on the dispatching thread before a slot is taken;
    only misses are handed to the executor. The source iterable is not
    advanced while every slot is busy. Results come back in completion order.

    Freshly computed fingerprints are written to the cache from the consuming
    thread, and only while the run has not been cancelled.
    """

    def __init__(
        self,
        cache: CacheStore,
        algorithms: Iterable[str],
        workers: int | None = None,
        chunk_size: int = CHUNK_SIZE,
        cancel: CancelToken | None = None,
        progress: Callable[[ProgressEvent], None] | None = None,
    ):
        self.cache = cache
        self.algorithms = resolve_algorithms(algorithms)
        self.workers = max(1, int(workers or default_workers()))
        self.chunk_size = max(1, int(chunk_size))
        self.cancel = cancel or CancelToken()
        self.progress = progress

        self.files_completed = 0
        self.bytes_processed = 0
        self.cache_hits = 0
        self.computed = 0

    def run(self, sources: Iterable[FileSource]) -> Iterator[PoolResult]:
        """Yield one result per distinct identity, in completion order."""
        self.cache.ensure_algorithms(self.algorithms)
        pending = iter(sources)
        exhausted = False
        seen: set[FileIdentity] = set()
        in_flight: dict[Future, FileSource] = {}

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="dupectl-hash") as executor:
            try:
                while True:
                    while not exhausted and not self.cancel.cancelled and len(in_flight) < self.workers:
                        try:
                            source = next(pending)
                        except StopIteration:
                            exhausted = True
                            break

                        identity = source.identity
                        if identity in seen:
                            logger.debug("Already dispatched: %s", identity.path)
                            continue
                        seen.add(identity)

                        cached = self.cache.lookup(identity, self.algorithms)
                        if cached is not None:
                            self.cache_hits += 1
                            self._completed(0)
                            yield PoolResult(fingerprint=cached)
                            continue

                        future = executor.submit(compute, source, self.algorithms, self.chunk_size, self.cancel)
                        in_flight[future] = source

                    if not in_flight:
                        break

                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        source = in_flight.pop(future)
                        result = self._collect(future, source)
                        if result is not None:
                            yield result
            finally:
                if in_flight:
                    # Consumer stopped early or raised: let workers wind down
                    self.cancel.cancel()

    def _collect(self, future: Future, source: FileSource) -> PoolResult | None:
        path = source.identity.path
        try:
            fingerprint = future.result()
        except Cancelled:
            logger.debug("Cancelled while hashing %s", path)
            return None
        except Unreadable as e:
            logger.warning("Skipping unreadable file %s: %s", path, e.reason)
            self._completed(0)
            return PoolResult(skipped=SkippedFile(path, UNREADABLE, e.reason))
        except Exception as e:
            logger.exception("Unexpected error hashing %s", path)
            self._completed(0)
            return PoolResult(skipped=SkippedFile(path, UNREADABLE, str(e)))

        if self.cancel.cancelled:
            logger.debug("Discarding %s finished after cancellation", path)
            return None

        self._completed(fingerprint.bytes_read)
        if fingerprint.incomplete:
            error = Truncated(path, source.identity.size, fingerprint.bytes_read)
            logger.warning("Skipping truncated file %s", error)
            return PoolResult(skipped=SkippedFile(path, TRUNCATED, f"expected {error.expected} bytes, read {error.actual}"))

        self.computed += 1
        self.cache.put(fingerprint)
        return PoolResult(fingerprint=fingerprint)

    def _completed(self, nbytes: int) -> None:
        self.files_completed += 1
        self.bytes_processed += nbytes
        if self.progress is None:
            return
        event = ProgressEvent(self.files_completed, self.bytes_processed, self.cache_hits)
        try:
            self.progress(event)
        except Exception:
            logger.exception("Progress listener failed")
