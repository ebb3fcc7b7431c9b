"""In-memory grouping of fingerprints by digest equality."""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from dupectl.core.digest import Fingerprint, resolve_algorithms
from dupectl.core.source import FileIdentity

MATCH_ALL = "all"
MATCH_PRIMARY = "primary"
MATCH_MODES = (MATCH_ALL, MATCH_PRIMARY)


@dataclass(frozen=True)
class DuplicateGroup:
    """Files whose fingerprints agree under the index's grouping key."""

    members: tuple[FileIdentity, ...]
    size: int
    digests: dict[str, str] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def reclaimable(self) -> int:
        return (self.count - 1) * self.size

    @property
    def paths(self) -> list[str]:
        return [m.path for m in self.members]


class DuplicateIndex:
    """Accumulates fingerprints and answers duplicate-group queries.

    With ``mode="all"`` (default) two files group together only if every
    configured algorithm agrees. ``mode="primary"`` keys on ``primary`` alone.
    Not thread-safe; fed by the single consumer of the worker pool.
    """

    def __init__(self, algorithms: Iterable[str], primary: str | None = None, mode: str = MATCH_ALL):
        if mode not in MATCH_MODES:
            raise ValueError(f"Unknown match mode: {mode!r} (expected one of {', '.join(MATCH_MODES)})")
        self.algorithms = resolve_algorithms(algorithms)
        self.primary = primary or self.algorithms[0]
        if self.primary not in self.algorithms:
            raise ValueError(f"Primary algorithm {self.primary!r} is not among {self.algorithms}")
        self.mode = mode
        self._key_algorithms = self.algorithms if mode == MATCH_ALL else (self.primary,)
        self._buckets: dict[tuple, dict[FileIdentity, Fingerprint]] = defaultdict(dict)
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def key(self, fingerprint: Fingerprint) -> tuple:
        # Size is part of the key so a digest collision across sizes never groups
        return (fingerprint.identity.size, *(fingerprint.digests[a] for a in self._key_algorithms))

    def insert(self, fingerprint: Fingerprint) -> bool:
        """Add a fingerprint. Incomplete fingerprints are ignored.

        Returns True if the fingerprint was indexed.
        """
        if fingerprint.incomplete:
            return False
        missing = [a for a in self._key_algorithms if a not in fingerprint.digests]
        if missing:
            raise ValueError(f"Fingerprint for {fingerprint.identity.path} lacks {', '.join(missing)}")
        bucket = self._buckets[self.key(fingerprint)]
        if fingerprint.identity not in bucket:
            self._count += 1
        bucket[fingerprint.identity] = fingerprint
        return True

    def groups(self, min_size: int = 2) -> list[DuplicateGroup]:
        """Duplicate groups, largest reclaimable size first.

        Ties are broken by the path of the first member, so the order is
        fully deterministic for a given set of fingerprints.
        """
        min_size = max(2, min_size)
        result = []
        for bucket in self._buckets.values():
            if len(bucket) < min_size:
                continue
            members = tuple(sorted(bucket, key=lambda ident: (ident.path, ident.container)))
            first = bucket[members[0]]
            result.append(
                DuplicateGroup(
                    members=members,
                    size=first.identity.size,
                    digests={a: first.hexdigest(a) for a in self._key_algorithms},
                )
            )
        result.sort(key=lambda g: (-g.reclaimable, g.members[0].path))
        return result


def total_reclaimable(groups: Iterable[DuplicateGroup]) -> int:
    return sum(g.reclaimable for g in groups)
