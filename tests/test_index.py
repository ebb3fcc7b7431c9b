"""Tests for core.index module."""

import pytest

from dupectl.core.digest import Fingerprint
from dupectl.core.index import MATCH_PRIMARY, DuplicateIndex, total_reclaimable
from dupectl.core.source import FileIdentity


def fp(path: str, size: int, container: str = "", incomplete: bool = False, **digests) -> Fingerprint:
    return Fingerprint(
        identity=FileIdentity(path, size, 1, container),
        digests=digests,
        bytes_read=size,
        incomplete=incomplete,
    )


def test_groups_equal_digests():
    """Equal digests and sizes form one group."""
    index = DuplicateIndex(["sha256"])
    index.insert(fp("/a", 10, sha256=b"x"))
    index.insert(fp("/b", 10, sha256=b"x"))
    index.insert(fp("/c", 10, sha256=b"y"))

    (group,) = index.groups()

    assert group.paths == ["/a", "/b"]
    assert group.size == 10
    assert group.count == 2
    assert group.reclaimable == 10
    assert group.digests == {"sha256": b"x".hex()}
    assert len(index) == 3


def test_same_digest_different_size_never_groups():
    """Size is part of the grouping key."""
    index = DuplicateIndex(["sha256"])
    index.insert(fp("/a", 10, sha256=b"x"))
    index.insert(fp("/b", 11, sha256=b"x"))

    assert index.groups() == []


def test_all_mode_requires_every_algorithm_to_agree():
    """All mode needs agreement from every algorithm."""
    index = DuplicateIndex(["sha256", "md5"])
    index.insert(fp("/a", 5, sha256=b"x", md5=b"1"))
    index.insert(fp("/b", 5, sha256=b"x", md5=b"2"))

    assert index.groups() == []


def test_primary_mode_keys_on_primary_only():
    """Primary mode ignores disagreement in other algorithms."""
    index = DuplicateIndex(["sha256", "md5"], primary="md5", mode=MATCH_PRIMARY)
    index.insert(fp("/a", 5, sha256=b"x", md5=b"1"))
    index.insert(fp("/b", 5, sha256=b"y", md5=b"1"))

    (group,) = index.groups()

    assert group.paths == ["/a", "/b"]
    assert group.digests == {"md5": b"1".hex()}


def test_groups_ordered_by_reclaimable_then_path():
    """Groups sort by reclaimable bytes, then by first path."""
    index = DuplicateIndex(["sha256"])
    for path in ("/z1", "/z2"):
        index.insert(fp(path, 100, sha256=b"big"))
    for path in ("/m1", "/m2"):
        index.insert(fp(path, 10, sha256=b"m"))
    for path in ("/a1", "/a2"):
        index.insert(fp(path, 10, sha256=b"a"))
    for path in ("/t1", "/t2", "/t3"):
        index.insert(fp(path, 10, sha256=b"t"))

    groups = index.groups()

    assert [g.paths[0] for g in groups] == ["/z1", "/t1", "/a1", "/m1"]
    assert total_reclaimable(groups) == 100 + 20 + 10 + 10


def test_members_sorted_regardless_of_insert_order():
    """Insert order does not affect the result."""
    forward = DuplicateIndex(["sha256"])
    backward = DuplicateIndex(["sha256"])
    items = [fp(p, 3, sha256=b"q") for p in ("/c", "/a", "/b")]
    for item in items:
        forward.insert(item)
    for item in reversed(items):
        backward.insert(item)

    assert forward.groups() == backward.groups()
    assert forward.groups()[0].paths == ["/a", "/b", "/c"]


def test_reinserting_is_idempotent():
    """Inserting the same identity twice keeps one member."""
    index = DuplicateIndex(["sha256"])
    a = fp("/a", 4, sha256=b"k")
    b = fp("/b", 4, sha256=b"k")
    for item in (a, b, a, b):
        index.insert(item)

    assert len(index) == 2
    assert index.groups()[0].count == 2


def test_incomplete_fingerprint_ignored():
    """Incomplete fingerprints never join a group."""
    index = DuplicateIndex(["sha256"])
    index.insert(fp("/a", 4, sha256=b"k"))

    assert not index.insert(fp("/b", 4, incomplete=True, sha256=b"k"))
    assert index.groups() == []
    assert len(index) == 1


def test_archive_member_and_plain_file_group_together():
    """Archive members and plain files share groups."""
    index = DuplicateIndex(["sha256"])
    index.insert(fp("/data/bundle.zip!/x.txt", 4, container="/data/bundle.zip", sha256=b"k"))
    index.insert(fp("/data/x.txt", 4, sha256=b"k"))

    (group,) = index.groups()

    assert group.paths == ["/data/bundle.zip!/x.txt", "/data/x.txt"]


def test_min_size_filters_small_groups():
    """min_size drops groups with fewer members."""
    index = DuplicateIndex(["sha256"])
    for path in ("/a", "/b"):
        index.insert(fp(path, 1, sha256=b"pair"))
    for path in ("/c", "/d", "/e"):
        index.insert(fp(path, 1, sha256=b"triple"))

    assert [g.count for g in index.groups(min_size=3)] == [3]


def test_missing_key_digest_is_rejected():
    """A fingerprint without a key digest cannot be indexed."""
    index = DuplicateIndex(["sha256", "md5"])

    with pytest.raises(ValueError):
        index.insert(fp("/a", 1, sha256=b"only"))


def test_invalid_mode_or_primary():
    """Bad mode or unconfigured primary is rejected."""
    with pytest.raises(ValueError):
        DuplicateIndex(["sha256"], mode="some")
    with pytest.raises(ValueError):
        DuplicateIndex(["sha256"], primary="md5")


def test_primary_defaults_to_first_algorithm():
    """The first algorithm is primary unless one is named."""
    assert DuplicateIndex(["blake2b", "sha256"]).primary == "blake2b"
