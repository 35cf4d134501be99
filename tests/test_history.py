"""Tests for history reconciliation and the history cache file."""

import json
from pathlib import Path

import pytest

from conftest import FakeSession, make_entry
from timeflip_control.exception import (
    CacheCorruptError,
    CacheWriteError,
    DeviceCommunicationError,
)
from timeflip_control.history import (
    HistoryCache,
    merge_entries,
    reconcile,
    resume_point,
    sync_history,
)


def _ids(entries):
    return [entry.id for entry in entries]


@pytest.mark.asyncio
async def test_fetches_after_newest_cached_entry():
    """Cache [1, 2] resumes after 2 and appends [3, 4]."""
    session = FakeSession(history=[make_entry(i) for i in range(1, 5)])
    cache = [make_entry(1), make_entry(2)]

    result = await reconcile(cache, None, session.read_history_since)

    assert session.history_requests == [2]
    assert _ids(result) == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_device_copy_supersedes_cached_entry():
    """An id present in both the cache and the batch appears once, fresh."""
    stale = make_entry(2, facet=0, duration=5)
    fresh = make_entry(2, facet=3, duration=900)
    cache = [make_entry(1), stale]

    async def fetch(_since):
        return [fresh, make_entry(3)]

    result = await reconcile(cache, None, fetch)

    assert _ids(result) == [1, 2, 3]
    assert result[1] == fresh
    assert result[1] != stale


@pytest.mark.asyncio
async def test_override_wins_over_cache_contents():
    session = FakeSession(history=[make_entry(i) for i in range(1, 15)])
    cache = [make_entry(1), make_entry(2), make_entry(3)]

    result = await reconcile(cache, 10, session.read_history_since)

    assert session.history_requests == [10]
    assert _ids(result) == [1, 2, 3, 11, 12, 13, 14]


@pytest.mark.asyncio
async def test_missing_cache_file_with_override(tmp_path: Path):
    """No cache file and override 10: the result is exactly the batch."""
    session = FakeSession(history=[make_entry(i) for i in range(1, 13)])
    cache_file = tmp_path / "history.json"

    result = await sync_history(
        session.read_history_since, cache_file=cache_file, resume_override=10
    )

    assert session.history_requests == [10]
    assert _ids(result) == [11, 12]
    assert _ids(HistoryCache(cache_file).load()) == [11, 12]


@pytest.mark.asyncio
async def test_empty_cache_reads_everything():
    session = FakeSession(history=[make_entry(1)])

    result = await reconcile([], None, session.read_history_since)

    assert session.history_requests == [0]
    assert _ids(result) == [1]


@pytest.mark.asyncio
async def test_empty_cache_and_empty_fetch(tmp_path: Path):
    session = FakeSession()
    cache_file = tmp_path / "history.json"

    result = await sync_history(session.read_history_since, cache_file)

    assert result == []
    assert json.loads(cache_file.read_text()) == []


@pytest.mark.asyncio
async def test_second_sync_is_idempotent(tmp_path: Path):
    session = FakeSession(history=[make_entry(i) for i in range(1, 6)])
    cache_file = tmp_path / "history.json"
    cache_file.write_text(
        json.dumps([make_entry(1).model_dump(mode="json")]), encoding="utf-8"
    )

    first = await sync_history(session.read_history_since, cache_file)
    first_bytes = cache_file.read_bytes()
    second = await sync_history(session.read_history_since, cache_file)

    assert session.history_requests == [1, 5]
    assert first == second
    assert cache_file.read_bytes() == first_bytes


@pytest.mark.asyncio
async def test_override_below_cache_tail_keeps_order():
    """Entries the cube no longer reports stay in place, in id order."""
    cache = [make_entry(i) for i in range(1, 8)]

    async def fetch(_since):
        return [make_entry(4, facet=2), make_entry(6, facet=2), make_entry(9)]

    result = await reconcile(cache, 3, fetch)

    assert _ids(result) == [1, 2, 3, 4, 5, 6, 7, 9]
    assert result[3].facet == 2
    assert result[5].facet == 2


@pytest.mark.asyncio
async def test_fetch_error_propagates(tmp_path: Path):
    cache_file = tmp_path / "history.json"

    async def fetch(_since):
        raise OSError("link lost")

    with pytest.raises(OSError, match="link lost"):
        await sync_history(fetch, cache_file)
    assert not cache_file.exists()


@pytest.mark.asyncio
async def test_write_failure_is_reported_not_raised(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    session = FakeSession(history=[make_entry(1), make_entry(2)])
    cache_file = tmp_path / "history.json"
    reported = []

    def _refuse(self, target):
        raise OSError("disk full")

    monkeypatch.setattr(Path, "replace", _refuse)

    result = await sync_history(
        session.read_history_since,
        cache_file,
        on_write_error=reported.append,
    )

    assert _ids(result) == [1, 2]
    assert len(reported) == 1
    assert isinstance(reported[0], CacheWriteError)
    assert "disk full" in str(reported[0])
    assert list(tmp_path.iterdir()) == []


def test_corrupt_cache_is_fatal(tmp_path: Path):
    cache_file = tmp_path / "history.json"
    cache_file.write_text("[{not json", encoding="utf-8")

    with pytest.raises(CacheCorruptError, match="Could not parse"):
        HistoryCache(cache_file).load()


def test_cache_with_wrong_schema_is_fatal(tmp_path: Path):
    cache_file = tmp_path / "history.json"
    cache_file.write_text(json.dumps([{"id": 1}]), encoding="utf-8")

    with pytest.raises(CacheCorruptError):
        HistoryCache(cache_file).load()


def test_cache_with_duplicate_ids_is_fatal(tmp_path: Path):
    cache_file = tmp_path / "history.json"
    data = [make_entry(1).model_dump(mode="json")] * 2
    cache_file.write_text(json.dumps(data), encoding="utf-8")

    with pytest.raises(CacheCorruptError, match="duplicate entry id 1"):
        HistoryCache(cache_file).load()


def test_cache_load_orders_by_id(tmp_path: Path):
    cache_file = tmp_path / "history.json"
    data = [make_entry(i).model_dump(mode="json") for i in (3, 1, 2)]
    cache_file.write_text(json.dumps(data), encoding="utf-8")

    assert _ids(HistoryCache(cache_file).load()) == [1, 2, 3]


def test_missing_cache_file_is_empty(tmp_path: Path):
    assert HistoryCache(tmp_path / "absent.json").load() == []


def test_save_round_trips_and_leaves_no_temp_file(tmp_path: Path):
    cache_file = tmp_path / "sub" / "history.json"
    entries = [make_entry(1, facet=4, paused=True), make_entry(2)]

    HistoryCache(cache_file).save(entries)

    assert HistoryCache(cache_file).load() == entries
    text = cache_file.read_text(encoding="utf-8")
    assert text.startswith("[\n")
    assert [item["id"] for item in json.loads(text)] == [1, 2]
    assert [p.name for p in cache_file.parent.iterdir()] == ["history.json"]


def test_resume_point():
    assert resume_point([]) == 0
    assert resume_point([make_entry(1), make_entry(7)]) == 7
    assert resume_point([make_entry(1), make_entry(7)], 3) == 3
    assert resume_point([], 0) == 0


def test_merge_rejects_unordered_input():
    with pytest.raises(CacheCorruptError, match="not strictly ascending"):
        merge_entries([make_entry(2), make_entry(1)], [])
    with pytest.raises(DeviceCommunicationError, match="not strictly ascending"):
        merge_entries([], [make_entry(3), make_entry(3)])


@pytest.mark.parametrize(
    ("cached", "fetched"),
    [
        ([], []),
        ([1, 2, 3], []),
        ([], [1, 2]),
        ([1, 2], [2, 3]),
        ([1, 3, 5], [2, 3, 4, 6]),
        ([5, 6], [1, 2]),
        ([1, 2, 3], [1, 2, 3]),
    ],
)
def test_merge_is_ascending_and_unique(cached, fetched):
    merged = merge_entries(
        [make_entry(i, duration=1) for i in cached],
        [make_entry(i, duration=2) for i in fetched],
    )

    ids = _ids(merged)
    assert ids == sorted(set(cached) | set(fetched))
    for entry in merged:
        if entry.id in fetched:
            assert entry.duration == 2
