"""Incremental sync of the cube's history log against a local cache file.

The cache is a JSON array of log entries ordered by id. Each run reads the
cache, asks the cube for entries after the resume point, merges the two and
writes the result back. Running it again against an unchanged cube leaves
the cache as it was.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Sequence

from pydantic import TypeAdapter, ValidationError

from .exception import (
    CacheCorruptError,
    CacheWriteError,
    DeviceCommunicationError,
    TimeFlipError,
)
from .models import LogEntry

logger = logging.getLogger(__name__)

Fetch = Callable[[int], Awaitable[Sequence[LogEntry]]]

_ENTRIES = TypeAdapter(list[LogEntry])


class HistoryCache:
    """JSON file holding every log entry read so far.

    Writes go to a temporary file that replaces the target, so readers never
    see a partial file. Two processes writing at once are not coordinated;
    the last one to finish wins.
    """

    def __init__(self, path: Path | str):
        """Initialize the cache backed by the given file path."""
        self._path = Path(path)

    def load(self) -> list[LogEntry]:
        """Return the cached entries ordered by id.

        A missing file is an empty cache. Anything unreadable raises
        ``CacheCorruptError`` so stale state is never silently dropped.
        """
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            logger.debug("No history cache at %s", self._path)
            return []
        except OSError as exc:
            raise CacheCorruptError(
                f"Could not read history cache {self._path}: {exc}"
            ) from exc

        try:
            entries = _ENTRIES.validate_json(raw)
        except ValidationError as exc:
            raise CacheCorruptError(
                f"Could not parse history cache {self._path}: {exc}"
            ) from exc

        entries.sort(key=lambda entry: entry.id)
        for previous, current in zip(entries, entries[1:]):
            if previous.id == current.id:
                raise CacheCorruptError(
                    f"History cache {self._path} has duplicate entry id "
                    f"{current.id}"
                )
        logger.debug("Loaded %d entries from %s", len(entries), self._path)
        return entries

    def save(self, entries: Sequence[LogEntry]) -> None:
        """Write ``entries`` atomically, raising ``CacheWriteError`` on failure."""
        data = _ENTRIES.dump_json(list(entries), indent=2)
        tmp_file = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_file.write_bytes(data)
            tmp_file.replace(self._path)
        except OSError as exc:
            tmp_file.unlink(missing_ok=True)
            raise CacheWriteError(
                f"cannot update entries file {self._path}: {exc}"
            ) from exc
        logger.debug("Wrote %d entries to %s", len(entries), self._path)


def resume_point(
    cache: Sequence[LogEntry], override: int | None = None
) -> int:
    """Return the id after which the cube must be read.

    An explicit override wins; otherwise the newest cached id, or 0 for an
    empty cache.
    """
    if override is not None:
        return override
    if cache:
        return cache[-1].id
    return 0


def merge_entries(
    cache: Sequence[LogEntry], fetched: Sequence[LogEntry]
) -> list[LogEntry]:
    """Merge two id-ordered sequences; ``fetched`` wins on equal ids.

    Both inputs must be strictly ascending by id. The result is too.
    """
    _check_ascending(cache, "cached", CacheCorruptError)
    _check_ascending(fetched, "fetched", DeviceCommunicationError)

    merged: list[LogEntry] = []
    i = j = 0
    while i < len(cache) and j < len(fetched):
        cached, fresh = cache[i], fetched[j]
        if cached.id < fresh.id:
            merged.append(cached)
            i += 1
        else:
            if cached.id == fresh.id:
                # the cube's copy supersedes a possibly partial cached one
                i += 1
            merged.append(fresh)
            j += 1
    merged.extend(cache[i:])
    merged.extend(fetched[j:])
    return merged


def _check_ascending(
    entries: Iterable[LogEntry], what: str, error: type[TimeFlipError]
) -> None:
    previous: int | None = None
    for entry in entries:
        if previous is not None and entry.id <= previous:
            raise error(
                f"{what} entries are not strictly ascending: "
                f"{entry.id} after {previous}"
            )
        previous = entry.id


async def reconcile(
    cache: Sequence[LogEntry], resume_override: int | None, fetch: Fetch
) -> list[LogEntry]:
    """Fetch entries after the resume point and merge them into ``cache``."""
    start = resume_point(cache, resume_override)
    logger.info("Reading history after entry %d", start)
    fetched = list(await fetch(start))
    merged = merge_entries(cache, fetched)
    logger.info(
        "History: %d cached, %d fetched, %d total",
        len(cache),
        len(fetched),
        len(merged),
    )
    return merged


async def sync_history(
    fetch: Fetch,
    cache_file: Path | str | None = None,
    resume_override: int | None = None,
    on_write_error: Callable[[CacheWriteError], None] | None = None,
) -> list[LogEntry]:
    """Load the cache, reconcile it with the cube and persist the result.

    Persisting is best effort: a ``CacheWriteError`` is logged and handed to
    ``on_write_error`` while the merged entries are still returned.
    """
    cache = HistoryCache(cache_file) if cache_file is not None else None
    cached = cache.load() if cache is not None else []

    entries = await reconcile(cached, resume_override, fetch)

    if cache is not None:
        try:
            cache.save(entries)
        except CacheWriteError as exc:
            logger.warning("%s", exc)
            if on_write_error is not None:
                on_write_error(exc)
    return entries
