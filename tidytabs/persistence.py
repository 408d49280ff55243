"""Async JSON file persistence for schedule state and run history.

``JsonStore`` does atomic writes (temp file + rename) through aiofiles with a
per-store asyncio.Lock. ``ScheduleStore`` and ``HistoryStore`` sit on top of
it and speak in models rather than dicts.

Usage::

    store = ScheduleStore(JsonStore("output/schedule.json"))
    state = await store.load()
    await store.save(state.model_copy(update={"enabled": True}))
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import time
from collections.abc import Callable
from typing import Any

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from tidytabs.models.run import HistoryEntry
from tidytabs.models.schedule import ScheduleState

logger = logging.getLogger(__name__)

MAX_HISTORY_ENTRIES = 50


class JsonStore:
    """Async JSON file store with atomic writes.

    - **Atomic writes**: data is written to a temp file then renamed, so a
      crash mid-write never leaves a half-written file.
    - **Per-store lock**: concurrent saves/updates to the same file are
      serialized.
    """

    def __init__(self, path: str, indent: int = 2) -> None:
        self.path = os.path.abspath(path)
        self.indent = indent
        self._lock = asyncio.Lock()

    async def load(self, default: Any = None) -> Any:
        """Load JSON from file. Returns ``default`` if missing or corrupt."""
        return await self._load_unlocked(default)

    async def save(self, data: Any) -> None:
        async with self._lock:
            await self._save_unlocked(data)

    async def update(self, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Load, apply fn, save, and return the updated data."""
        async with self._lock:
            data = fn(await self._load_unlocked(default))
            await self._save_unlocked(data)
            return data

    async def delete(self) -> bool:
        """Delete the JSON file if it exists. Returns True if deleted."""
        async with self._lock:
            try:
                await aiofiles.os.remove(self.path)
                return True
            except FileNotFoundError:
                return False

    # -- Internal helpers (no locking) --

    async def _load_unlocked(self, default: Any = None) -> Any:
        fallback = default if default is not None else {}
        try:
            async with aiofiles.open(self.path, "r") as f:
                text = await f.read()
            return json.loads(text)
        except FileNotFoundError:
            return fallback
        except json.JSONDecodeError:
            logger.warning("Corrupt JSON in %s, using default", self.path)
            return fallback

    async def _save_unlocked(self, data: Any) -> None:
        dir_name = os.path.dirname(self.path)
        await aiofiles.os.makedirs(dir_name, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".tmp", prefix=".jsonstore_")
        try:
            async with aiofiles.open(fd, "w", closefd=True) as f:
                await f.write(json.dumps(data, indent=self.indent, ensure_ascii=False))
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise


# ---------------------------------------------------------------------------
# Schedule state
# ---------------------------------------------------------------------------


class ScheduleStore:
    """Durable home of ScheduleState between restarts."""

    def __init__(self, store: JsonStore) -> None:
        self.store = store

    async def load(self) -> ScheduleState:
        data = await self.store.load(default={})
        try:
            return ScheduleState.model_validate(data)
        except ValidationError:
            logger.warning("Invalid schedule state in %s, using defaults", self.store.path)
            return ScheduleState()

    async def save(self, state: ScheduleState) -> None:
        await self.store.save(state.model_dump())


# ---------------------------------------------------------------------------
# Run history
# ---------------------------------------------------------------------------


class HistoryStore:
    """Newest-first list of applied runs, capped at MAX_HISTORY_ENTRIES."""

    def __init__(self, store: JsonStore, max_entries: int = MAX_HISTORY_ENTRIES) -> None:
        self.store = store
        self.max_entries = max_entries

    async def add(self, groups: list, tab_count: int, auto: bool = False) -> HistoryEntry:
        entry = HistoryEntry(
            groups=groups,
            tab_count=tab_count,
            auto=auto,
            timestamp=int(time.time() * 1000),
        )
        record = entry.model_dump(by_alias=True)
        await self.store.update(
            lambda items: ([record] + (items if isinstance(items, list) else []))[: self.max_entries],
            default=[],
        )
        return entry

    async def recent(self, limit: int = 10) -> list[HistoryEntry]:
        items = await self.store.load(default=[])
        if not isinstance(items, list):
            return []
        entries = []
        for item in items[:limit]:
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError:
                logger.warning("Skipping invalid history entry in %s", self.store.path)
        return entries

    async def clear(self) -> bool:
        """Drop the history file. False if there was nothing to clear."""
        return await self.store.delete()
