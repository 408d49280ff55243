"""Live tab environment: collection, filtering, grouping and ungrouping.

``TabBrowser`` is the seam to whatever owns the real tabs. The service ships
``InMemoryTabBrowser``, a registry that a browser-side client keeps in sync
via ``PUT /api/tabs`` and reads back via ``GET /api/groups``.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable
from typing import Protocol
from urllib.parse import urlsplit

from tidytabs.models.run import ClearResult
from tidytabs.models.tabs import LiveGroup, TabRecord

logger = logging.getLogger(__name__)

INTERNAL_URL_PREFIXES = ("chrome://", "edge://", "chrome-extension://")


class TabBrowser(Protocol):
    """Async interface to the live tab set."""

    async def query(self, window_id: int | None = None) -> list[TabRecord]: ...

    async def current_window_id(self) -> int | None: ...

    async def tab_exists(self, tab_id: int) -> bool: ...

    async def group_tabs(self, tab_ids: list[int]) -> int: ...

    async def set_group_appearance(self, group_id: int, title: str, color: str) -> None: ...

    async def ungroup(self, tab_ids: list[int]) -> None: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def extract_domain(url: str) -> str:
    """Hostname of ``url``, or "" if it has none."""
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        return ""


def unique_domains(tabs: Iterable[TabRecord]) -> list[str]:
    """Non-empty domains in first-seen order."""
    return list(dict.fromkeys(t.domain for t in tabs if t.domain))


def _is_internal(url: str) -> bool:
    return url.startswith(INTERNAL_URL_PREFIXES)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


async def collect_tab_metadata(
    browser: TabBrowser,
    scope: str = "current",
    *,
    respect_pinned: bool = True,
    respect_existing_groups: bool = False,
) -> list[TabRecord]:
    """Snapshot the tabs an organize run may touch.

    Internal browser pages are always skipped; pinned and already-grouped
    tabs are skipped when the matching option is set.
    """
    window_id = await browser.current_window_id() if scope == "current" else None
    tabs = await browser.query(window_id)

    collected = []
    for tab in tabs:
        if _is_internal(tab.url):
            continue
        if respect_pinned and tab.pinned:
            continue
        if respect_existing_groups and tab.existing_group_id is not None:
            continue
        if not tab.domain:
            tab = tab.model_copy(update={"domain": extract_domain(tab.url)})
        collected.append(tab)
    return collected


async def clear_tab_groups(browser: TabBrowser, scope: str = "current") -> ClearResult:
    """Ungroup every grouped tab in scope, one group at a time."""
    window_id = await browser.current_window_id() if scope == "current" else None
    tabs = await browser.query(window_id)

    by_group: dict[int, list[int]] = {}
    for tab in tabs:
        if tab.existing_group_id is not None:
            by_group.setdefault(tab.existing_group_id, []).append(tab.id)

    ungrouped = 0
    for group_id, tab_ids in by_group.items():
        try:
            await browser.ungroup(tab_ids)
            ungrouped += len(tab_ids)
        except Exception:
            logger.exception("Error ungrouping group %s", group_id)

    return ClearResult(groups_removed=len(by_group), tabs_ungrouped=ungrouped)


# ---------------------------------------------------------------------------
# In-memory registry
# ---------------------------------------------------------------------------


class InMemoryTabBrowser:
    """Live tab registry held in process memory.

    All operations complete without awaiting anything, so each one is atomic
    with respect to other coroutines on the same loop.
    """

    def __init__(
        self,
        tabs: Iterable[TabRecord] = (),
        current_window_id: int | None = None,
    ) -> None:
        self._tabs: dict[int, TabRecord] = {}
        self._groups: dict[int, LiveGroup] = {}
        self._group_ids = itertools.count(1)
        self._current_window_id = current_window_id
        self.replace(tabs, current_window_id)

    # -- Snapshot management --

    def replace(self, tabs: Iterable[TabRecord], current_window_id: int | None = None) -> None:
        """Replace the whole tab set. Groups whose tabs all vanished are dropped."""
        self._tabs = {t.id: t for t in tabs}
        self._current_window_id = current_window_id
        for group in list(self._groups.values()):
            group.tab_ids = [
                tid for tid in group.tab_ids
                if tid in self._tabs and self._tabs[tid].existing_group_id == group.id
            ]
        self._prune_groups()

    def close(self, tab_id: int) -> None:
        self._tabs.pop(tab_id, None)
        for group in self._groups.values():
            if tab_id in group.tab_ids:
                group.tab_ids.remove(tab_id)
        self._prune_groups()

    @property
    def tabs(self) -> list[TabRecord]:
        return list(self._tabs.values())

    @property
    def groups(self) -> list[LiveGroup]:
        return list(self._groups.values())

    def _prune_groups(self) -> None:
        for gid in [gid for gid, g in self._groups.items() if not g.tab_ids]:
            del self._groups[gid]

    def _set_group(self, tab_id: int, group_id: int | None) -> None:
        self._tabs[tab_id] = self._tabs[tab_id].model_copy(
            update={"existing_group_id": group_id}
        )

    # -- TabBrowser --

    async def query(self, window_id: int | None = None) -> list[TabRecord]:
        if window_id is None:
            return self.tabs
        return [t for t in self._tabs.values() if t.window_id == window_id]

    async def current_window_id(self) -> int | None:
        return self._current_window_id

    async def tab_exists(self, tab_id: int) -> bool:
        return tab_id in self._tabs

    async def group_tabs(self, tab_ids: list[int]) -> int:
        missing = [tid for tid in tab_ids if tid not in self._tabs]
        if missing:
            raise LookupError(f"No tab with id: {missing[0]}")
        if not tab_ids:
            raise ValueError("At least one tab id is required")

        for group in self._groups.values():
            group.tab_ids = [tid for tid in group.tab_ids if tid not in tab_ids]
        self._prune_groups()

        group_id = next(self._group_ids)
        self._groups[group_id] = LiveGroup(id=group_id, tab_ids=list(tab_ids))
        for tid in tab_ids:
            self._set_group(tid, group_id)
        return group_id

    async def set_group_appearance(self, group_id: int, title: str, color: str) -> None:
        group = self._groups.get(group_id)
        if group is None:
            raise LookupError(f"No group with id: {group_id}")
        group.title = title
        group.color = color
        group.collapsed = False

    async def ungroup(self, tab_ids: list[int]) -> None:
        for tid in tab_ids:
            if tid not in self._tabs:
                continue
            self._set_group(tid, None)
        for group in self._groups.values():
            group.tab_ids = [tid for tid in group.tab_ids if tid not in tab_ids]
        self._prune_groups()
