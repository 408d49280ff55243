"""Apply a Grouping to the live tab set.

Application is best-effort and per group: a group whose tabs have all
closed is skipped, a group whose create/label call fails is recorded in
``errors``, and neither stops the remaining groups.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Collection
from typing import Protocol, Union

from tidytabs.models.grouping import ApplicationResult, Group, GroupError, Grouping
from tidytabs.palette import DEFAULT_COLOR, assign_colors

logger = logging.getLogger(__name__)

LiveTabs = Union[
    Collection[int],
    Callable[[int], bool],
    Callable[[int], Awaitable[bool]],
]


class TabMutator(Protocol):
    """The part of TabBrowser the applicator needs."""

    async def tab_exists(self, tab_id: int) -> bool: ...

    async def group_tabs(self, tab_ids: list[int]) -> int: ...

    async def set_group_appearance(self, group_id: int, title: str, color: str) -> None: ...


class GroupApplicator:
    """Creates display groups and colours them via the palette."""

    def __init__(self, mutator: TabMutator) -> None:
        self.mutator = mutator

    async def _is_live(self, tab_id: int, live: LiveTabs | None) -> bool:
        try:
            if live is None:
                return await self.mutator.tab_exists(tab_id)
            if callable(live):
                found = live(tab_id)
                if inspect.isawaitable(found):
                    found = await found
                return bool(found)
            return tab_id in live
        except Exception as e:
            # a lookup failure means the tab is gone
            logger.debug("Tab %s lookup failed: %s", tab_id, e)
            return False

    async def _apply_group(self, group: Group, color: str, live: LiveTabs | None) -> int:
        """Apply one group; return the number of tabs grouped (0 if skipped)."""
        valid = [tid for tid in group.tab_ids if await self._is_live(tid, live)]
        if not valid:
            logger.debug("Skipping group %r: no live tabs", group.label)
            return 0

        group_id = await self.mutator.group_tabs(valid)
        await self.mutator.set_group_appearance(group_id, group.label, color)
        return len(valid)

    async def apply(
        self,
        grouping: Grouping | list[Group],
        live_tab_ids: LiveTabs | None = None,
    ) -> ApplicationResult:
        """Apply every group independently.

        ``live_tab_ids`` may be a collection of ids, a (sync or async)
        predicate, or None to ask the mutator.
        """
        groups = grouping.groups if isinstance(grouping, Grouping) else list(grouping)
        colors = assign_colors([g.label for g in groups])
        result = ApplicationResult()

        for group in groups:
            if not group.tab_ids:
                continue
            try:
                grouped = await self._apply_group(
                    group, colors.get(group.label, DEFAULT_COLOR), live_tab_ids
                )
            except Exception as e:
                logger.warning("Failed to apply group %r: %s", group.label, e)
                result.errors.append(GroupError(group=group.label, error=str(e)))
                continue
            if grouped:
                result.groups_created += 1
                result.tabs_grouped += grouped

        return result
