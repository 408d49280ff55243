"""One organize run: collect → prompt → call model → interpret → preview or apply.

Every run goes through a single-flight guard: while one run (manual,
context-menu or scheduled) is active, further triggers are rejected with
``RunInProgress`` instead of interleaving their tab-group mutations.

Errors never escape ``organize``/``apply_groups``; they come back as an
``OrganizeResult`` with ``success=False`` and an ``error_kind``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from tidytabs.applicator import GroupApplicator
from tidytabs.config import load_config
from tidytabs.errors import NoSubjectsAvailable, PartialApplicationFailure, RunInProgress, TidyTabsError
from tidytabs.interpreter import interpret
from tidytabs.models.config import AppConfig
from tidytabs.models.grouping import Group, Grouping
from tidytabs.models.run import OrganizeResult, PreviewGroup, PreviewTab
from tidytabs.models.tabs import TabRecord
from tidytabs.persistence import HistoryStore
from tidytabs.prompts import build_prompt, prompt_variables
from tidytabs.tabs import TabBrowser, collect_tab_metadata

logger = logging.getLogger(__name__)


class ModelCaller(Protocol):
    async def call(
        self,
        user_prompt: str,
        *,
        model: str,
        system_prompt: str = "",
        max_tokens: int = 4096,
    ) -> str: ...


def _failure(e: TidyTabsError) -> OrganizeResult:
    return OrganizeResult(success=False, error=str(e), error_kind=e.kind)


def _preview_groups(grouping: Grouping, tabs: list[TabRecord]) -> list[PreviewGroup]:
    by_id = {t.id: t for t in tabs}
    previews = []
    for group in grouping.groups:
        resolved = []
        for tid in group.tab_ids:
            tab = by_id.get(tid)
            if tab is None:
                resolved.append(PreviewTab(id=tid, title="Unknown"))
            else:
                resolved.append(PreviewTab(id=tid, title=tab.title, domain=tab.domain))
        previews.append(PreviewGroup(label=group.label, tab_ids=group.tab_ids, tabs=resolved))
    return previews


class OrganizePipeline:
    """Runs organize requests against a browser and a model."""

    def __init__(
        self,
        browser: TabBrowser,
        llm: ModelCaller,
        history: HistoryStore | None = None,
        config_loader: Callable[[], AppConfig] = load_config,
    ) -> None:
        self.browser = browser
        self.llm = llm
        self.history = history
        self.config_loader = config_loader
        self.applicator = GroupApplicator(browser)
        self._run_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._run_lock.locked()

    # ----- Entry points -----

    async def organize(
        self,
        scope: str | None = None,
        mode: str | None = None,
        *,
        is_auto: bool = False,
    ) -> OrganizeResult:
        """Run the full pipeline once. Auto runs always apply immediately."""
        if self._run_lock.locked():
            return _failure(RunInProgress())
        async with self._run_lock:
            try:
                config = self.config_loader()
                preview = not is_auto and (mode or config.mode) == "preview"
                return await self._organize(config, scope or config.scope, preview, is_auto)
            except TidyTabsError as e:
                logger.warning("Organize run failed (%s): %s", e.kind, e)
                return _failure(e)
            except Exception as e:
                logger.exception("Organize run failed unexpectedly")
                return OrganizeResult(
                    success=False,
                    error=str(e) or "An unexpected error occurred",
                    error_kind="unexpected",
                )

    async def apply_groups(self, groups: list[Group]) -> OrganizeResult:
        """Apply an explicit grouping, e.g. one the user accepted from a preview."""
        if self._run_lock.locked():
            return _failure(RunInProgress())
        async with self._run_lock:
            try:
                tab_count = sum(len(g.tab_ids) for g in groups)
                return await self._apply(groups, tab_count=tab_count, auto=False)
            except Exception as e:
                logger.exception("Applying groups failed")
                return OrganizeResult(success=False, error=str(e), error_kind="unexpected")

    # ----- Steps -----

    async def _organize(
        self,
        config: AppConfig,
        scope: str,
        preview: bool,
        is_auto: bool,
    ) -> OrganizeResult:
        tabs = await collect_tab_metadata(
            self.browser,
            scope,
            respect_pinned=config.respect_pinned,
            respect_existing_groups=config.respect_existing_groups,
        )
        if len(tabs) < 2:
            raise NoSubjectsAvailable(len(tabs))

        window_id = await self.browser.current_window_id()
        prompt = build_prompt(config.prompt_template, prompt_variables(tabs, window_id))
        logger.info("Organizing %d tabs (scope=%s, preview=%s, auto=%s)", len(tabs), scope, preview, is_auto)

        raw = await self.llm.call(
            prompt,
            model=config.model,
            system_prompt=config.system_prompt,
            max_tokens=config.max_tokens,
        )
        grouping = interpret(raw)

        if preview:
            return OrganizeResult(
                success=True,
                preview=True,
                groups=_preview_groups(grouping, tabs),
                tab_count=len(tabs),
                recovered=grouping.recovered,
            )
        return await self._apply(
            grouping.groups,
            tab_count=len(tabs),
            auto=is_auto,
            recovered=grouping.recovered,
        )

    async def _apply(
        self,
        groups: list[Group],
        *,
        tab_count: int,
        auto: bool,
        recovered: bool = False,
    ) -> OrganizeResult:
        result = await self.applicator.apply(groups)

        if self.history is not None:
            try:
                await self.history.add(groups, tab_count=tab_count, auto=auto)
            except (OSError, UnicodeError):
                logger.exception("Could not record organize history")

        outcome = OrganizeResult(
            success=result.success,
            applied=True,
            groups_created=result.groups_created,
            tabs_grouped=result.tabs_grouped,
            errors=result.errors,
            recovered=recovered,
            message=f"Organized {result.tabs_grouped} tabs into {result.groups_created} groups",
        )
        try:
            result.raise_for_errors()
        except PartialApplicationFailure as e:
            logger.warning("%s", e)
            outcome.message = str(e)
            outcome.error_kind = e.kind
        return outcome
