"""Typed application state.

Holds the collaborators every router needs. FastAPI routes receive this
via ``Depends(get_state)``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from tidytabs.config import OUTPUT_DIR
from tidytabs.llm import LLMClient
from tidytabs.persistence import HistoryStore, JsonStore, ScheduleStore
from tidytabs.pipeline import ModelCaller, OrganizePipeline
from tidytabs.scheduler import AsyncioTimer, OrganizeScheduler
from tidytabs.tabs import InMemoryTabBrowser
from tidytabs.tasks import BackgroundTaskManager


@dataclass
class AppState:
    """All long-lived objects of one service instance."""

    output_dir: str = OUTPUT_DIR
    browser: InMemoryTabBrowser = field(default_factory=InMemoryTabBrowser)
    llm: ModelCaller = field(default_factory=LLMClient)
    task_manager: BackgroundTaskManager = field(default_factory=BackgroundTaskManager)

    history: HistoryStore = field(init=False)
    schedule_store: ScheduleStore = field(init=False)
    pipeline: OrganizePipeline = field(init=False)
    scheduler: OrganizeScheduler = field(init=False)

    def __post_init__(self) -> None:
        self.history = HistoryStore(JsonStore(os.path.join(self.output_dir, "history.json")))
        self.schedule_store = ScheduleStore(JsonStore(os.path.join(self.output_dir, "schedule.json")))
        self.pipeline = OrganizePipeline(self.browser, self.llm, history=self.history)
        self.scheduler = OrganizeScheduler(
            self.pipeline,
            self.schedule_store,
            AsyncioTimer(self.task_manager),
        )

    def has_api_key(self, model: str | None = None) -> bool:
        check = getattr(self.llm, "has_api_key", None)
        return bool(check(model)) if check is not None else True


# ---------------------------------------------------------------------------
# Singleton + FastAPI dependency
# ---------------------------------------------------------------------------

_app_state: AppState | None = None


def get_state() -> AppState:
    """FastAPI dependency. Returns the singleton AppState."""
    global _app_state
    if _app_state is None:
        _app_state = AppState()
    return _app_state


def reset_state(state: AppState | None = None) -> AppState:
    """Install a fresh (or the given) AppState, for tests or app restart."""
    global _app_state
    _app_state = state or AppState()
    return _app_state
