"""Organize-run request/response models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from tidytabs.models.grouping import Group, GroupError

Scope = Literal["current", "all"]
Mode = Literal["preview", "instant"]


class OrganizeRequest(BaseModel):
    """Start a run (POST /api/organize). Unset fields fall back to config."""

    scope: Scope | None = None
    mode: Mode | None = None


class ApplyRequest(BaseModel):
    """Apply a previously previewed grouping (POST /api/apply)."""

    groups: list[Group]


class ClearRequest(BaseModel):
    scope: Scope | None = None


class PreviewTab(BaseModel):
    id: int
    title: str
    domain: str | None = None


class PreviewGroup(Group):
    """A proposed group with its tabs resolved against the collected snapshot."""

    tabs: list[PreviewTab] = Field(default_factory=list)


class OrganizeResult(BaseModel):
    """Structured outcome of one run; never raised, always returned."""

    success: bool
    preview: bool = False
    applied: bool = False
    groups: list[PreviewGroup] | None = None
    tab_count: int | None = None
    groups_created: int = 0
    tabs_grouped: int = 0
    errors: list[GroupError] = Field(default_factory=list)
    recovered: bool = False
    message: str | None = None
    error: str | None = None
    error_kind: str | None = None


class ClearResult(BaseModel):
    success: bool = True
    groups_removed: int = 0
    tabs_ungrouped: int = 0


class HistoryEntry(BaseModel):
    """One applied run, newest first in the history list."""

    groups: list[Group]
    tab_count: int
    auto: bool = False
    timestamp: int  # epoch ms


class StatsResponse(BaseModel):
    all_windows: int
    current_window: int
    has_api_key: bool
    scope: str
    mode: str
    auto_organize: bool
    auto_organize_interval: int
    last_auto_organize: int
