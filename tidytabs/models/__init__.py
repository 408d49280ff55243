"""Pydantic v2 models for TidyTabs API types."""

from tidytabs.models.common import SuccessResponse
from tidytabs.models.config import AppConfig, ConfigUpdate
from tidytabs.models.grouping import ApplicationResult, Group, GroupError, Grouping
from tidytabs.models.run import (
    ApplyRequest,
    ClearRequest,
    ClearResult,
    HistoryEntry,
    OrganizeRequest,
    OrganizeResult,
    PreviewGroup,
    PreviewTab,
    StatsResponse,
)
from tidytabs.models.schedule import AutoOrganizeStatus, AutoOrganizeUpdate, ScheduleState
from tidytabs.models.tabs import LiveGroup, TabRecord, TabSnapshot

__all__ = [
    # common
    "SuccessResponse",
    # config
    "AppConfig",
    "ConfigUpdate",
    # grouping
    "ApplicationResult",
    "Group",
    "GroupError",
    "Grouping",
    # run
    "ApplyRequest",
    "ClearRequest",
    "ClearResult",
    "HistoryEntry",
    "OrganizeRequest",
    "OrganizeResult",
    "PreviewGroup",
    "PreviewTab",
    "StatsResponse",
    # schedule
    "AutoOrganizeStatus",
    "AutoOrganizeUpdate",
    "ScheduleState",
    # tabs
    "LiveGroup",
    "TabRecord",
    "TabSnapshot",
]
