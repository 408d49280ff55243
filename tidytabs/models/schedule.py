"""Auto-organize schedule models."""

from __future__ import annotations

from pydantic import BaseModel, field_validator

MIN_INTERVAL_MINUTES = 2
MIN_RUN_SPACING_MS = 60_000


class ScheduleState(BaseModel):
    """Persisted auto-organize intent. Survives restarts; the timer does not."""

    enabled: bool = False
    interval_minutes: int = 5
    last_run_at_ms: int = 0

    @field_validator("interval_minutes", mode="before")
    @classmethod
    def clamp_interval(cls, v):
        try:
            return max(int(v), MIN_INTERVAL_MINUTES)
        except (TypeError, ValueError):
            return 5


class AutoOrganizeUpdate(BaseModel):
    """Enable or disable auto-organize (PUT /api/auto-organize)."""

    enabled: bool
    interval: int | None = None


class AutoOrganizeStatus(BaseModel):
    """Response for GET /api/auto-organize."""

    enabled: bool
    interval: int
    last_run: int
    next_run: int | None = None  # epoch ms
