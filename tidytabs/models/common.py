"""Shared response models used across all endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class SuccessResponse(BaseModel):
    """Generic success response with optional fields."""

    ok: bool = True
    cleared: bool | None = None
    tab_count: int | None = None
