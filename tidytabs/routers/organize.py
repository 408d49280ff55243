"""Organize routes: run, apply a preview, clear groups, stats, history."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from tidytabs.config import load_config
from tidytabs.errors import RunInProgress
from tidytabs.models.common import SuccessResponse
from tidytabs.models.run import (
    ApplyRequest,
    ClearRequest,
    ClearResult,
    HistoryEntry,
    OrganizeRequest,
    OrganizeResult,
    StatsResponse,
)
from tidytabs.state import AppState, get_state
from tidytabs.tabs import clear_tab_groups, collect_tab_metadata

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["organize"])


def _raise_if_busy(result: OrganizeResult) -> OrganizeResult:
    if result.error_kind == RunInProgress.kind:
        raise HTTPException(status_code=409, detail=result.error)
    return result


@router.post("/organize", response_model=OrganizeResult)
async def organize(body: OrganizeRequest | None = None, state: AppState = Depends(get_state)):
    body = body or OrganizeRequest()
    result = await state.pipeline.organize(scope=body.scope, mode=body.mode)
    return _raise_if_busy(result)


@router.post("/organize/context-menu", response_model=OrganizeResult)
async def organize_context_menu(state: AppState = Depends(get_state)):
    config = load_config()
    result = await state.pipeline.organize(scope=config.context_menu_scope, mode="instant")
    return _raise_if_busy(result)


@router.post("/apply", response_model=OrganizeResult)
async def apply(body: ApplyRequest, state: AppState = Depends(get_state)):
    if not body.groups:
        raise HTTPException(status_code=400, detail="No groups to apply")
    result = await state.pipeline.apply_groups(body.groups)
    return _raise_if_busy(result)


@router.post("/clear", response_model=ClearResult)
async def clear(body: ClearRequest | None = None, state: AppState = Depends(get_state)):
    scope = (body.scope if body else None) or load_config().scope
    return await clear_tab_groups(state.browser, scope)


@router.get("/stats", response_model=StatsResponse)
async def stats(state: AppState = Depends(get_state)):
    config = load_config()
    all_tabs = await collect_tab_metadata(state.browser, "all", respect_pinned=False)
    current_tabs = await collect_tab_metadata(state.browser, "current", respect_pinned=False)
    schedule = await state.scheduler.status()
    return StatsResponse(
        all_windows=len(all_tabs),
        current_window=len(current_tabs),
        has_api_key=state.has_api_key(config.model),
        scope=config.scope,
        mode=config.mode,
        auto_organize=schedule.enabled,
        auto_organize_interval=schedule.interval,
        last_auto_organize=schedule.last_run,
    )


@router.get("/history", response_model=list[HistoryEntry])
async def history(limit: int = 10, state: AppState = Depends(get_state)):
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be positive")
    return await state.history.recent(limit)


@router.delete("/history", response_model=SuccessResponse)
async def clear_history(state: AppState = Depends(get_state)):
    await state.history.clear()
    return {"ok": True, "cleared": True}
