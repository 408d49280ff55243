"""Auto-organize schedule routes."""

from fastapi import APIRouter, Depends

from tidytabs.config import load_config
from tidytabs.models.schedule import AutoOrganizeStatus, AutoOrganizeUpdate
from tidytabs.state import AppState, get_state

router = APIRouter(prefix="/api", tags=["auto-organize"])


@router.get("/auto-organize", response_model=AutoOrganizeStatus)
async def get_auto_organize(state: AppState = Depends(get_state)):
    return await state.scheduler.status()


@router.put("/auto-organize", response_model=AutoOrganizeStatus)
async def put_auto_organize(body: AutoOrganizeUpdate, state: AppState = Depends(get_state)):
    interval = body.interval or load_config().auto_organize_interval
    await state.scheduler.set_auto_organize(body.enabled, interval)
    return await state.scheduler.status()
