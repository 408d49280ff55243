"""Live tab snapshot routes.

The browser-side client pushes its open tabs here and reads back the groups
an organize run created.
"""

import logging

from fastapi import APIRouter, Depends

from tidytabs.models.common import SuccessResponse
from tidytabs.models.tabs import LiveGroup, TabRecord, TabSnapshot
from tidytabs.state import AppState, get_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tabs"])


@router.put("/tabs", response_model=SuccessResponse)
async def put_tabs(body: TabSnapshot, state: AppState = Depends(get_state)):
    state.browser.replace(body.tabs, body.current_window_id)
    logger.debug("Tab snapshot replaced: %d tabs", len(body.tabs))
    return {"ok": True, "tab_count": len(body.tabs)}


@router.get("/tabs", response_model=list[TabRecord])
async def get_tabs(state: AppState = Depends(get_state)):
    return state.browser.tabs


@router.get("/groups", response_model=list[LiveGroup])
async def get_groups(state: AppState = Depends(get_state)):
    return state.browser.groups
