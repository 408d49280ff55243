"""Config routes: read, partial update, reset."""

from fastapi import APIRouter, HTTPException

from tidytabs.config import DEFAULT_CONFIG, load_config, save_config
from tidytabs.models.config import AppConfig, ConfigUpdate

router = APIRouter(prefix="/api", tags=["config"])


@router.get("/config", response_model=AppConfig)
async def get_config():
    return load_config()


@router.put("/config", response_model=AppConfig)
async def put_config(body: ConfigUpdate):
    updates = body.model_dump(exclude_none=True)
    if "prompt_template" in updates and "{{TAB_DATA}}" not in updates["prompt_template"]:
        raise HTTPException(status_code=400, detail="Prompt template must contain {{TAB_DATA}}")
    if updates.get("max_tokens", 1) < 1:
        raise HTTPException(status_code=400, detail="max_tokens must be positive")
    config = load_config().model_copy(update=updates)
    save_config(config)
    return config


@router.post("/config/reset", response_model=AppConfig)
async def reset_config():
    save_config(dict(DEFAULT_CONFIG))
    return DEFAULT_CONFIG
