"""Application config models: maps to config.json."""

from __future__ import annotations

from pydantic import BaseModel

from tidytabs.models.run import Mode, Scope

DEFAULT_PROMPT_TEMPLATE = (
    "Group these tabs by topic/domain. Create 2-7 groups max.\n\n"
    "{{TAB_DATA}}\n\n"
    "Output valid JSON only:\n"
    '{"groups":[{"label":"Short Name","tabIds":[1,2,3]}]}'
)


class AppConfig(BaseModel):
    """Full application config as persisted in config.json."""

    model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = 4096
    system_prompt: str = "You organize browser tabs into a few clearly named groups."
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE
    scope: Scope = "current"
    mode: Mode = "preview"
    context_menu_scope: Scope = "all"
    respect_pinned: bool = True
    respect_existing_groups: bool = False
    auto_organize_interval: int = 5


class ConfigUpdate(BaseModel):
    """Partial config update (PUT /api/config)."""

    model: str | None = None
    max_tokens: int | None = None
    system_prompt: str | None = None
    prompt_template: str | None = None
    scope: Scope | None = None
    mode: Mode | None = None
    context_menu_scope: Scope | None = None
    respect_pinned: bool | None = None
    respect_existing_groups: bool | None = None
    auto_organize_interval: int | None = None
