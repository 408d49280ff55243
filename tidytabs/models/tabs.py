"""Tab snapshot models: what the collector hands to an organize run."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TabRecord(BaseModel):
    """Read-only snapshot of one open tab."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    title: str = ""
    url: str = ""
    domain: str = ""
    pinned: bool = False
    existing_group_id: int | None = Field(default=None, alias="groupId")
    window_id: int | None = Field(default=None, alias="windowId")
    index: int = 0

    def prompt_view(self) -> dict:
        """The subset of fields sent to the model."""
        return {"id": self.id, "title": self.title, "url": self.url, "domain": self.domain}


class TabSnapshot(BaseModel):
    """Full replacement of the live tab set (PUT /api/tabs)."""

    tabs: list[TabRecord]
    current_window_id: int | None = Field(default=None, alias="currentWindowId")

    model_config = ConfigDict(populate_by_name=True)


class LiveGroup(BaseModel):
    """A display group that exists in the live registry."""

    id: int
    title: str = ""
    color: str = "grey"
    collapsed: bool = False
    tab_ids: list[int] = Field(default_factory=list, alias="tabIds")

    model_config = ConfigDict(populate_by_name=True)
