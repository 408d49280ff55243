"""Grouping models: validated model output and the result of applying it."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from tidytabs.errors import PartialApplicationFailure


class Group(BaseModel):
    """One named group of tab ids.

    ``label`` is trimmed and must be non-empty; ``tab_ids`` keeps first-seen
    order with duplicates removed.
    """

    model_config = ConfigDict(populate_by_name=True)

    label: str
    tab_ids: list[int] = Field(default_factory=list, alias="tabIds")

    @field_validator("label")
    @classmethod
    def strip_label(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("label must be a non-empty string")
        return v

    @field_validator("tab_ids")
    @classmethod
    def dedupe_tab_ids(cls, v: list[int]) -> list[int]:
        return list(dict.fromkeys(v))


class Grouping(BaseModel):
    """Ordered groups recovered from one model response.

    ``recovered`` is set when the groups came from partial recovery of a
    truncated response rather than a clean parse.
    """

    groups: list[Group]
    recovered: bool = False

    @property
    def labels(self) -> list[str]:
        return [g.label for g in self.groups]


class GroupError(BaseModel):
    """A single group that failed to apply."""

    group: str
    error: str


class ApplicationResult(BaseModel):
    """Outcome of applying a Grouping to the live tab set."""

    groups_created: int = 0
    tabs_grouped: int = 0
    errors: list[GroupError] = Field(default_factory=list)

    @computed_field
    @property
    def success(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise PartialApplicationFailure if any group failed."""
        if self.errors:
            raise PartialApplicationFailure(self)
