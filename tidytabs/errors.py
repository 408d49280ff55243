"""Error taxonomy for organize runs.

Every error carries a stable ``kind`` string so the pipeline can turn it into
a structured ``OrganizeResult`` instead of letting it reach the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tidytabs.models.grouping import ApplicationResult


class TidyTabsError(Exception):
    """Base class for all errors surfaced by an organize run."""

    kind = "error"


class MalformedResponse(TidyTabsError):
    """The model output could not be turned into any valid group."""

    kind = "malformed_response"

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text[:200]


class NoSubjectsAvailable(TidyTabsError):
    """Fewer than two tabs are left to organize after filtering."""

    kind = "no_subjects"

    def __init__(self, tab_count: int) -> None:
        if tab_count == 0:
            message = "No tabs to organize. Try changing your scope or filter settings."
        else:
            message = "Only one tab available. Need at least 2 tabs to organize."
        super().__init__(message)
        self.tab_count = tab_count


class PartialApplicationFailure(TidyTabsError):
    """One or more groups failed to apply; the rest were kept."""

    kind = "partial_application"

    def __init__(self, result: ApplicationResult) -> None:
        failed = ", ".join(e.group for e in result.errors)
        super().__init__(
            f"Organized {result.tabs_grouped} tabs into {result.groups_created} groups, "
            f"but {len(result.errors)} group(s) failed: {failed}"
        )
        self.result = result


class ModelCallError(TidyTabsError):
    """Transport, auth or rate-limit failure from the model provider."""

    kind = "transport"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RunInProgress(TidyTabsError):
    """Another organize run is still active."""

    kind = "busy"

    def __init__(self) -> None:
        super().__init__("An organize run is already in progress. Try again shortly.")
