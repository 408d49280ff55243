"""Prompt building for organize runs."""

from __future__ import annotations

import json
from typing import Any

from tidytabs.models.tabs import TabRecord
from tidytabs.tabs import unique_domains


def build_prompt(template: str, variables: dict[str, Any]) -> str:
    """Replace every ``{{KEY}}`` in ``template``.

    Dicts and lists are rendered as indented JSON; everything else via str().
    """
    prompt = template
    for key, value in variables.items():
        if isinstance(value, (dict, list)):
            replacement = json.dumps(value, indent=2, ensure_ascii=False)
        else:
            replacement = str(value)
        prompt = prompt.replace("{{" + key + "}}", replacement)
    return prompt


def prompt_variables(tabs: list[TabRecord], window_id: int | None = None) -> dict[str, Any]:
    """Variables available to the prompt template."""
    return {
        "TAB_DATA": [t.prompt_view() for t in tabs],
        "TAB_COUNT": len(tabs),
        "DOMAINS": unique_domains(tabs),
        "WINDOW_ID": "" if window_id is None else window_id,
    }
