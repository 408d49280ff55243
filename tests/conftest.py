"""Shared fixtures: isolated output dir, fake model, in-memory browser."""

import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="tidytabs-tests-")
os.environ.setdefault("TIDYTABS_OUTPUT_DIR", _tmp)
os.environ.setdefault("TIDYTABS_CONFIG", os.path.join(_tmp, "config.json"))

import pytest  # noqa: E402

from tidytabs.models.tabs import TabRecord  # noqa: E402
from tidytabs.tabs import InMemoryTabBrowser  # noqa: E402


class FakeLLM:
    """Stands in for LLMClient. Returns queued responses; the last one repeats."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def has_api_key(self, model=None):
        return True

    async def call(self, user_prompt, *, model, system_prompt="", max_tokens=4096):
        self.calls.append({"prompt": user_prompt, "model": model, "max_tokens": max_tokens})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_tab(tab_id, title=None, url=None, window_id=1, **kwargs):
    return TabRecord(
        id=tab_id,
        title=title or f"Tab {tab_id}",
        url=url or f"https://site{tab_id}.example.com/page",
        window_id=window_id,
        **kwargs,
    )


@pytest.fixture
def tabs():
    return [
        make_tab(1, "Python docs", "https://docs.python.org/3/"),
        make_tab(2, "PEP 8", "https://peps.python.org/pep-0008/"),
        make_tab(3, "BBC News", "https://www.bbc.co.uk/news"),
        make_tab(4, "Guardian", "https://www.theguardian.com/uk"),
    ]


@pytest.fixture
def browser(tabs):
    return InMemoryTabBrowser(tabs, current_window_id=1)
