"""TidyTabs: group open tabs with an LLM and apply the grouping safely."""

__version__ = "1.0.0"
