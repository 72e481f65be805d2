"""Mapping from a flag's long form to the configuration field that backs it."""

from __future__ import annotations

import re
from collections.abc import Mapping

DEFAULT_FIELD_OVERRIDES: dict[str, str] = {
    "json": "JSON",
    "jsonl": "JSONL",
    "help": "ShowHelp",
    "version": "ShowVersion",
    "config": "ConfigFile",
    "log-json": "LogJSON",
    "format": "OutputFormat",
    "csv": "CSV",
}

_SEPARATORS = re.compile(r"[-_\s]+")


def pascal_field_name(long_form: str) -> str:
    """Strip separators and capitalize each word: ``dry-run`` -> ``DryRun``."""
    return "".join(word[:1].upper() + word[1:] for word in _SEPARATORS.split(long_form) if word)


class FieldNameMapper:
    """Exact-match override table checked first, then a pure transform."""

    def __init__(self, overrides: Mapping[str, str] | None = None) -> None:
        self.overrides = dict(DEFAULT_FIELD_OVERRIDES)
        if overrides:
            self.overrides.update(overrides)

    def add_override(self, long_form: str, field_name: str) -> None:
        self.overrides[long_form] = field_name

    def __call__(self, long_form: str) -> str:
        return self.overrides.get(long_form) or pascal_field_name(long_form)
