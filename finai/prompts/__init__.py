"""Prompt templates for the agent and the background analysis loops.

Each template is a .txt file next to this module. Placeholders are written
{{name}}; a placeholder with no matching value is left as is.
"""
from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

_TEMPLATE_DIR = Path(__file__).resolve().parent
_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Template text by file name, e.g. "product_alternative.txt"."""
    return (_TEMPLATE_DIR / name).read_text(encoding="utf-8").strip()


def render_prompt(template: str, **values: object) -> str:
    def substitute(match: re.Match) -> str:
        key = match.group(1)
        return str(values[key]) if key in values else match.group(0)

    return _PLACEHOLDER.sub(substitute, template)


def build_prompt(name: str, **values: object) -> str:
    return render_prompt(load_prompt(name), **values)
