"""Placeholder substitution for alert model subject/body templates."""

from __future__ import annotations

import re
from typing import Mapping

PLACEHOLDER_PATTERN = re.compile(r"{{\s*(\w+)\s*}}")


def render_template(template: str, context: Mapping[str, object]) -> str:
    """
    Replace ``{{ key }}`` placeholders with values from ``context``.

    Unknown keys render as an empty string: templates are edited
    independently of the fields a certificate exposes.
    """
    if not template:
        return ""

    def _substitute(match: re.Match[str]) -> str:
        value = context.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_substitute, template)


__all__ = ["PLACEHOLDER_PATTERN", "render_template"]
