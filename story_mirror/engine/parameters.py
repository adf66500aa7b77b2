"""Placeholder expansion for <key> tokens in step and scenario text."""
from __future__ import annotations

import re

from story_mirror.types import ItemAttribute, Parameter

PLACEHOLDER_RE = re.compile(r"<(.*?)>")

KEY_VALUE_SEPARATOR = ":"
META_SEPARATOR = " "


def expand(template: str, row: dict[str, str]) -> tuple[str, list[Parameter]]:
    """Substitute row values into ``template``.

    Returns the substituted text and the (key, value) pairs that were used,
    in order of occurrence. A key used twice is recorded twice; tokens with
    no matching column are left as they are.
    """
    used: list[Parameter] = []

    def replacer(m: re.Match) -> str:
        key = m.group(1)
        if key not in row:
            return m.group(0)
        value = row[key]
        used.append(Parameter(key, value))
        return value

    return PLACEHOLDER_RE.sub(replacer, template), used


def placeholders(template: str) -> list[str]:
    return PLACEHOLDER_RE.findall(template)


def format_row_name(row: dict[str, str]) -> str:
    body = "; ".join(f"{k}: {v}" for k, v in row.items())
    return f"Example: [{body}]"


def format_row_reference(row: dict[str, str]) -> str:
    body = ";".join(f"{k}{KEY_VALUE_SEPARATOR}{v}" for k, v in row.items())
    return f"[{body}]"


def case_id(code_ref: str, params: list[Parameter]) -> str:
    if not params:
        return code_ref
    return code_ref + "[" + ",".join(p.value for p in params) + "]"


# ─── Story / scenario meta ───

def merge_meta(*metas: dict[str, str] | None) -> dict[str, str]:
    merged: dict[str, str] = {}
    for meta in metas:
        if meta:
            merged.update(meta)
    return merged


def join_meta(meta: dict[str, str] | None) -> str:
    if not meta:
        return ""
    return META_SEPARATOR.join(
        f"{k}{KEY_VALUE_SEPARATOR}{v}" if v else k for k, v in meta.items()
    )


def meta_attributes(meta: dict[str, str] | None) -> list[ItemAttribute]:
    # A bare meta property is a tag: value only, no key
    if not meta:
        return []
    return [ItemAttribute(k, v) if v else ItemAttribute(None, k) for k, v in meta.items()]
