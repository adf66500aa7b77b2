"""Parse YAML run descriptions into a RunDefinition."""
from __future__ import annotations

import yaml

from story_mirror.types import (
    HookFailure,
    RunDefinition,
    ScenarioDefinition,
    StepDefinition,
    StoryDefinition,
)

# Outcome spellings accepted in run files -> runner outcome
OUTCOME_MAP = {
    "successful": "successful",
    "success": "successful",
    "passed": "successful",
    "pass": "successful",
    "failed": "failed",
    "fail": "failed",
    "pending": "pending",
    "ignorable": "ignorable",
    "ignored": "ignorable",
    "not_performed": "not_performed",
    "not-performed": "not_performed",
    "not performed": "not_performed",
}


def _normalize_outcome(raw) -> str:
    text = str(raw).strip().lower()
    return OUTCOME_MAP.get(text, text)


def _as_str(value) -> str:
    return "" if value is None else str(value)


def _parse_meta(raw, where: str) -> dict[str, str]:
    if raw is None:
        return {}
    if isinstance(raw, list):
        # Bare meta properties: [smoke, regression]
        return {_as_str(k): "" for k in raw}
    if not isinstance(raw, dict):
        raise ValueError(f'Invalid meta in {where}: expected a mapping or a list')
    return {_as_str(k): _as_str(v) for k, v in raw.items()}


def _parse_step(raw) -> StepDefinition:
    """A step is either plain text, ``{text: outcome}`` or a full mapping."""
    if isinstance(raw, str):
        return StepDefinition(name=raw)

    if not isinstance(raw, dict):
        raise ValueError(f"Invalid step: {raw!r}")

    if "name" in raw:
        return StepDefinition(
            name=_as_str(raw["name"]),
            outcome=_normalize_outcome(raw.get("outcome", "successful")),
            cause=_as_str(raw.get("cause")),
        )

    if len(raw) == 1:
        name, body = next(iter(raw.items()))
        if isinstance(body, dict):
            return StepDefinition(
                name=_as_str(name),
                outcome=_normalize_outcome(body.get("outcome", "successful")),
                cause=_as_str(body.get("cause")),
            )
        return StepDefinition(name=_as_str(name), outcome=_normalize_outcome(body or "successful"))

    raise ValueError(f"Invalid step: {raw!r}")


def _parse_hooks(raw, where: str) -> list[HookFailure]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f'Invalid hooks in {where}: expected a list')
    hooks: list[HookFailure] = []
    for item in raw:
        if isinstance(item, str):
            hooks.append(HookFailure(name=item))
        elif isinstance(item, dict) and "name" in item:
            hooks.append(HookFailure(name=_as_str(item["name"]), cause=_as_str(item.get("cause"))))
        else:
            raise ValueError(f"Invalid hook in {where}: {item!r}")
    return hooks


def _parse_examples(raw, where: str) -> list[dict[str, str]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f'Invalid examples in {where}: expected a list of rows')
    rows: list[dict[str, str]] = []
    for row in raw:
        if not isinstance(row, dict):
            raise ValueError(f"Invalid example row in {where}: {row!r}")
        rows.append({_as_str(k): _as_str(v) for k, v in row.items()})
    return rows


def _parse_scenario(raw, story_path: str) -> ScenarioDefinition:
    if isinstance(raw, str):
        raw = {"title": raw}
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid scenario in {story_path}: {raw!r}")

    title = _as_str(raw.get("title"))
    where = f"{story_path} / {title or 'untitled scenario'}"
    steps_raw = raw.get("steps") or []
    if not isinstance(steps_raw, list):
        raise ValueError(f'Invalid steps in {where}: expected a list')

    filter_raw = raw.get("filter")
    return ScenarioDefinition(
        title=title,
        meta=_parse_meta(raw.get("meta"), where),
        steps=[_parse_step(s) for s in steps_raw],
        examples=_parse_examples(raw.get("examples"), where),
        filter=None if filter_raw is None else _as_str(filter_raw),
        before=_parse_hooks(raw.get("before"), where),
        after=_parse_hooks(raw.get("after"), where),
        given=[_parse_story(g) for g in raw.get("given") or []],
    )


def _parse_story(raw) -> StoryDefinition:
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid story: {raw!r}")
    path = _as_str(raw.get("path"))
    scenarios_raw = raw.get("scenarios") or []
    if not isinstance(scenarios_raw, list):
        raise ValueError(f'Invalid scenarios in {path or "story"}: expected a list')
    return StoryDefinition(
        path=path,
        meta=_parse_meta(raw.get("meta"), path),
        scenarios=[_parse_scenario(s, path) for s in scenarios_raw],
        cancelled=bool(raw.get("cancelled", False)),
    )


def parse_run_yaml(content: str) -> RunDefinition:
    raw = yaml.safe_load(content)
    if not isinstance(raw, dict):
        raise ValueError("Invalid YAML: expected a mapping")

    stories_raw = raw.get("stories")
    if not isinstance(stories_raw, list):
        raise ValueError('Invalid run: missing "stories" list')

    return RunDefinition(
        stories=[_parse_story(s) for s in stories_raw],
        before_stories=_parse_hooks(raw.get("before_stories"), "before_stories"),
        after_stories=_parse_hooks(raw.get("after_stories"), "after_stories"),
    )
