"""Static checks on run definitions, before anything reaches the backend."""
from __future__ import annotations

from typing import TYPE_CHECKING

from story_mirror.engine.parameters import placeholders
from story_mirror.engine.runner import OUTCOMES

if TYPE_CHECKING:
    from story_mirror.types import RunDefinition, ScenarioDefinition, StoryDefinition


class ValidationError:
    def __init__(self, level: str, message: str, location: str | None = None):
        self.level = level  # "error" | "warning"
        self.message = message
        self.location = location

    def __str__(self):
        prefix = f"[{self.location}] " if self.location else ""
        return f"{self.level.upper()}: {prefix}{self.message}"


def validate_run(run: RunDefinition) -> list[ValidationError]:
    """Run all static checks on a run definition."""
    errors: list[ValidationError] = []

    if not run.stories:
        errors.append(ValidationError("error", "Run has no stories"))
        return errors

    seen: set[str] = set()
    for story in run.stories:
        if story.path and story.path in seen:
            errors.append(ValidationError(
                "warning", "Story appears twice and will be mirrored onto one item", story.path
            ))
        seen.add(story.path)
        errors.extend(_check_story(story))

    return errors


def format_errors(errors: list[ValidationError]) -> str:
    errs = [e for e in errors if e.level == "error"]
    warns = [e for e in errors if e.level == "warning"]
    lines: list[str] = []
    if errs:
        lines.append(f"  {len(errs)} error(s):")
        for e in errs:
            lines.append(f"    ✗ {e}")
    if warns:
        lines.append(f"  {len(warns)} warning(s):")
        for e in warns:
            lines.append(f"    ⚠ {e}")
    return "\n".join(lines)


# ─── Checks ───

def _check_story(story: StoryDefinition) -> list[ValidationError]:
    errors: list[ValidationError] = []
    if not story.path:
        errors.append(ValidationError("error", "Story has no path"))
    if not story.scenarios:
        errors.append(ValidationError("warning", "Story has no scenarios", story.path or None))
    for scenario in story.scenarios:
        errors.extend(_check_scenario(scenario, story.path))
    return errors


def _check_scenario(scenario: ScenarioDefinition, story_path: str) -> list[ValidationError]:
    errors: list[ValidationError] = []
    where = f"{story_path} / {scenario.title or '?'}"

    if not scenario.title:
        errors.append(ValidationError("error", "Scenario has no title", story_path))
    if not scenario.steps:
        errors.append(ValidationError("warning", "Scenario has no steps", where))

    seen: set[str] = set()
    for step in scenario.steps:
        if step.outcome not in OUTCOMES:
            errors.append(ValidationError("error", f'Unknown step outcome "{step.outcome}"', where))
        if step.name in seen:
            errors.append(ValidationError(
                "warning", f"Duplicate step text is mirrored onto one item: '{step.name}'", where
            ))
        seen.add(step.name)

    columns = {k for row in scenario.examples for k in row}
    if scenario.examples:
        for step in scenario.steps:
            missing = [p for p in placeholders(step.name) if p not in columns]
            if missing:
                errors.append(ValidationError(
                    "warning", f"No example column for {', '.join(missing)} in '{step.name}'", where
                ))

    for given in scenario.given:
        errors.extend(_check_story(given))

    return errors
