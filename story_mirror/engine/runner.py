"""Replay a parsed run definition as engine lifecycle callbacks."""
from __future__ import annotations

from typing import TYPE_CHECKING

from story_mirror.engine.mapper import AFTER_STORIES, BEFORE_STORIES

if TYPE_CHECKING:
    from story_mirror.engine.mapper import StoryMapper
    from story_mirror.types import (
        HookFailure,
        RunDefinition,
        ScenarioDefinition,
        StepDefinition,
        StoryDefinition,
    )

OUTCOMES = frozenset({"successful", "failed", "pending", "ignorable", "not_performed"})


class Runner:
    """Plays the engine's part: one callback at a time, in story order."""

    def __init__(self, mapper: StoryMapper):
        self.mapper = mapper

    def run(self, run: RunDefinition) -> None:
        if run.before_stories:
            self._run_hook_suite(BEFORE_STORIES, run.before_stories)
        for story in run.stories:
            self.run_story(story)
        if run.after_stories:
            self._run_hook_suite(AFTER_STORIES, run.after_stories)

    def run_story(self, story: StoryDefinition, given: bool = False) -> None:
        m = self.mapper
        m.begin_suite(story.path, given=given, meta=story.meta)
        for scenario in story.scenarios:
            self.run_scenario(scenario)
        if story.cancelled:
            m.suite_cancelled()
        else:
            m.end_suite()

    def run_scenario(self, scenario: ScenarioDefinition) -> None:
        m = self.mapper
        m.begin_scenario(scenario.title, scenario.meta)
        if scenario.filter is not None:
            m.scenario_not_allowed(scenario, scenario.filter)
            m.end_scenario()
            return

        if scenario.examples:
            self._run_given(scenario)
            m.begin_examples(scenario.step_names, scenario.examples)
            for index, row in enumerate(scenario.examples):
                m.example_row(row, index)
                self._run_body(scenario)
            m.end_examples()
        else:
            # Before hooks run ahead of the given stories
            self._run_hooks(scenario.before)
            self._run_given(scenario)
            self._run_steps(scenario.steps, failed=bool(scenario.before))
            self._run_hooks(scenario.after)
        m.end_scenario()

    # ─── Private ───

    def _run_hook_suite(self, name: str, failures: list[HookFailure]) -> None:
        self.mapper.begin_suite(name)
        self._run_hooks(failures)
        self.mapper.end_suite()

    def _run_given(self, scenario: ScenarioDefinition) -> None:
        for given in scenario.given:
            self.run_story(given, given=True)

    def _run_hooks(self, failures: list[HookFailure]) -> None:
        for hook in failures:
            self.mapper.step_failed(hook.name, hook.cause or None)

    def _run_body(self, scenario: ScenarioDefinition) -> None:
        self._run_hooks(scenario.before)
        self._run_steps(scenario.steps, failed=bool(scenario.before))
        self._run_hooks(scenario.after)

    def _run_steps(self, steps: list[StepDefinition], failed: bool = False) -> None:
        m = self.mapper
        for step in steps:
            # Once something failed the engine stops performing steps
            if failed:
                m.step_not_performed(step.name)
                continue
            match step.outcome:
                case "successful":
                    m.begin_step(step.name)
                    m.step_successful(step.name)
                case "failed":
                    m.begin_step(step.name)
                    m.step_failed(step.name, step.cause or None)
                    failed = True
                case "pending":
                    m.step_pending(step.name)
                case "ignorable":
                    m.step_ignorable(step.name)
                case "not_performed":
                    m.step_not_performed(step.name)
                case _:
                    raise ValueError(f'Unknown outcome "{step.outcome}" for step: {step.name}')
