"""Story mapper state machine, driven callback by callback.

Covers:
- End-to-end story with a passing and a failing step
- Reuse of nodes for repeated identities
- Pending / ignorable / not-performed steps synthesized without begin_step
- Cancellation and filtered (not allowed) scenarios
- No-op guards for callbacks with nothing open
- Nested (given) stories and the final straggler sweep
"""
from __future__ import annotations

import pytest

from story_mirror.engine.mapper import NOT_PERFORMED_MESSAGE, PENDING_MESSAGE, StructureError
from story_mirror.types import LogLevel, NodeType, Outcome, ScenarioDefinition, StepDefinition

# ===============================================================
# End to end
# ===============================================================


def test_story_with_passing_and_failing_step(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_step("St1")
    m.step_successful("St1")
    m.begin_step("St2")
    m.step_failed("St2", RuntimeError("boom"))
    m.end_scenario()
    m.end_suite()

    assert h.names == ["S", "Sc", "St1", "St2"]
    assert [c.request.type for c in h.port.created] == [
        NodeType.STORY, NodeType.SCENARIO, NodeType.STEP, NodeType.STEP,
    ]
    assert h.status("St1") == "PASSED"
    assert h.status("St2") == "FAILED"
    assert h.status("Sc") == "FAILED"
    assert h.status("S") == "FAILED"

    logs = h.logs("St2")
    assert len(logs) == 1
    assert logs[0].level is LogLevel.ERROR
    assert "RuntimeError: boom" in logs[0].message
    assert h.logs("St1") == []

    assert m.depth == 0
    assert h.parent_name("St1") == "Sc"
    assert h.parent_name("Sc") == "S"
    assert h.item("S").parent_id == h.launch.handle.result()


def test_finish_order_is_bottom_up(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_step("St")
    m.step_successful("St")
    m.end_scenario()
    m.end_suite()

    by_id = {c.id: c.request.name for c in h.port.created}
    assert [by_id[f.id] for f in h.port.finished] == ["St", "Sc", "S"]


def test_code_references(harness):
    h = harness
    m = h.mapper
    m.begin_suite("stories/DummyScenario.story")
    m.begin_scenario("The scenario")
    for step in ("Given I have empty step", "Then I have another empty step"):
        m.begin_step(step)
        m.step_successful(step)
    m.end_scenario()
    m.end_suite()

    refs = [c.request.code_ref for c in h.port.created]
    scenario_ref = "stories/DummyScenario.story/[SCENARIO:The scenario]"
    assert refs == [
        "stories/DummyScenario.story",
        scenario_ref,
        scenario_ref + "/[STEP:Given I have empty step]",
        scenario_ref + "/[STEP:Then I have another empty step]",
    ]
    # Steps without parameters use their code reference as case id
    assert h.item("Given I have empty step").request.test_case_id == refs[2]


def test_empty_story_passes(harness):
    h = harness
    h.mapper.begin_suite("S")
    h.mapper.end_suite()
    assert h.status("S") == "PASSED"


# ===============================================================
# Identity reuse
# ===============================================================


def test_repeated_step_text_collapses_onto_one_item(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_step("Given x")
    m.step_successful("Given x")
    m.begin_step("Given x")
    m.step_successful("Given x")
    m.end_scenario()
    m.end_suite()

    assert len(h.created_of(NodeType.STEP)) == 1
    assert len(h.finishes_of(NodeType.STEP)) == 1
    assert m.depth == 0


def test_repeated_story_reuses_root_item(harness):
    h = harness
    m = h.mapper
    for _ in range(2):
        m.begin_suite("S")
        m.begin_scenario("Sc")
        m.end_scenario()
        m.end_suite()
    assert h.names == ["S", "Sc"]
    assert len(h.port.finished) == 2


# ===============================================================
# Step outcomes reported without begin_step
# ===============================================================


def test_pending_step_is_synthesized_and_skipped(harness):
    h = harness
    m = h.mapper
    m.begin_suite("stories/status/SkippedScenario.story")
    m.begin_scenario("Pending")
    m.step_pending("Given I have a step without implementation")
    m.end_scenario()
    m.end_suite()

    step = "Given I have a step without implementation"
    assert h.status(step) == "SKIPPED"
    logs = h.logs(step)
    assert [(e.level, e.message) for e in logs] == [(LogLevel.WARN, PENDING_MESSAGE)]
    assert h.status("Pending") == "SKIPPED"
    assert h.status("stories/status/SkippedScenario.story") == "SKIPPED"


def test_not_performed_step_logs_warning(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.step_not_performed("Then nothing")
    m.end_scenario()
    m.end_suite()

    assert h.status("Then nothing") == "SKIPPED"
    assert [(e.level, e.message) for e in h.logs("Then nothing")] == [
        (LogLevel.WARN, NOT_PERFORMED_MESSAGE),
    ]


def test_ignorable_step_after_begin_is_not_duplicated(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_step("!-- a comment")
    m.step_ignorable("!-- a comment")
    m.end_scenario()
    m.end_suite()

    assert h.names == ["S", "Sc", "!-- a comment"]
    assert h.status("!-- a comment") == "SKIPPED"
    assert h.logs("!-- a comment") == []


def test_dangling_step_is_skipped_by_next_step(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_step("Given a")
    m.begin_step("Given b")
    m.step_successful("Given b")
    m.end_scenario()
    m.end_suite()

    assert h.status("Given a") == "SKIPPED"
    assert h.status("Given b") == "PASSED"
    assert h.status("Sc") == "PASSED"


def test_skipped_steps_marked_not_issue(harness_factory):
    h = harness_factory(skipped_an_issue=False)
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.step_pending("Given nothing")
    m.end_scenario()
    m.end_suite()

    issues = {f.id: f.request.issue for f in h.port.finished}
    assert issues[h.item("Given nothing").id] == "NOT_ISSUE"
    assert issues[h.item("Sc").id] is None


# ===============================================================
# Cancellation and filtering
# ===============================================================


def test_cancelled_story_skips_everything_open(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_step("Given a slow step")
    m.suite_cancelled()

    assert h.status("Given a slow step") == "SKIPPED"
    assert h.status("Sc") == "SKIPPED"
    assert h.status("S") == "SKIPPED"
    assert m.depth == 0


def test_cancellation_bypasses_fold(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_step("Given a")
    m.step_failed("Given a", "boom")
    m.end_scenario()
    m.suite_cancelled()

    assert h.status("Sc") == "FAILED"
    assert h.status("S") == "SKIPPED"


def test_scenario_not_allowed_without_examples(harness):
    h = harness
    m = h.mapper
    scenario = ScenarioDefinition(
        title="Filtered",
        steps=[StepDefinition("Given a"), StepDefinition("Then b")],
    )
    m.begin_suite("S")
    m.begin_scenario("Filtered")
    m.scenario_not_allowed(scenario, "-skip")
    m.end_scenario()
    m.end_suite()

    assert h.names == ["S", "Filtered", "Given a", "Then b"]
    assert [f.request.status for f in h.port.finished] == [Outcome.SKIPPED] * 4
    assert [(e.level, e.message) for e in h.logs("Filtered")] == [
        (LogLevel.INFO, "Scenario not allowed by filter: -skip"),
    ]


def test_scenario_not_allowed_fans_out_examples(harness):
    h = harness
    m = h.mapper
    steps = ["Given <a>", "When <b>", "Then <a> and <b>", "And done"]
    scenario = ScenarioDefinition(
        title="Filtered table",
        steps=[StepDefinition(s) for s in steps],
        examples=[{"a": "1", "b": "2"}, {"a": "3", "b": "4"}],
    )
    m.begin_suite("S")
    m.begin_scenario("Filtered table")
    m.scenario_not_allowed(scenario, "-skip")
    m.end_scenario()
    m.end_suite()

    step_finishes = h.finishes_of(NodeType.STEP)
    row_finishes = h.finishes_of(NodeType.EXAMPLE)
    scenario_finishes = h.finishes_of(NodeType.SCENARIO)
    assert len(step_finishes) == 8
    assert len(row_finishes) == 2
    assert len(scenario_finishes) == 1
    for f in step_finishes + row_finishes + scenario_finishes:
        assert f.request.status is Outcome.SKIPPED
    assert h.status("S") == "SKIPPED"
    assert h.status("Then 3 and 4") == "SKIPPED"
    assert m.depth == 0


def test_scenario_not_allowed_begins_scenario_if_needed(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.scenario_not_allowed(ScenarioDefinition(title="Never started", steps=[StepDefinition("x")]))
    m.end_suite()

    assert h.status("Never started") == "SKIPPED"
    assert h.logs("Never started") == []


# ===============================================================
# Guards
# ===============================================================


def test_callbacks_with_nothing_open_are_ignored(harness):
    h = harness
    m = h.mapper
    m.step_successful("x")
    m.end_scenario()
    m.end_examples()
    m.end_suite()
    m.suite_cancelled()
    m.begin_scenario("orphan")
    m.begin_step("orphan step")
    m.step_failed(None, "nowhere to go")
    assert h.port.created == []
    assert h.port.finished == []
    assert h.port.logs == []


def test_example_row_without_scenario_is_ignored(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.example_row({"a": "1"}, 0)
    m.end_suite()
    assert h.names == ["S"]


def test_step_outside_scenario_hangs_off_story(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_step("Given a lifecycle step")
    m.step_successful()
    m.end_suite()
    assert h.parent_name("Given a lifecycle step") == "S"
    assert h.status("S") == "PASSED"


# ===============================================================
# Scenario meta
# ===============================================================


def test_scenario_title_expanded_from_meta(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S", meta={"env": "qa"})
    m.begin_scenario("Login on <env>", meta={"id": "T-1"})
    m.begin_step("Given a user")
    m.step_successful()
    m.end_scenario()
    m.end_suite()

    scenario = h.item("Login on qa").request
    assert scenario.code_ref == "S/[SCENARIO:Login on <env>]"
    assert scenario.description == "env:qa id:T-1"
    assert [(a.key, a.value) for a in scenario.attributes] == [("id", "T-1")]
    assert h.item("Given a user").request.description == "env:qa id:T-1"
    assert [(a.key, a.value) for a in h.item("S").request.attributes] == [("env", "qa")]


# ===============================================================
# Given stories
# ===============================================================


def test_given_story_nests_under_current_scenario(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_suite("G", given=True)
    m.begin_scenario("Gs")
    m.begin_step("Given inner")
    m.step_failed("Given inner", "inner failure")
    m.end_scenario()
    m.end_suite()
    m.begin_step("Then outer")
    m.step_successful("Then outer")
    m.end_scenario()
    m.end_suite()

    assert h.parent_name("G") == "Sc"
    assert h.parent_name("Then outer") == "Sc"
    assert h.item("G").request.code_ref == "S/[SCENARIO:Sc]/[STORY:G]"
    assert h.item("Given inner").request.code_ref == "S/[SCENARIO:Sc]/[STORY:G]/[SCENARIO:Gs]/[STEP:Given inner]"
    assert h.status("G") == "FAILED"
    assert h.status("Sc") == "FAILED"
    assert m.depth == 0


def test_given_story_without_scenario_hangs_off_story(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_suite("G", given=True)
    m.end_suite()
    m.end_suite()
    assert h.parent_name("G") == "S"


def test_end_scenario_with_given_story_open_fails_fast(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_suite("G", given=True)

    with pytest.raises(StructureError, match="still open"):
        m.end_scenario()
    assert m.current_path() == ["S", "Sc", "G"]
    assert h.port.finished == []


def test_filtered_scenario_in_given_story_then_end_scenario(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.begin_suite("G", given=True)
    m.scenario_not_allowed(ScenarioDefinition(title="Gs", steps=[StepDefinition("Given a")]), "-skip")
    m.end_scenario()
    m.end_suite()
    m.end_scenario()
    m.end_suite()

    assert h.status("Gs") == "SKIPPED"
    assert h.status("G") == "SKIPPED"
    assert h.status("Sc") == "SKIPPED"
    assert m.depth == 0


def test_given_story_closes_open_hook_frame(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    m.step_failed("@BeforeScenario login", "no session")
    m.begin_suite("G", given=True)
    m.end_suite()
    m.end_scenario()
    m.end_suite()

    assert h.parent_name("G") == "Sc"
    by_id = {c.id: c.request.name for c in h.port.created}
    assert [by_id[f.id] for f in h.port.finished][:2] == ["@BeforeScenario login", "Before scenario"]


# ===============================================================
# Run end
# ===============================================================


def test_finish_closes_stragglers(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.begin_scenario("Sc")
    assert m.current_path() == ["S", "Sc"]

    assert m.finish() is False
    assert h.status("Sc") == "FAILED"
    assert h.status("S") == "FAILED"
    assert h.port.finished_launches == [h.launch.handle.result()]
    assert m.depth == 0


def test_finish_after_clean_run(harness):
    h = harness
    m = h.mapper
    m.begin_suite("S")
    m.end_suite()
    assert m.finish() is True
    m.finish()
    assert len(h.port.finished_launches) == 1
