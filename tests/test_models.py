"""Tests for plan documents and orchestration models."""

import pytest
from pydantic import ValidationError

from task_orchestrator.artifacts.models import (
	OrchestrationPhase,
	PlanDocument,
	RunResult,
	StepStatus,
	Task,
)
from task_orchestrator.errors import InvalidTransitionError

from tests.helpers import make_task


def make_plan(*descriptions: str) -> PlanDocument:
	return PlanDocument.from_descriptions("task-1", list(descriptions or ("a", "b", "c")))


class TestTask:
	"""Tests for Task."""

	def test_task_is_immutable(self):
		task = make_task()
		with pytest.raises(ValidationError):
			task.description = "changed"

	def test_title_skips_headings_and_blank_lines(self):
		task = make_task(description="\n# Add login\n\n- [ ] do it")
		assert task.title == "Add login"

	def test_title_falls_back_to_id(self):
		task = Task(id="t-9", raw_reference="t-9", description="", source_location="x")
		assert task.title == "t-9"


class TestPlanDocument:
	"""Tests for step transitions and ordering."""

	def test_steps_are_one_based_and_pending(self):
		plan = make_plan()
		assert [s.index for s in plan.steps] == [1, 2, 3]
		assert all(s.status == StepStatus.PENDING for s in plan.steps)

	def test_happy_path_transitions(self):
		plan = make_plan()
		plan.start_step(1)
		plan.complete_step(1, ["src/app.py"])

		assert plan.steps[0].status == StepStatus.DONE
		assert plan.steps[0].produced_artifacts == ["src/app.py"]
		assert plan.next_step().index == 2

	def test_cannot_start_out_of_order(self):
		plan = make_plan()
		with pytest.raises(InvalidTransitionError):
			plan.start_step(2)

	def test_only_one_step_in_progress(self):
		plan = make_plan()
		plan.start_step(1)
		with pytest.raises(InvalidTransitionError):
			plan.start_step(1)
		assert plan.current_step().index == 1

	def test_cannot_complete_unstarted_step(self):
		plan = make_plan()
		with pytest.raises(InvalidTransitionError):
			plan.complete_step(1)

	def test_cannot_complete_after_lower_step_failed(self):
		plan = make_plan()
		plan.start_step(1)
		plan.fail_step(1, "broke")
		plan.steps[1].status = StepStatus.IN_PROGRESS

		with pytest.raises(InvalidTransitionError):
			plan.complete_step(2)

	def test_failed_step_can_be_restarted(self):
		plan = make_plan()
		plan.start_step(1)
		plan.fail_step(1, "broke")

		plan.start_step(1)

		step = plan.get_step(1)
		assert step.status == StepStatus.IN_PROGRESS
		assert step.reason is None

	def test_unknown_step_raises(self):
		with pytest.raises(InvalidTransitionError):
			make_plan().get_step(9)

	def test_append_step_continues_numbering(self):
		plan = make_plan()
		step = plan.append_step("fix it", repair=True)
		assert step.index == 4
		assert step.repair

	def test_is_complete_and_progress(self):
		plan = make_plan("a", "b")
		assert not plan.is_complete()
		for i in (1, 2):
			plan.start_step(i)
			plan.complete_step(i)

		assert plan.is_complete()
		assert plan.get_progress()["percent_complete"] == 100.0

	def test_empty_plan_is_not_complete(self):
		assert not PlanDocument(task_id="t").is_complete()

	def test_round_trips_through_json(self):
		plan = make_plan()
		plan.start_step(1)
		restored = PlanDocument.model_validate_json(plan.model_dump_json())
		assert restored == plan

	def test_markdown_marks_status(self):
		plan = make_plan("write code", "write tests")
		plan.start_step(1)
		plan.complete_step(1)
		md = plan.to_markdown()
		assert "- [x] 1. write code" in md
		assert "- [ ] 2. write tests" in md


class TestRunResultAndPhase:
	"""Tests for run results and phases."""

	def test_run_result_is_immutable(self):
		result = RunResult(task_id="t", attempt=1, passed=True)
		with pytest.raises(ValidationError):
			result.passed = False

	def test_terminal_phases(self):
		assert OrchestrationPhase.SUCCEEDED.is_terminal
		assert OrchestrationPhase.FAILED.is_terminal
		assert not OrchestrationPhase.BLOCKED.is_terminal
