"""Shared fakes and helpers for task-orchestrator tests."""

from typing import Optional, Sequence

from task_orchestrator.artifacts.models import ContextHit, PlanDocument, StepStatus, Task
from task_orchestrator.collaborators.base import (
	CodeHit,
	ExecutionContext,
	ImplementationResult,
	TestOutcome,
)
from task_orchestrator.errors import ClarificationRequired, TaskNotFoundError


def make_task(
	task_id: str = "task-1",
	description: str = "Add login endpoint with token validation",
	reference: Optional[str] = None,
) -> Task:
	"""Create a resolved Task for testing."""
	return Task(
		id=task_id,
		raw_reference=reference or task_id,
		description=description,
		source_location=f"tasks/{task_id}.md",
	)


class StaticTaskRepository:
	"""Resolves references from a fixed mapping."""

	def __init__(self, *tasks: Task):
		self.tasks = {t.raw_reference: t for t in tasks}

	async def resolve(self, reference: str) -> Task:
		if reference not in self.tasks:
			raise TaskNotFoundError(f"Task not found: {reference}")
		return self.tasks[reference]


class StaticCodeRepository:
	"""Returns the same hits for every search and records the terms asked for."""

	def __init__(self, hits: Sequence[CodeHit] = (), error: Optional[Exception] = None):
		self.hits = list(hits)
		self.error = error
		self.searches: list[list[str]] = []

	async def search(self, terms):
		self.searches.append(list(terms))
		if self.error:
			raise self.error
		return list(self.hits)


class ListDecomposer:
	"""Returns a fixed list of steps, optionally asking questions first."""

	def __init__(
		self,
		steps: Sequence[str] = ("Write the code", "Write the tests", "Update the docs"),
		questions: Sequence[str] = (),
		error: Optional[Exception] = None,
	):
		self.steps = list(steps)
		self.questions = list(questions)
		self.error = error
		self.calls: list[dict] = []

	async def decompose(self, task: Task, context: Sequence[ContextHit], notes: Sequence[str] = ()) -> list[str]:
		self.calls.append({"task": task, "context": list(context), "notes": list(notes)})
		if self.error:
			raise self.error
		if len(notes) < len(self.questions):
			raise ClarificationRequired(self.questions[len(notes)])
		return list(self.steps)


class ScriptedImplementer:
	"""
	Succeeds on every step unless told otherwise.

	fail_steps: step descriptions that fail every time
	fail_times: step description -> number of leading calls that fail
	raise_on: step descriptions that raise instead of returning
	"""

	def __init__(
		self,
		fail_steps: Sequence[str] = (),
		fail_times: Optional[dict[str, int]] = None,
		raise_on: Sequence[str] = (),
		produce: Optional[dict[str, list[str]]] = None,
		on_apply=None,
	):
		self.fail_steps = set(fail_steps)
		self.fail_times = dict(fail_times or {})
		self.raise_on = set(raise_on)
		self.produce = produce or {}
		self.on_apply = on_apply
		self.calls: list[str] = []
		self.contexts: list[ExecutionContext] = []

	async def apply(self, step_description: str, context: ExecutionContext) -> ImplementationResult:
		self.calls.append(step_description)
		self.contexts.append(context)
		if self.on_apply:
			self.on_apply(step_description)
		if step_description in self.raise_on:
			raise RuntimeError(f"boom in {step_description}")
		if step_description in self.fail_steps:
			return ImplementationResult(success=False, summary=f"could not {step_description}")
		remaining = self.fail_times.get(step_description, 0)
		if remaining > 0:
			self.fail_times[step_description] = remaining - 1
			return ImplementationResult(success=False, summary=f"could not {step_description} yet")
		return ImplementationResult(
			success=True,
			produced_artifacts=self.produce.get(step_description, []),
		)


class ScriptedTestRunner:
	"""Plays back a list of pass/fail outcomes, repeating the last one."""

	def __init__(self, outcomes: Sequence[bool] = (True,), summary: str = "1 failed, 3 passed"):
		self.outcomes = list(outcomes)
		self.summary = summary
		self.calls = 0

	async def run(self) -> TestOutcome:
		passed = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
		self.calls += 1
		if passed:
			return TestOutcome(passed=True)
		return TestOutcome(passed=False, failure_summary=f"FAILED tests/test_app.py::test_login\n{self.summary}")


def assert_ordered(plan: PlanDocument):
	"""Assert no step is done while an earlier step is not done."""
	for earlier, later in zip(plan.steps, plan.steps[1:]):
		if later.status == StepStatus.DONE:
			assert earlier.status == StepStatus.DONE, (
				f"step {later.index} done while step {earlier.index} is {earlier.status.value}"
			)
	in_progress = [s for s in plan.steps if s.status == StepStatus.IN_PROGRESS]
	assert len(in_progress) <= 1
