"""
Tests for the execution loop.

Tests:
- Sequential, in-order execution
- Fail-fast on the first failing step
- Timeouts and implementer exceptions
- Persisted transitions and resumption
"""

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio

from task_orchestrator.artifacts.models import ArtifactKind, PlanDocument, StepStatus
from task_orchestrator.artifacts.store import ArtifactStore
from task_orchestrator.collaborators.base import ExecutionContext, ImplementationResult
from task_orchestrator.errors import StepFailedError
from task_orchestrator.orchestrator.executor import ExecutionLoop, LivePlan

from tests.helpers import ScriptedImplementer, assert_ordered, make_task


@pytest_asyncio.fixture
async def store(tmp_path: Path):
	async with ArtifactStore(tmp_path / "artifacts.db") as s:
		yield s


async def new_live(store: ArtifactStore, *steps: str) -> LivePlan:
	plan = PlanDocument.from_descriptions("task-1", list(steps))
	artifact = await store.put_plan(plan)
	return LivePlan(artifact=artifact, plan=plan)


async def all_revisions(store: ArtifactStore) -> list[PlanDocument]:
	return [
		PlanDocument.model_validate_json(a.content)
		for a in await store.list_by_task("task-1", ArtifactKind.PLAN)
	]


class TestSequentialExecution:
	"""Tests for ordered execution."""

	@pytest.mark.asyncio
	async def test_runs_every_step_in_order(self, store):
		live = await new_live(store, "one", "two", "three")
		implementer = ScriptedImplementer()

		await ExecutionLoop(store, implementer).run(live, ExecutionContext(task=make_task()))

		assert implementer.calls == ["one", "two", "three"]
		assert live.plan.is_complete()

	@pytest.mark.asyncio
	async def test_every_revision_respects_ordering(self, store):
		live = await new_live(store, "one", "two", "three", "four")

		await ExecutionLoop(store, ScriptedImplementer()).run(live, ExecutionContext(task=make_task()))

		revisions = await all_revisions(store)
		# initial + (start, done) per step
		assert len(revisions) == 1 + 2 * 4
		for revision in revisions:
			assert_ordered(revision)

	@pytest.mark.asyncio
	async def test_live_plan_tracks_latest_artifact(self, store):
		live = await new_live(store, "one")

		await ExecutionLoop(store, ScriptedImplementer()).run(live, ExecutionContext(task=make_task()))

		latest = await store.latest("task-1", ArtifactKind.PLAN)
		assert live.artifact == latest
		assert PlanDocument.model_validate_json(latest.content).revision_of is not None

	@pytest.mark.asyncio
	async def test_context_accumulates_completed_work(self, store):
		live = await new_live(store, "one", "two")
		implementer = ScriptedImplementer(produce={"one": ["src/one.py"]})
		context = ExecutionContext(task=make_task())

		await ExecutionLoop(store, implementer).run(live, context)

		assert context.completed_steps == ["one", "two"]
		assert context.produced_artifacts == ["src/one.py"]
		assert live.plan.get_step(1).produced_artifacts == ["src/one.py"]

	@pytest.mark.asyncio
	async def test_steps_never_overlap(self, store):
		live = await new_live(store, "one", "two", "three")
		running = 0
		peak = 0

		class SlowImplementer:
			async def apply(self, step_description, context):
				nonlocal running, peak
				running += 1
				peak = max(peak, running)
				await asyncio.sleep(0.01)
				running -= 1
				return ImplementationResult(success=True)

		await ExecutionLoop(store, SlowImplementer()).run(live, ExecutionContext(task=make_task()))

		assert peak == 1


class TestFailFast:
	"""Tests for halting on failure."""

	@pytest.mark.asyncio
	async def test_second_step_failure_halts_with_index_2(self, store):
		live = await new_live(store, "one", "two", "three")
		implementer = ScriptedImplementer(fail_steps=["two"])

		with pytest.raises(StepFailedError) as exc_info:
			await ExecutionLoop(store, implementer).run(live, ExecutionContext(task=make_task()))

		assert exc_info.value.index == 2
		assert "could not two" in exc_info.value.reason
		assert implementer.calls == ["one", "two"]
		assert [s.status for s in live.plan.steps] == [
			StepStatus.DONE,
			StepStatus.FAILED,
			StepStatus.PENDING,
		]

	@pytest.mark.asyncio
	async def test_failure_is_persisted(self, store):
		live = await new_live(store, "one", "two")

		with pytest.raises(StepFailedError):
			await ExecutionLoop(store, ScriptedImplementer(fail_steps=["one"])).run(
				live, ExecutionContext(task=make_task())
			)

		_, latest = await store.latest_plan("task-1")
		assert latest.get_step(1).status == StepStatus.FAILED
		assert latest.get_step(1).reason == "could not one"

	@pytest.mark.asyncio
	async def test_implementer_exception_is_a_step_failure(self, store):
		live = await new_live(store, "one")

		with pytest.raises(StepFailedError) as exc_info:
			await ExecutionLoop(store, ScriptedImplementer(raise_on=["one"])).run(
				live, ExecutionContext(task=make_task())
			)

		assert "RuntimeError" in exc_info.value.reason

	@pytest.mark.asyncio
	async def test_timeout_is_a_step_failure(self, store):
		live = await new_live(store, "one")

		class HangingImplementer:
			async def apply(self, step_description, context):
				await asyncio.sleep(10)

		with pytest.raises(StepFailedError) as exc_info:
			await ExecutionLoop(store, HangingImplementer(), step_timeout=0.05).run(
				live, ExecutionContext(task=make_task())
			)

		assert "timed out" in exc_info.value.reason
		assert live.plan.get_step(1).status == StepStatus.FAILED


class TestResume:
	"""Tests for continuing a partially executed plan."""

	@pytest.mark.asyncio
	async def test_rerun_skips_done_steps_and_retries_failed(self, store):
		live = await new_live(store, "one", "two", "three")
		implementer = ScriptedImplementer(fail_times={"two": 1})
		loop = ExecutionLoop(store, implementer)

		with pytest.raises(StepFailedError):
			await loop.run(live, ExecutionContext(task=make_task()))

		artifact, plan = await store.latest_plan("task-1")
		await loop.run(LivePlan(artifact=artifact, plan=plan), ExecutionContext(task=make_task()))

		assert implementer.calls == ["one", "two", "two", "three"]
		assert plan.is_complete()

	@pytest.mark.asyncio
	async def test_in_progress_step_restarts_without_new_transition(self, store):
		live = await new_live(store, "one", "two")
		live.plan.start_step(1)
		await live.save(store)
		implementer = ScriptedImplementer()

		await ExecutionLoop(store, implementer).run(live, ExecutionContext(task=make_task()))

		assert implementer.calls == ["one", "two"]
		assert live.plan.is_complete()
