"""
Verification Loop - Independent test gate with bounded repair.

Key Principle: a task is done when the test runner says so, not when
the implementer says so. Failed runs feed their summary back as a
repair step on the current plan, up to max_attempts runs in total.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from ..artifacts.models import ArtifactKind, OrchestrationPhase, RunResult, StepStatus
from ..artifacts.store import ArtifactStore
from ..collaborators.base import ExecutionContext, TestRunner
from ..errors import StepFailedError, VerificationExhaustedError
from .executor import ExecutionLoop, LivePlan

logger = logging.getLogger(__name__)

REPAIR_PREFIX = "Resolve verification failure"
REPAIR_SUMMARY_CHARS = 200

PhaseCallback = Callable[[OrchestrationPhase, int], Awaitable[None]]


def summarize_failure(summary: Optional[str]) -> str:
	"""First meaningful line of a failure summary, shortened for a step title."""
	if not summary:
		return "tests failed"
	lines = [line.strip() for line in summary.splitlines() if line.strip()]
	# pytest puts the useful line ("N failed, M passed") last
	line = lines[-1] if lines else "tests failed"
	if len(line) > REPAIR_SUMMARY_CHARS:
		line = line[:REPAIR_SUMMARY_CHARS - 3] + "..."
	return line


@dataclass
class VerificationOutcome:
	"""Result of a verification loop that ended in a pass."""
	passed: bool
	results: list[RunResult] = field(default_factory=list)

	@property
	def attempts(self) -> int:
		return len(self.results)


class VerificationLoop:
	"""
	Runs the test suite and drives repair until it passes or the budget
	runs out.
	"""

	def __init__(
		self,
		store: ArtifactStore,
		test_runner: TestRunner,
		executor: ExecutionLoop,
		run_timeout: Optional[float] = None,
	):
		"""
		Initialize the verification loop.

		Args:
			store: Artifact store receiving run results and plan revisions
			test_runner: Collaborator that runs the full test suite
			executor: Execution loop used to run repair steps
			run_timeout: Deadline in seconds per test run
		"""
		self.store = store
		self.test_runner = test_runner
		self.executor = executor
		self.run_timeout = run_timeout

	async def run_once(self, task_id: str, attempt: int) -> RunResult:
		"""Run the test suite once and persist the result."""
		try:
			outcome = await asyncio.wait_for(self.test_runner.run(), timeout=self.run_timeout)
		except asyncio.TimeoutError:
			result = RunResult(
				task_id=task_id,
				attempt=attempt,
				passed=False,
				failure_summary=f"Test run timed out after {self.run_timeout}s",
			)
		except Exception as e:
			result = RunResult(
				task_id=task_id,
				attempt=attempt,
				passed=False,
				failure_summary=f"Test runner error: {type(e).__name__}: {e}",
			)
		else:
			result = RunResult(
				task_id=task_id,
				attempt=attempt,
				passed=outcome.passed,
				failure_summary=None if outcome.passed else (outcome.failure_summary or "tests failed"),
			)

		await self.store.put(task_id, ArtifactKind.RUN, result.model_dump_json())

		if result.passed:
			logger.info(f"Verification attempt {attempt} for {task_id} passed")
		else:
			logger.warning(f"Verification attempt {attempt} for {task_id} failed: {summarize_failure(result.failure_summary)}")
		return result

	async def verify(
		self,
		live: LivePlan,
		context: ExecutionContext,
		max_attempts: int,
		on_phase: Optional[PhaseCallback] = None,
	) -> VerificationOutcome:
		"""
		Verify a task, repairing between failed attempts.

		Args:
			live: Current plan revision; repair steps are appended to it
			context: Execution context shared with the implementer
			max_attempts: Total test runs allowed (at least 1)
			on_phase: Awaited with (phase, attempt) on each verify/repair transition

		Returns:
			VerificationOutcome with the full run history

		Raises:
			VerificationExhaustedError: If the last allowed run still fails
		"""
		if max_attempts < 1:
			raise ValueError("max_attempts must be at least 1")

		task_id = live.plan.task_id
		results: list[RunResult] = []

		for attempt in range(1, max_attempts + 1):
			if on_phase:
				await on_phase(OrchestrationPhase.VERIFYING, attempt)

			result = await self.run_once(task_id, attempt)
			results.append(result)

			if result.passed:
				return VerificationOutcome(passed=True, results=results)

			if attempt == max_attempts:
				break

			if on_phase:
				await on_phase(OrchestrationPhase.REPAIRING, attempt)
			await self.repair(live, context, result)

		raise VerificationExhaustedError(results, results[-1].failure_summary)

	async def repair(self, live: LivePlan, context: ExecutionContext, result: RunResult):
		"""
		Feed a failed run back to the implementer as one bounded step.

		A repair step that failed last time is restarted rather than
		stacking another one behind it. Step failures here are recovered
		locally: the next verification run decides.
		"""
		context.failure_summary = result.failure_summary
		description = f"{REPAIR_PREFIX}: {summarize_failure(result.failure_summary)}"

		last = live.plan.steps[-1] if live.plan.steps else None
		if last is not None and last.repair and last.status == StepStatus.FAILED:
			last.description = description
			index = last.index
		else:
			index = live.plan.append_step(description, repair=True).index
			await live.save(self.store)

		try:
			await self.executor.run_step(live, context, index)
		except StepFailedError as e:
			logger.warning(f"Repair step {e.index} for {live.plan.task_id} failed: {e.reason}")
