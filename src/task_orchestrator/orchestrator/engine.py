"""
Orchestrator - Top-level state machine for one task run.

Sequences discovery, planning, execution and verification:

	discovering -> planning -> executing -> verifying <-> repairing
	                  ^  |
	                  |  v
	                blocked           ... -> succeeded | failed

Every phase change is logged, optionally checkpointed to the artifact
store, and reported to an optional callback. Any orchestration error
ends the run in ``failed`` with the error code and the most recent
failure summary on the state.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from ..artifacts.models import (
	Artifact,
	ArtifactKind,
	ContextHit,
	OrchestrationPhase,
	OrchestrationState,
	PlanDocument,
	RunResult,
	StepStatus,
	Task,
)
from ..artifacts.store import ArtifactStore
from ..collaborators.base import (
	CodeRepository,
	Decomposer,
	ExecutionContext,
	Implementer,
	TaskRepository,
	TestRunner,
)
from ..errors import (
	ClarificationRequired,
	InvalidTaskError,
	OrchestrationError,
	PlanningFailedError,
	StepFailedError,
	StoreUnavailableError,
	UserCancelledError,
	VerificationExhaustedError,
)
from .executor import ExecutionLoop, LivePlan
from .retriever import DEFAULT_MIN_SCORE, DEFAULT_TOP_K, ContextRetriever
from .synthesizer import PlanSynthesizer
from .verifier import VerificationLoop

logger = logging.getLogger(__name__)

DEFAULT_MAX_CLARIFICATIONS = 3

AnswerCallback = Callable[[str], Awaitable[Optional[str]]]
StateCallback = Callable[[OrchestrationState], Awaitable[None]]


@dataclass
class OrchestrationReport:
	"""Everything a caller needs to know about a finished run."""
	state: OrchestrationState
	task: Optional[Task] = None
	plan_artifact: Optional[Artifact] = None
	plan: Optional[PlanDocument] = None
	context: list[ContextHit] = field(default_factory=list)
	results: list[RunResult] = field(default_factory=list)
	error: Optional[OrchestrationError] = None

	@property
	def succeeded(self) -> bool:
		return self.state.phase == OrchestrationPhase.SUCCEEDED

	def raise_for_error(self):
		"""Re-raise the error that ended the run, if any."""
		if self.error is not None:
			raise self.error

	def summary(self) -> dict:
		return {
			"task_id": self.state.task_id,
			"phase": self.state.phase.value,
			"attempts": len(self.results),
			"error": self.state.error,
			"failure_summary": self.state.failure_summary,
			"plan": self.plan_artifact.path if self.plan_artifact else None,
		}


class Orchestrator:
	"""
	Drives one task through the full workflow.

	One instance runs one task at a time; independent instances may share
	an artifact store and run concurrently.
	"""

	def __init__(
		self,
		store: ArtifactStore,
		task_repository: TaskRepository,
		decomposer: Decomposer,
		implementer: Implementer,
		test_runner: TestRunner,
		max_attempts: int,
		code_repository: Optional[CodeRepository] = None,
		top_k: int = DEFAULT_TOP_K,
		min_score: float = DEFAULT_MIN_SCORE,
		step_timeout: Optional[float] = None,
		run_timeout: Optional[float] = None,
		max_clarifications: int = DEFAULT_MAX_CLARIFICATIONS,
		answer_callback: Optional[AnswerCallback] = None,
		on_phase: Optional[StateCallback] = None,
		checkpoint: bool = True,
	):
		"""
		Initialize the orchestrator.

		Args:
			store: Artifact store for plans, notes, runs and checkpoints
			task_repository: Resolves task references
			decomposer: Breaks tasks into steps
			implementer: Carries out steps
			test_runner: Runs the test suite
			max_attempts: Verification runs allowed per task (at least 1)
			code_repository: Optional source of prior-art code locations
			top_k: Maximum context hits passed to planning
			min_score: Minimum overlap score for a context hit
			step_timeout: Deadline in seconds per implementer call
			run_timeout: Deadline in seconds per test run
			max_clarifications: Questions allowed before planning gives up
			answer_callback: Awaited with a question while blocked; None cancels
			on_phase: Awaited with a copy of the state on every transition
			checkpoint: Persist every state transition as a checkpoint artifact
		"""
		if max_attempts < 1:
			raise ValueError("max_attempts must be at least 1")

		self.store = store
		self.task_repository = task_repository
		self.max_attempts = max_attempts
		self.max_clarifications = max_clarifications
		self.answer_callback = answer_callback
		self.on_phase = on_phase
		self.checkpoint = checkpoint

		self.retriever = ContextRetriever(store, code_repository, top_k=top_k, min_score=min_score)
		self.synthesizer = PlanSynthesizer(store, decomposer)
		self.executor = ExecutionLoop(store, implementer, step_timeout=step_timeout)
		self.verifier = VerificationLoop(store, test_runner, self.executor, run_timeout=run_timeout)

		self._cancelled = False
		self._report: Optional[OrchestrationReport] = None
		self._live: Optional[LivePlan] = None

	@property
	def state(self) -> Optional[OrchestrationState]:
		"""State of the current (or last) run."""
		return self._report.state if self._report else None

	def cancel(self):
		"""
		Request cancellation; honored at the next phase boundary.

		A request made before run() starts cancels that run. The flag clears
		when the run ends.
		"""
		self._cancelled = True

	async def run(self, reference: str, resume: bool = False) -> OrchestrationReport:
		"""
		Run a task from reference to a terminal phase.

		Args:
			reference: Task reference understood by the task repository
			resume: Continue from the task's latest plan revision if one exists

		Returns:
			OrchestrationReport; ``state.phase`` is succeeded or failed
		"""
		self._live = None
		report = OrchestrationReport(state=OrchestrationState(task_id=reference))
		self._report = report

		try:
			await self._enter(OrchestrationPhase.DISCOVERING)
			task = await self.task_repository.resolve(reference)
			report.task = task
			report.state.task_id = task.id
			if not task.description.strip():
				raise InvalidTaskError(f"Task {task.id} has an empty description")

			context = ExecutionContext(task=task)
			live = await self._resume(task, context) if resume else None

			if live is None:
				report.context = await self.retriever.retrieve(task)
				context.hits = list(report.context)
				await self._enter(OrchestrationPhase.PLANNING)
				live = await self._plan(task, context)

			self._track(live)
			await self._enter(OrchestrationPhase.EXECUTING)
			await self.executor.run(live, context)

			outcome = await self.verifier.verify(
				live,
				context,
				self.max_attempts,
				on_phase=self._on_verifier_phase,
			)
			report.results = outcome.results
			await self._set_phase(OrchestrationPhase.SUCCEEDED)

		except OrchestrationError as e:
			await self._fail(e)
		except Exception as e:
			logger.exception(f"Unexpected error orchestrating {report.state.task_id}")
			report.state.error = type(e).__name__
			report.state.failure_summary = str(e)
			report.state.phase = OrchestrationPhase.FAILED
			raise
		finally:
			self._cancelled = False

		return report

	async def _resume(self, task: Task, context: ExecutionContext) -> Optional[LivePlan]:
		latest = await self.store.latest_plan(task.id)
		if latest is None:
			logger.info(f"No plan to resume for {task.id}; starting fresh")
			return None

		artifact, plan = latest
		self._report.context = list(plan.context)
		context.hits = list(plan.context)
		context.notes = list(plan.notes)
		context.completed_steps = [s.description for s in plan.steps if s.status == StepStatus.DONE]
		for step in plan.steps:
			context.produced_artifacts.extend(step.produced_artifacts)

		progress = plan.get_progress()
		logger.info(
			f"Resuming {task.id} from {artifact.path} "
			f"({progress['done_steps']}/{progress['total_steps']} steps done)"
		)
		return LivePlan(artifact=artifact, plan=plan)

	async def _plan(self, task: Task, context: ExecutionContext) -> LivePlan:
		rounds = 0
		while True:
			try:
				artifact, plan = await self.synthesizer.synthesize(task, context.hits, context.notes)
				return LivePlan(artifact=artifact, plan=plan)
			except ClarificationRequired as q:
				if rounds >= self.max_clarifications:
					raise PlanningFailedError(
						f"Planning still blocked after {rounds} clarification(s): {q.question}"
					) from q
				rounds += 1
				answer = await self._ask(task, q.question)
				context.notes.append(answer)
				await self._enter(OrchestrationPhase.PLANNING)

	async def _ask(self, task: Task, question: str) -> str:
		"""Block on an external answer to a clarifying question."""
		self._report.state.pending_question = question
		await self._enter(OrchestrationPhase.BLOCKED)
		await self.store.put(task.id, ArtifactKind.NOTE, f"Q: {question}")

		if self.answer_callback is None:
			raise UserCancelledError(f"No one available to answer: {question}")

		answer = await self.answer_callback(question)
		if self._cancelled or answer is None or not answer.strip():
			raise UserCancelledError(f"Question left unanswered: {question}")

		await self.store.put(task.id, ArtifactKind.NOTE, f"A: {answer.strip()}")
		self._report.state.pending_question = None
		return answer.strip()

	def _track(self, live: LivePlan):
		self._live = live
		self._report.plan_artifact = live.artifact
		self._report.plan = live.plan

	async def _on_verifier_phase(self, phase: OrchestrationPhase, attempt: int):
		await self._enter(phase, attempt)

	async def _enter(self, phase: OrchestrationPhase, attempt: Optional[int] = None):
		"""Transition to a non-terminal phase, honoring cancellation."""
		if self._cancelled:
			raise UserCancelledError("Run cancelled")
		await self._set_phase(phase, attempt)

	async def _set_phase(self, phase: OrchestrationPhase, attempt: Optional[int] = None):
		report = self._report
		state = report.state
		state.phase = phase
		if attempt is not None:
			state.attempt = attempt
		state.updated_at = datetime.now().isoformat()

		if self._live is not None:
			report.plan_artifact = self._live.artifact

		logger.info(f"[{state.task_id}] phase -> {phase.value}" + (f" (attempt {state.attempt})" if state.attempt else ""))

		if self.checkpoint and report.task is not None:
			await self.store.put(state.task_id, ArtifactKind.CHECKPOINT, state.model_dump_json())

		if self.on_phase:
			await self.on_phase(state.model_copy())

	async def _fail(self, error: OrchestrationError):
		report = self._report
		state = report.state
		report.error = error
		state.error = error.code

		if isinstance(error, VerificationExhaustedError):
			report.results = list(error.results)
			state.failure_summary = error.failure_summary
		elif isinstance(error, StepFailedError):
			state.failure_summary = error.reason
		else:
			state.failure_summary = str(error)

		logger.error(f"[{state.task_id}] failed with {error.code}: {state.failure_summary}")

		try:
			await self._set_phase(OrchestrationPhase.FAILED)
		except StoreUnavailableError as e:
			# The original error is what the caller needs to see
			logger.error(f"Could not checkpoint failure of {state.task_id}: {e}")
			state.phase = OrchestrationPhase.FAILED
