"""
Execution Loop - Realizes a plan's steps strictly in order.

Each step goes pending -> in_progress -> done | failed, and every
transition is persisted as a new plan revision so a resumed run picks
up from the last known state. The first failed step halts the loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..artifacts.models import Artifact, PlanDocument, PlanStep, StepStatus
from ..artifacts.store import ArtifactStore
from ..collaborators.base import ExecutionContext, Implementer
from ..errors import StepFailedError

logger = logging.getLogger(__name__)


@dataclass
class LivePlan:
	"""The newest revision of a plan and the artifact it was stored as."""
	artifact: Artifact
	plan: PlanDocument

	async def save(self, store: ArtifactStore) -> Artifact:
		"""Persist the in-memory plan as the next revision."""
		self.artifact = await store.put_plan(self.plan, previous=self.artifact)
		return self.artifact


class ExecutionLoop:
	"""
	Walks a plan, delegating each step to the implementer.

	No two steps ever run concurrently; a step only starts once every
	earlier step is done.
	"""

	def __init__(
		self,
		store: ArtifactStore,
		implementer: Implementer,
		step_timeout: Optional[float] = None,
	):
		"""
		Initialize the execution loop.

		Args:
			store: Artifact store receiving plan revisions
			implementer: Collaborator that carries out each step
			step_timeout: Deadline in seconds per implementer call
		"""
		self.store = store
		self.implementer = implementer
		self.step_timeout = step_timeout

	async def run(self, live: LivePlan, context: ExecutionContext) -> LivePlan:
		"""
		Execute every step that is not done yet, in index order.

		Raises:
			StepFailedError: On the first failing step; later steps stay pending
		"""
		while True:
			step = live.plan.next_step()
			if step is None:
				logger.info(f"All {len(live.plan.steps)} steps done for {live.plan.task_id}")
				return live
			await self.run_step(live, context, step.index)

	async def run_step(self, live: LivePlan, context: ExecutionContext, index: int) -> PlanStep:
		"""
		Execute a single step.

		A step left in progress by an interrupted run is restarted without
		a second transition.
		"""
		step = live.plan.get_step(index)
		if step.status == StepStatus.DONE:
			return step

		if step.status != StepStatus.IN_PROGRESS:
			live.plan.start_step(index)
			await live.save(self.store)

		logger.info(f"Executing step {index}/{len(live.plan.steps)} of {live.plan.task_id}: {step.description}")

		reason = None
		result = None
		try:
			result = await asyncio.wait_for(
				self.implementer.apply(step.description, context),
				timeout=self.step_timeout,
			)
		except asyncio.TimeoutError:
			reason = f"Implementer timed out after {self.step_timeout}s"
		except Exception as e:
			reason = f"{type(e).__name__}: {e}"
		else:
			if not result.success:
				reason = result.summary.strip() or "Implementer reported failure"

		if reason is not None:
			live.plan.fail_step(index, reason)
			await live.save(self.store)
			logger.warning(f"Step {index} of {live.plan.task_id} failed: {reason}")
			raise StepFailedError(index, reason)

		live.plan.complete_step(index, result.produced_artifacts)
		await live.save(self.store)

		context.completed_steps.append(step.description)
		context.produced_artifacts.extend(result.produced_artifacts)
		return step
