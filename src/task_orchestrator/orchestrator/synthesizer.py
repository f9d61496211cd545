"""
Plan Synthesizer - Turns a task and its context into a persisted plan.

Decomposition itself is delegated to a Decomposer collaborator; the
synthesizer only guarantees a non-empty ordered plan and writes it as
exactly one new plan artifact.
"""

import logging
from typing import Sequence

from ..artifacts.models import Artifact, ContextHit, PlanDocument, Task
from ..artifacts.store import ArtifactStore
from ..collaborators.base import Decomposer
from ..errors import (
	ClarificationRequired,
	EmptyPlanError,
	PlanningFailedError,
)

logger = logging.getLogger(__name__)


class PlanSynthesizer:
	"""Builds and persists plans. Never retries on its own."""

	def __init__(self, store: ArtifactStore, decomposer: Decomposer):
		self.store = store
		self.decomposer = decomposer

	async def synthesize(
		self,
		task: Task,
		context: Sequence[ContextHit],
		notes: Sequence[str] = (),
	) -> tuple[Artifact, PlanDocument]:
		"""
		Decompose a task and persist the resulting plan.

		Args:
			task: The resolved task
			context: Ranked prior work (may be empty)
			notes: Answers to clarifying questions

		Returns:
			(plan artifact, plan document)

		Raises:
			EmptyPlanError: If decomposition yields no steps
			PlanningFailedError: If the decomposer fails
			ClarificationRequired: If the decomposer needs an answer first
			StoreUnavailableError: If the plan cannot be written
		"""
		try:
			descriptions = await self.decomposer.decompose(task, list(context), list(notes))
		except ClarificationRequired:
			raise
		except Exception as e:
			logger.error(f"Decomposition failed for {task.id}: {e}")
			raise PlanningFailedError(f"Decomposition failed for {task.id}: {e}") from e

		steps = [d.strip() for d in descriptions or [] if d and d.strip()]
		if not steps:
			raise EmptyPlanError(f"Decomposition of {task.id} produced no steps")

		plan = PlanDocument.from_descriptions(task.id, steps, context=list(context), notes=list(notes))

		artifact = await self.store.put_plan(plan)

		logger.info(f"Synthesized plan {artifact.path} with {len(steps)} steps")
		return artifact, plan
