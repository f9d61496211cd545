"""
Artifact Models - Pydantic schemas for orchestration records.

Defines tasks, append-only artifacts, plan documents with ordered
steps, verification run results, and orchestration state.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidTransitionError


class ArtifactKind(str, Enum):
	"""Kind of a persisted artifact."""
	PLAN = "plan"
	NOTE = "note"
	RUN = "run"
	CHECKPOINT = "checkpoint"


class StepStatus(str, Enum):
	"""Status of a plan step."""
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	DONE = "done"
	FAILED = "failed"


class OrchestrationPhase(str, Enum):
	"""Phase of an orchestration run."""
	DISCOVERING = "discovering"
	PLANNING = "planning"
	EXECUTING = "executing"
	VERIFYING = "verifying"
	REPAIRING = "repairing"
	BLOCKED = "blocked"
	SUCCEEDED = "succeeded"
	FAILED = "failed"

	@property
	def is_terminal(self) -> bool:
		return self in (OrchestrationPhase.SUCCEEDED, OrchestrationPhase.FAILED)


class Task(BaseModel):
	"""A resolved unit of requested work. Immutable once resolved."""
	model_config = ConfigDict(frozen=True)

	id: str = Field(description="Stable task identifier")
	raw_reference: str = Field(description="Reference the task was resolved from")
	description: str = Field(description="Task text as held by the task repository")
	source_location: str = Field(description="Where the canonical task text lives")

	@property
	def title(self) -> str:
		"""First non-empty line of the description, without markdown heading marks."""
		for line in self.description.splitlines():
			line = line.strip().lstrip("#").strip()
			if line:
				return line
		return self.id


class Artifact(BaseModel):
	"""A persisted record. Never mutated after it is written."""
	model_config = ConfigDict(frozen=True)

	path: str
	kind: ArtifactKind
	task_id: str
	revision: int
	content: str
	created_at: str = Field(default_factory=lambda: datetime.now().isoformat())


class ContextHit(BaseModel):
	"""A prior artifact or code location ranked as relevant to a task."""
	location: str
	score: float
	snippet: str = ""
	created_at: Optional[str] = None


class PlanStep(BaseModel):
	"""One unit of planned work."""
	index: int = Field(description="1-based position in the plan")
	description: str
	status: StepStatus = Field(default=StepStatus.PENDING)
	reason: Optional[str] = Field(default=None, description="Failure reason if failed")
	produced_artifacts: list[str] = Field(default_factory=list)
	repair: bool = Field(default=False, description="Appended from a failed verification")
	updated_at: Optional[str] = Field(default=None)


class PlanDocument(BaseModel):
	"""
	Content of a plan artifact.

	Steps are completed strictly in index order and at most one step is
	in progress at a time. Every change is persisted by the caller as a
	new plan revision.
	"""
	task_id: str
	steps: list[PlanStep] = Field(default_factory=list)
	context: list[ContextHit] = Field(default_factory=list)
	notes: list[str] = Field(default_factory=list)
	revision_of: Optional[str] = Field(default=None, description="Path of the previous revision")

	@classmethod
	def from_descriptions(
		cls,
		task_id: str,
		descriptions: list[str],
		context: Optional[list[ContextHit]] = None,
		notes: Optional[list[str]] = None,
	) -> "PlanDocument":
		steps = [
			PlanStep(index=i, description=d)
			for i, d in enumerate(descriptions, start=1)
		]
		return cls(task_id=task_id, steps=steps, context=context or [], notes=notes or [])

	def get_step(self, index: int) -> PlanStep:
		for step in self.steps:
			if step.index == index:
				return step
		raise InvalidTransitionError(f"No step {index} in plan for {self.task_id}")

	def next_step(self) -> Optional[PlanStep]:
		"""Get the first step that is not done."""
		for step in self.steps:
			if step.status != StepStatus.DONE:
				return step
		return None

	def current_step(self) -> Optional[PlanStep]:
		"""Get the step currently in progress."""
		for step in self.steps:
			if step.status == StepStatus.IN_PROGRESS:
				return step
		return None

	def is_complete(self) -> bool:
		return bool(self.steps) and all(s.status == StepStatus.DONE for s in self.steps)

	def _require_prior_done(self, index: int, action: str):
		for step in self.steps:
			if step.index < index and step.status != StepStatus.DONE:
				raise InvalidTransitionError(
					f"Cannot {action} step {index}: step {step.index} is {step.status.value}"
				)

	def start_step(self, index: int) -> PlanStep:
		"""Move a pending (or previously failed) step to in progress."""
		step = self.get_step(index)
		if step.status not in (StepStatus.PENDING, StepStatus.FAILED):
			raise InvalidTransitionError(f"Cannot start step {index}: it is {step.status.value}")
		active = self.current_step()
		if active is not None:
			raise InvalidTransitionError(f"Cannot start step {index}: step {active.index} is in progress")
		self._require_prior_done(index, "start")
		step.status = StepStatus.IN_PROGRESS
		step.reason = None
		step.updated_at = datetime.now().isoformat()
		return step

	def complete_step(self, index: int, produced_artifacts: Optional[list[str]] = None) -> PlanStep:
		step = self.get_step(index)
		if step.status != StepStatus.IN_PROGRESS:
			raise InvalidTransitionError(f"Cannot complete step {index}: it is {step.status.value}")
		self._require_prior_done(index, "complete")
		step.status = StepStatus.DONE
		step.produced_artifacts = list(produced_artifacts or [])
		step.updated_at = datetime.now().isoformat()
		return step

	def fail_step(self, index: int, reason: str) -> PlanStep:
		step = self.get_step(index)
		if step.status != StepStatus.IN_PROGRESS:
			raise InvalidTransitionError(f"Cannot fail step {index}: it is {step.status.value}")
		step.status = StepStatus.FAILED
		step.reason = reason
		step.updated_at = datetime.now().isoformat()
		return step

	def append_step(self, description: str, repair: bool = False) -> PlanStep:
		step = PlanStep(
			index=len(self.steps) + 1,
			description=description,
			repair=repair,
		)
		self.steps.append(step)
		return step

	def get_progress(self) -> dict:
		"""Calculate overall progress."""
		total = len(self.steps)
		done = len([s for s in self.steps if s.status == StepStatus.DONE])
		failed = len([s for s in self.steps if s.status == StepStatus.FAILED])
		return {
			"total_steps": total,
			"done_steps": done,
			"failed_steps": failed,
			"percent_complete": round(done / total * 100, 1) if total > 0 else 0,
		}

	def searchable_text(self) -> str:
		return "\n".join(s.description for s in self.steps)

	def to_markdown(self) -> str:
		"""Convert plan to a markdown checklist."""
		marks = {
			StepStatus.PENDING: "[ ]",
			StepStatus.IN_PROGRESS: "[~]",
			StepStatus.DONE: "[x]",
			StepStatus.FAILED: "[!]",
		}
		lines = [f"# Plan for {self.task_id}", ""]
		for step in self.steps:
			suffix = f" ({step.reason})" if step.reason else ""
			lines.append(f"- {marks[step.status]} {step.index}. {step.description}{suffix}")
		if self.context:
			lines.append("")
			lines.append("## Context")
			for hit in self.context:
				lines.append(f"- {hit.location} ({hit.score:.2f})")
		return "\n".join(lines)


class RunResult(BaseModel):
	"""Outcome of one verification attempt."""
	model_config = ConfigDict(frozen=True)

	task_id: str
	attempt: int
	passed: bool
	failure_summary: Optional[str] = None
	recorded_at: str = Field(default_factory=lambda: datetime.now().isoformat())


class OrchestrationState(BaseModel):
	"""Live state of one orchestration run."""
	task_id: str
	phase: OrchestrationPhase = OrchestrationPhase.DISCOVERING
	attempt: int = 0
	error: Optional[str] = None
	failure_summary: Optional[str] = None
	pending_question: Optional[str] = None
	updated_at: str = Field(default_factory=lambda: datetime.now().isoformat())
