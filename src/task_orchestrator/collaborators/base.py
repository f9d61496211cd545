"""
Collaborator interfaces consumed by the orchestration engine.

The engine never resolves task text, searches code, plans, writes code
or runs tests itself. It delegates to objects implementing these
protocols.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from ..artifacts.models import ContextHit, Task


@dataclass
class CodeHit:
	"""A code repository location matching a search."""
	location: str
	snippet: str = ""


@dataclass
class ImplementationResult:
	"""Outcome of applying one plan step."""
	success: bool
	produced_artifacts: list[str] = field(default_factory=list)
	summary: str = ""


@dataclass
class TestOutcome:
	"""Outcome of one full test run."""
	__test__ = False

	passed: bool
	failure_summary: Optional[str] = None


@dataclass
class ExecutionContext:
	"""Accumulated context handed to the implementer for each step."""
	task: Task
	hits: list[ContextHit] = field(default_factory=list)
	notes: list[str] = field(default_factory=list)
	completed_steps: list[str] = field(default_factory=list)
	produced_artifacts: list[str] = field(default_factory=list)
	failure_summary: Optional[str] = None

	def to_dict(self) -> dict:
		return {
			"task_id": self.task.id,
			"task_title": self.task.title,
			"source_location": self.task.source_location,
			"context": [h.model_dump() for h in self.hits],
			"notes": list(self.notes),
			"completed_steps": list(self.completed_steps),
			"produced_artifacts": list(self.produced_artifacts),
			"failure_summary": self.failure_summary,
		}

	def to_prompt(self) -> str:
		"""Render the context as a prompt for an agent."""
		lines = [
			"# Task Assignment",
			"",
			f"## Task: {self.task.title}",
			f"Source: {self.task.source_location}",
			"",
		]

		if self.hits:
			lines.append("### Relevant prior work:")
			for hit in self.hits:
				lines.append(f"- {hit.location} (score {hit.score:.2f})")
			lines.append("")

		if self.notes:
			lines.append("### Clarifications:")
			for note in self.notes:
				lines.append(f"- {note}")
			lines.append("")

		if self.completed_steps:
			lines.append("### Completed steps:")
			for step in self.completed_steps:
				lines.append(f"- {step}")
			lines.append("")

		if self.failure_summary:
			lines.append("### Last verification failure:")
			lines.append(self.failure_summary)
			lines.append("")

		return "\n".join(lines)


class TaskRepository(Protocol):
	async def resolve(self, reference: str) -> Task:
		"""Resolve a task reference. Raises TaskNotFoundError."""
		...


class CodeRepository(Protocol):
	async def search(self, terms: Sequence[str]) -> list[CodeHit]:
		...


class Decomposer(Protocol):
	async def decompose(
		self,
		task: Task,
		context: Sequence[ContextHit],
		notes: Sequence[str] = (),
	) -> list[str]:
		"""
		Break a task into ordered step descriptions.

		May raise ClarificationRequired to ask the user a question.
		"""
		...


class Implementer(Protocol):
	async def apply(self, step_description: str, context: ExecutionContext) -> ImplementationResult:
		...


class TestRunner(Protocol):
	async def run(self) -> TestOutcome:
		...
