"""Checklist-based decomposition of task descriptions into plan steps."""

import logging
import re
from typing import Sequence

from ..artifacts.models import ContextHit, Task
from ..errors import ClarificationRequired

logger = logging.getLogger(__name__)

CHECKBOX_RE = re.compile(r"^\s*[-*+]\s+\[[ xX~]\]\s+(?P<text>.+?)\s*$")
NUMBERED_RE = re.compile(r"^\s*\d+[.)]\s+(?P<text>.+?)\s*$")
BULLET_RE = re.compile(r"^\s*[-*+]\s+(?P<text>.+?)\s*$")

CLARIFY_QUESTION = (
	"The task has no checklist of steps. "
	"List the steps to take, separated by ';' or new lines."
)


def _extract(pattern: re.Pattern, text: str) -> list[str]:
	items = []
	for line in text.splitlines():
		match = pattern.match(line)
		if match:
			items.append(match.group("text"))
	return items


def split_answer(answer: str) -> list[str]:
	"""Split a free-form answer into step descriptions."""
	parts = re.split(r"[;\n]", answer)
	steps = []
	for part in parts:
		part = part.strip()
		numbered = NUMBERED_RE.match(part) or BULLET_RE.match(part)
		if numbered:
			part = numbered.group("text")
		if part:
			steps.append(part)
	return steps


class ChecklistDecomposer:
	"""
	Turns a task description into steps, one per list item.

	Markdown checkboxes win over numbered items, which win over plain
	bullets. A description without any list falls back to a single step
	named after the task title, or, with ``ask_when_unstructured``, asks
	the user for the steps instead.
	"""

	def __init__(self, ask_when_unstructured: bool = False):
		self.ask_when_unstructured = ask_when_unstructured

	async def decompose(
		self,
		task: Task,
		context: Sequence[ContextHit],
		notes: Sequence[str] = (),
	) -> list[str]:
		for pattern in (CHECKBOX_RE, NUMBERED_RE, BULLET_RE):
			steps = _extract(pattern, task.description)
			if steps:
				logger.debug(f"Decomposed {task.id} into {len(steps)} steps ({pattern.pattern})")
				return steps

		answered = [step for note in notes for step in split_answer(note)]
		if answered:
			return answered

		if self.ask_when_unstructured:
			raise ClarificationRequired(CLARIFY_QUESTION)

		return [task.title] if task.description.strip() else []
