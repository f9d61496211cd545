"""File-backed task repository: one markdown or text file per task."""

import logging
import re
from pathlib import Path

from ..artifacts.models import Task
from ..errors import InvalidTaskError, TaskNotFoundError

logger = logging.getLogger(__name__)

TASK_SUFFIXES = ("", ".md", ".txt")


def slugify(reference: str) -> str:
	"""Turn a task reference into a stable task id."""
	slug = re.sub(r"[^a-z0-9]+", "-", reference.lower()).strip("-")
	return slug or "task"


class FileTaskRepository:
	"""
	Resolves task references against a directory of task files.

	A reference may name a file in the tasks directory with or without
	its suffix ("TASK-12", "TASK-12.md") or be a path to a file.
	"""

	def __init__(self, root: str | Path):
		self.root = Path(root).expanduser()

	def _candidates(self, reference: str) -> list[Path]:
		candidates = [self.root / f"{reference}{suffix}" for suffix in TASK_SUFFIXES]
		direct = Path(reference).expanduser()
		if direct.is_absolute() or direct.parent != Path("."):
			candidates.insert(0, direct)
		return candidates

	async def resolve(self, reference: str) -> Task:
		reference = reference.strip()
		if not reference:
			raise TaskNotFoundError("Empty task reference")

		for path in self._candidates(reference):
			if path.is_file():
				try:
					description = path.read_text(encoding="utf-8")
				except UnicodeDecodeError as e:
					raise InvalidTaskError(f"Task file {path} is not valid UTF-8: {e}") from e
				except OSError as e:
					raise TaskNotFoundError(f"Cannot read task file {path}: {e}") from e
				task = Task(
					id=slugify(path.stem),
					raw_reference=reference,
					description=description.strip(),
					source_location=str(path.resolve()),
				)
				logger.info(f"Resolved task {reference} -> {task.source_location}")
				return task

		raise TaskNotFoundError(f"Task not found: {reference} (searched {self.root})")
