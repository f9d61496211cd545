"""
Context Retriever - Finds prior work relevant to a new task.

Scores earlier plans and notes from the artifact store, plus code
repository hits, by how many of the task's terms they mention. Only the
latest plan revision of each prior task is a candidate. Ranking is term
coverage first, recency second.
"""

import logging
import re
from typing import Optional

from ..artifacts.models import Artifact, ArtifactKind, ContextHit, PlanDocument, Task
from ..artifacts.store import ArtifactStore
from ..collaborators.base import CodeRepository
from ..errors import InvalidTaskError

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_MIN_SCORE = 0.2
SNIPPET_CHARS = 300

WORD_RE = re.compile(r"[a-z0-9_]+")

STOP_WORDS = frozenset({
	"the", "and", "for", "with", "that", "this", "from", "into", "are", "was",
	"will", "should", "must", "can", "not", "all", "any", "each", "when", "then",
	"has", "have", "use", "using", "add", "make", "new", "its", "but", "our",
	"you", "your", "they", "their", "them", "also", "than", "only", "out",
})


def tokenize(text: str) -> set[str]:
	"""Lowercase word set with short words and stop words removed."""
	return {
		word for word in WORD_RE.findall(text.lower())
		if len(word) >= 3 and word not in STOP_WORDS
	}


def overlap_score(task_terms: set[str], candidate_terms: set[str]) -> float:
	"""Fraction of the task's terms that the candidate mentions."""
	if not task_terms:
		return 0.0
	return round(len(task_terms & candidate_terms) / len(task_terms), 4)


def _artifact_text(artifact: Artifact) -> str:
	if artifact.kind == ArtifactKind.PLAN:
		try:
			return PlanDocument.model_validate_json(artifact.content).searchable_text()
		except ValueError:
			logger.warning(f"Unreadable plan artifact {artifact.path}")
			return ""
	return artifact.content


class ContextRetriever:
	"""
	Ranks prior artifacts and code locations for a task.

	Read-only: never writes to the store or the code repository.
	"""

	def __init__(
		self,
		store: ArtifactStore,
		code_repository: Optional[CodeRepository] = None,
		top_k: int = DEFAULT_TOP_K,
		min_score: float = DEFAULT_MIN_SCORE,
	):
		if top_k < 1:
			raise ValueError("top_k must be at least 1")
		self.store = store
		self.code_repository = code_repository
		self.top_k = top_k
		self.min_score = min_score

	async def retrieve(self, task: Task) -> list[ContextHit]:
		"""
		Find prior work relevant to a task.

		Args:
			task: The resolved task

		Returns:
			Up to top_k hits at or above min_score, best first. Empty when
			nothing relevant exists.

		Raises:
			InvalidTaskError: If the task has no description
		"""
		if not task.description or not task.description.strip():
			raise InvalidTaskError(f"Task {task.id} has an empty description")

		terms = tokenize(task.description)
		if not terms:
			logger.info(f"No searchable terms in task {task.id}")
			return []

		candidates: list[ContextHit] = []
		planned_tasks: set[str] = set()

		async for artifact in self.store.iter_artifacts(
			kinds=[ArtifactKind.PLAN, ArtifactKind.NOTE],
			exclude_task=task.id,
		):
			# Newest first, so the first plan seen per task is its latest revision
			if artifact.kind == ArtifactKind.PLAN:
				if artifact.task_id in planned_tasks:
					continue
				planned_tasks.add(artifact.task_id)

			text = _artifact_text(artifact)
			score = overlap_score(terms, tokenize(text))
			if score >= self.min_score:
				candidates.append(ContextHit(
					location=artifact.path,
					score=score,
					snippet=text[:SNIPPET_CHARS],
					created_at=artifact.created_at,
				))

		candidates.extend(await self._search_code(terms))

		# Newest first among equal scores; undated code hits sort last
		candidates.sort(key=lambda h: h.created_at or "", reverse=True)
		candidates.sort(key=lambda h: h.score, reverse=True)

		hits = candidates[:self.top_k]
		logger.info(f"Retrieved {len(hits)} context hits for {task.id} ({len(candidates)} above threshold)")
		return hits

	async def _search_code(self, terms: set[str]) -> list[ContextHit]:
		if self.code_repository is None:
			return []

		try:
			code_hits = await self.code_repository.search(sorted(terms))
		except Exception as e:
			logger.warning(f"Code repository search failed: {e}")
			return []

		hits = []
		for code_hit in code_hits:
			score = overlap_score(terms, tokenize(f"{code_hit.location}\n{code_hit.snippet}"))
			if score >= self.min_score:
				hits.append(ContextHit(
					location=code_hit.location,
					score=score,
					snippet=code_hit.snippet[:SNIPPET_CHARS],
				))
		return hits
