"""
Artifact Store - SQLite-backed append-only artifact storage.

Features:
- Deterministic, collision-free paths: "<task_id>/<revision>-<kind>"
- Per-task revision counter, creation-ordered listing
- No update or delete: every change is a new revision
- Safe for concurrent appends from independent task runs
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

from ..errors import ArtifactNotFoundError, StoreUnavailableError
from .models import Artifact, ArtifactKind, PlanDocument

logger = logging.getLogger(__name__)

# Attempts at claiming a fresh revision when another writer got there first
MAX_PATH_RETRIES = 20


def artifact_path(task_id: str, revision: int, kind: ArtifactKind) -> str:
	"""Build the storage path for an artifact revision."""
	return f"{task_id}/{revision:06d}-{kind.value}"


class ArtifactStore:
	"""
	SQLite-backed append-only artifact storage.

	Usage:
		async with ArtifactStore("data/artifacts.db") as store:
			artifact = await store.put("task-1", ArtifactKind.PLAN, plan.model_dump_json())
			same = await store.get(artifact.path)
			plans = await store.list_by_task("task-1", ArtifactKind.PLAN)
	"""

	def __init__(self, db_path: str | Path):
		"""Initialize the artifact store."""
		self.db_path = Path(db_path)
		self._db: Optional[aiosqlite.Connection] = None
		self._lock = asyncio.Lock()

	async def __aenter__(self) -> "ArtifactStore":
		await self.init()
		return self

	async def __aexit__(self, exc_type, exc, tb):
		await self.close()

	async def init(self):
		"""Open the database and create the schema."""
		if self._db is not None:
			return
		try:
			self.db_path.parent.mkdir(parents=True, exist_ok=True)
			self._db = await aiosqlite.connect(str(self.db_path))
			self._db.row_factory = aiosqlite.Row

			await self._db.execute("""
				CREATE TABLE IF NOT EXISTS artifacts (
					seq INTEGER PRIMARY KEY AUTOINCREMENT,
					path TEXT NOT NULL UNIQUE,
					task_id TEXT NOT NULL,
					revision INTEGER NOT NULL,
					kind TEXT NOT NULL,
					content TEXT NOT NULL,
					created_at TEXT NOT NULL,
					UNIQUE(task_id, revision)
				)
			""")

			await self._db.execute("""
				CREATE INDEX IF NOT EXISTS idx_artifacts_task ON artifacts(task_id, kind)
			""")

			await self._db.commit()
		except (aiosqlite.Error, OSError) as e:
			logger.error(f"Artifact store unavailable at {self.db_path}: {e}")
			await self.close()
			raise StoreUnavailableError(f"Cannot open artifact store {self.db_path}: {e}") from e

		logger.info(f"Artifact store initialized: {self.db_path}")

	async def close(self):
		"""Close the database connection."""
		if self._db:
			try:
				await self._db.close()
			finally:
				self._db = None

	async def _conn(self) -> aiosqlite.Connection:
		if not self._db:
			await self.init()
		return self._db

	async def put(self, task_id: str, kind: ArtifactKind, content: str) -> Artifact:
		"""
		Append a new artifact for a task.

		Args:
			task_id: Task the artifact belongs to
			kind: Artifact kind
			content: Serialized content

		Returns:
			The stored Artifact, including its assigned path and revision

		Raises:
			StoreUnavailableError: If the artifact cannot be written
		"""
		if not task_id:
			raise ValueError("task_id is required")

		db = await self._conn()
		async with self._lock:
			try:
				for _ in range(MAX_PATH_RETRIES):
					async with db.execute(
						"SELECT COALESCE(MAX(revision), 0) FROM artifacts WHERE task_id = ?",
						(task_id,)
					) as cursor:
						row = await cursor.fetchone()

					artifact = Artifact(
						path=artifact_path(task_id, row[0] + 1, kind),
						kind=kind,
						task_id=task_id,
						revision=row[0] + 1,
						content=content,
						created_at=datetime.now().isoformat(),
					)

					try:
						await db.execute(
							"""
							INSERT INTO artifacts (path, task_id, revision, kind, content, created_at)
							VALUES (?, ?, ?, ?, ?, ?)
							""",
							(
								artifact.path,
								artifact.task_id,
								artifact.revision,
								artifact.kind.value,
								artifact.content,
								artifact.created_at,
							)
						)
						await db.commit()
					except aiosqlite.IntegrityError:
						# Another writer claimed this revision
						await db.rollback()
						continue

					logger.debug(f"Stored artifact {artifact.path}")
					return artifact
			except aiosqlite.Error as e:
				logger.error(f"Failed to write artifact for {task_id}: {e}")
				raise StoreUnavailableError(f"Cannot write artifact for {task_id}: {e}") from e

		raise StoreUnavailableError(
			f"Could not claim a revision for {task_id} after {MAX_PATH_RETRIES} attempts"
		)

	async def put_plan(self, plan: PlanDocument, previous: Optional[Artifact] = None) -> Artifact:
		"""Persist a plan document as a new plan revision."""
		if previous is not None:
			plan.revision_of = previous.path
		return await self.put(plan.task_id, ArtifactKind.PLAN, plan.model_dump_json())

	async def latest_plan(self, task_id: str) -> Optional[tuple[Artifact, PlanDocument]]:
		"""Get the newest plan revision for a task, decoded."""
		artifact = await self.latest(task_id, ArtifactKind.PLAN)
		if artifact is None:
			return None
		return artifact, PlanDocument.model_validate_json(artifact.content)

	async def get(self, path: str) -> Artifact:
		"""
		Get an artifact by path.

		Raises:
			ArtifactNotFoundError: If no artifact exists at path
		"""
		rows = await self._fetch("SELECT * FROM artifacts WHERE path = ?", (path,))
		if not rows:
			raise ArtifactNotFoundError(f"Artifact not found: {path}")
		return self._to_artifact(rows[0])

	async def list_by_task(self, task_id: str, kind: Optional[ArtifactKind] = None) -> list[Artifact]:
		"""
		List a task's artifacts in creation order.

		Args:
			task_id: Task ID
			kind: Optional kind filter

		Returns:
			List of Artifacts, oldest first
		"""
		if kind:
			rows = await self._fetch(
				"SELECT * FROM artifacts WHERE task_id = ? AND kind = ? ORDER BY revision ASC",
				(task_id, kind.value),
			)
		else:
			rows = await self._fetch(
				"SELECT * FROM artifacts WHERE task_id = ? ORDER BY revision ASC",
				(task_id,),
			)
		return [self._to_artifact(row) for row in rows]

	async def latest(self, task_id: str, kind: ArtifactKind) -> Optional[Artifact]:
		"""Get the newest artifact of a kind for a task."""
		rows = await self._fetch(
			"SELECT * FROM artifacts WHERE task_id = ? AND kind = ? ORDER BY revision DESC LIMIT 1",
			(task_id, kind.value),
		)
		return self._to_artifact(rows[0]) if rows else None

	async def iter_artifacts(
		self,
		kinds: Optional[list[ArtifactKind]] = None,
		exclude_task: Optional[str] = None,
	) -> AsyncIterator[Artifact]:
		"""
		Iterate over all artifacts, newest first.

		Args:
			kinds: Only yield these kinds
			exclude_task: Skip artifacts belonging to this task
		"""
		conditions = []
		params: list = []

		if kinds:
			conditions.append(f"kind IN ({', '.join('?' for _ in kinds)})")
			params.extend(k.value for k in kinds)

		if exclude_task:
			conditions.append("task_id != ?")
			params.append(exclude_task)

		where_clause = " AND ".join(conditions) if conditions else "1=1"

		rows = await self._fetch(
			f"SELECT * FROM artifacts WHERE {where_clause} ORDER BY seq DESC",
			tuple(params),
		)
		for row in rows:
			yield self._to_artifact(row)

	async def list_tasks(self) -> list[dict]:
		"""
		List all tasks with artifacts.

		Returns:
			List of task info dictionaries, most recently active first
		"""
		rows = await self._fetch(
			"""
			SELECT
				task_id,
				COUNT(*) as artifact_count,
				MAX(created_at) as last_updated
			FROM artifacts
			GROUP BY task_id
			ORDER BY MAX(seq) DESC
			""",
			(),
		)
		return [
			{
				"task_id": row["task_id"],
				"artifact_count": row["artifact_count"],
				"last_updated": row["last_updated"],
			}
			for row in rows
		]

	async def _fetch(self, query: str, params: tuple) -> list:
		db = await self._conn()
		try:
			async with db.execute(query, params) as cursor:
				return list(await cursor.fetchall())
		except aiosqlite.Error as e:
			logger.error(f"Artifact store read failed: {e}")
			raise StoreUnavailableError(f"Cannot read artifact store: {e}") from e

	@staticmethod
	def _to_artifact(row) -> Artifact:
		return Artifact(
			path=row["path"],
			kind=ArtifactKind(row["kind"]),
			task_id=row["task_id"],
			revision=row["revision"],
			content=row["content"],
			created_at=row["created_at"],
		)
