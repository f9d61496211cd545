"""File-scanning code repository used for prior-art lookups."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

from .base import CodeHit

logger = logging.getLogger(__name__)

DEFAULT_SUFFIXES = (".py", ".md", ".txt", ".toml", ".cfg", ".yaml", ".yml", ".json")
SKIP_DIRS = {".git", ".hg", ".venv", "venv", "node_modules", "__pycache__", ".mypy_cache", ".pytest_cache", ".ruff_cache"}


class FileCodeRepository:
	"""
	Searches a source tree for files mentioning any of the given terms.

	Returns one hit per matching file, located relative to the root, with
	the first few matching lines as the snippet.
	"""

	def __init__(
		self,
		root: str | Path,
		suffixes: Sequence[str] = DEFAULT_SUFFIXES,
		max_snippet_lines: int = 5,
		max_file_bytes: int = 512 * 1024,
		exclude: Optional[Sequence[str | Path]] = None,
	):
		self.root = Path(root).expanduser()
		self.suffixes = tuple(suffixes)
		self.max_snippet_lines = max_snippet_lines
		self.max_file_bytes = max_file_bytes
		self.exclude = {Path(p).resolve() for p in (exclude or [])}

	async def search(self, terms: Sequence[str]) -> list[CodeHit]:
		terms = [t.lower() for t in terms if t]
		if not terms:
			return []
		return await asyncio.to_thread(self._scan, terms)

	def _iter_files(self):
		if not self.root.is_dir():
			return
		for path in sorted(self.root.rglob("*")):
			if any(part in SKIP_DIRS for part in path.relative_to(self.root).parts):
				continue
			if not path.is_file() or path.suffix not in self.suffixes:
				continue
			if path.resolve() in self.exclude:
				continue
			yield path

	def _scan(self, terms: list[str]) -> list[CodeHit]:
		hits = []
		for path in self._iter_files():
			try:
				if path.stat().st_size > self.max_file_bytes:
					continue
				text = path.read_text(encoding="utf-8", errors="replace")
			except OSError as e:
				logger.debug(f"Skipping unreadable file {path}: {e}")
				continue

			matching = []
			for line in text.splitlines():
				lowered = line.lower()
				if any(term in lowered for term in terms):
					matching.append(line.strip())
					if len(matching) >= self.max_snippet_lines:
						break

			if matching:
				hits.append(CodeHit(
					location=str(path.relative_to(self.root)),
					snippet="\n".join(matching),
				))

		logger.debug(f"Code search for {len(terms)} terms matched {len(hits)} files")
		return hits
