"""
Shell-command collaborators.

CommandImplementer hands each plan step to an external agent command.
CommandTestRunner runs the project's test suite. Both report through
exit codes and captured output.
"""

import asyncio
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from .base import ExecutionContext, ImplementationResult, TestOutcome

logger = logging.getLogger(__name__)

OUTPUT_TAIL_CHARS = 2000
ARTIFACT_PREFIX = "ARTIFACT:"


async def run_shell(
	command: str,
	cwd: Path,
	timeout: Optional[float] = None,
	env: Optional[dict] = None,
) -> dict:
	"""Run a shell command asynchronously, capturing combined output."""
	start = datetime.now()

	proc = await asyncio.create_subprocess_shell(
		command,
		stdout=asyncio.subprocess.PIPE,
		stderr=asyncio.subprocess.STDOUT,
		cwd=str(cwd),
		env={**os.environ, **(env or {})},
	)

	try:
		stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
	except asyncio.TimeoutError:
		proc.kill()
		await proc.wait()
		raise

	return {
		"output": stdout.decode("utf-8", errors="replace"),
		"returncode": proc.returncode,
		"duration": (datetime.now() - start).total_seconds(),
	}


class CommandImplementer:
	"""
	Delegates plan steps to an external command.

	The step description, task id and JSON-encoded context are exported as
	TASK_ORCHESTRATOR_STEP, TASK_ORCHESTRATOR_TASK_ID and
	TASK_ORCHESTRATOR_CONTEXT. Exit code 0 means success; stdout lines
	starting with "ARTIFACT:" name produced artifacts.
	"""

	def __init__(self, command: str, cwd: Optional[str | Path] = None, timeout: Optional[float] = None):
		if not command:
			raise ValueError("An implementer command is required")
		self.command = command
		self.cwd = Path(cwd) if cwd else Path.cwd()
		self.timeout = timeout

	async def apply(self, step_description: str, context: ExecutionContext) -> ImplementationResult:
		env = {
			"TASK_ORCHESTRATOR_STEP": step_description,
			"TASK_ORCHESTRATOR_TASK_ID": context.task.id,
			"TASK_ORCHESTRATOR_CONTEXT": json.dumps(context.to_dict()),
		}
		result = await run_shell(self.command, self.cwd, self.timeout, env)

		produced = [
			line[len(ARTIFACT_PREFIX):].strip()
			for line in result["output"].splitlines()
			if line.startswith(ARTIFACT_PREFIX)
		]
		success = result["returncode"] == 0
		if not success:
			logger.warning(f"Implementer exited {result['returncode']} for step: {step_description}")

		return ImplementationResult(
			success=success,
			produced_artifacts=produced,
			summary=result["output"][-OUTPUT_TAIL_CHARS:],
		)


class CommandTestRunner:
	"""Runs the full test suite through a shell command."""
	__test__ = False

	def __init__(self, command: str = "pytest -q", cwd: Optional[str | Path] = None, timeout: Optional[float] = None):
		self.command = command
		self.cwd = Path(cwd) if cwd else Path.cwd()
		self.timeout = timeout

	async def run(self) -> TestOutcome:
		try:
			result = await run_shell(self.command, self.cwd, self.timeout)
		except FileNotFoundError:
			return TestOutcome(passed=False, failure_summary=f"Working directory not found: {self.cwd}")

		if result["returncode"] == 0:
			return TestOutcome(passed=True)

		return TestOutcome(
			passed=False,
			failure_summary=result["output"][-OUTPUT_TAIL_CHARS:].strip()
			or f"'{self.command}' exited with code {result['returncode']}",
		)
