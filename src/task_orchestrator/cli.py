"""CLI for task-orchestrator: run, show, history and tasks commands."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

from .artifacts.models import ArtifactKind, OrchestrationPhase, PlanDocument, RunResult
from .artifacts.store import ArtifactStore
from .collaborators.base import ExecutionContext, ImplementationResult
from .collaborators.code import FileCodeRepository
from .collaborators.commands import CommandImplementer, CommandTestRunner
from .collaborators.planning import ChecklistDecomposer
from .collaborators.tasks import FileTaskRepository
from .config import Config, load_config
from .errors import (
	ArtifactNotFoundError,
	ConfigurationError,
	InvalidTaskError,
	PlanningFailedError,
	StoreUnavailableError,
	TaskNotFoundError,
	UserCancelledError,
)
from .logging_config import setup_logging
from .orchestrator.engine import OrchestrationReport, Orchestrator
from .visualizer.plan_progress import (
	render_artifact_history,
	render_plan_progress,
	render_report,
	render_run_history,
)

EXIT_SUCCEEDED = 0
EXIT_FAILED = 1
EXIT_SETUP_ERROR = 2
EXIT_STORE_UNAVAILABLE = 3
EXIT_CANCELLED = 130

SETUP_ERRORS = (TaskNotFoundError, InvalidTaskError, PlanningFailedError, ConfigurationError)

console = Console()


def exit_code_for(report: OrchestrationReport) -> int:
	"""Map a finished run to a process exit code."""
	if report.state.phase == OrchestrationPhase.SUCCEEDED:
		return EXIT_SUCCEEDED
	error = report.error
	if isinstance(error, UserCancelledError):
		return EXIT_CANCELLED
	if isinstance(error, StoreUnavailableError):
		return EXIT_STORE_UNAVAILABLE
	if isinstance(error, SETUP_ERRORS):
		return EXIT_SETUP_ERROR
	return EXIT_FAILED


class PromptImplementer:
	"""Hands each step to the person at the terminal and asks whether it is done."""

	async def apply(self, step_description: str, context: ExecutionContext) -> ImplementationResult:
		console.print(f"\n[bold cyan]Step:[/bold cyan] {escape(step_description)}")
		if context.failure_summary:
			console.print(f"[dim]Last failure:[/dim] {escape(context.failure_summary.strip().splitlines()[-1])}")
		answer = await asyncio.to_thread(input, "Done? [Y/n] ")
		success = answer.strip().lower() in ("", "y", "yes")
		return ImplementationResult(success=success, summary="" if success else "Marked as not done")


async def _prompt_answer(question: str) -> Optional[str]:
	console.print(f"\n[bold yellow]Question:[/bold yellow] {escape(question)}")
	answer = await asyncio.to_thread(input, "Answer (blank to cancel): ")
	return answer.strip() or None


def _apply_run_overrides(config: Config, args: argparse.Namespace) -> Config:
	if args.tasks_dir:
		config.tasks_dir = Path(args.tasks_dir).expanduser()
	if args.project:
		config.project_path = Path(args.project).expanduser()
	if args.test_command:
		config.test_command = args.test_command
	if args.implementer_command:
		config.implementer_command = args.implementer_command
	if args.max_attempts is not None:
		config.max_attempts = args.max_attempts
	if args.step_timeout is not None:
		config.step_timeout = args.step_timeout
	return config


def build_orchestrator(config: Config, store: ArtifactStore, interactive: bool) -> Orchestrator:
	"""Wire the built-in collaborators from configuration."""
	config.validate()
	if config.implementer_command:
		implementer = CommandImplementer(config.implementer_command, cwd=config.project_path)
	elif interactive:
		implementer = PromptImplementer()
	else:
		raise ConfigurationError("No implementer command configured and input is disabled")

	return Orchestrator(
		store=store,
		task_repository=FileTaskRepository(config.tasks_dir),
		decomposer=ChecklistDecomposer(ask_when_unstructured=interactive),
		implementer=implementer,
		test_runner=CommandTestRunner(config.test_command, cwd=config.project_path),
		max_attempts=config.max_attempts,
		code_repository=FileCodeRepository(config.project_path, exclude=[config.tasks_dir]),
		top_k=config.top_k,
		min_score=config.min_score,
		step_timeout=config.step_timeout,
		run_timeout=config.run_timeout,
		max_clarifications=config.max_clarifications,
		answer_callback=_prompt_answer if interactive else None,
		checkpoint=config.checkpoint,
	)


async def _run(config: Config, args: argparse.Namespace) -> int:
	try:
		async with ArtifactStore(config.artifacts_db_path) as store:
			try:
				orchestrator = build_orchestrator(config, store, interactive=not args.no_input)
			except ConfigurationError as e:
				console.print(f"[red]{escape(str(e))}[/red]")
				return EXIT_SETUP_ERROR

			report = await orchestrator.run(args.reference, resume=args.resume)
	except StoreUnavailableError as e:
		console.print(f"[red]Artifact store unavailable:[/red] {e}")
		return EXIT_STORE_UNAVAILABLE

	render_report(report.summary(), console=console)
	return exit_code_for(report)


def cmd_run(args: argparse.Namespace) -> None:
	"""Drive one task through discover, plan, execute and verify."""
	config = _apply_run_overrides(load_config(), args)
	setup_logging(args.log_level or config.log_level, config.log_dir)
	sys.exit(asyncio.run(_run(config, args)))


async def _show(config: Config, task_id: str, revision: Optional[int]) -> int:
	async with ArtifactStore(config.artifacts_db_path) as store:
		plans = await store.list_by_task(task_id, ArtifactKind.PLAN)
		if not plans:
			console.print(f"No plan found for task '{task_id}'.")
			return EXIT_FAILED

		if revision is not None:
			matching = [a for a in plans if a.revision == revision]
			if not matching:
				raise ArtifactNotFoundError(f"No plan revision {revision} for task '{task_id}'")
			artifact = matching[0]
		else:
			artifact = plans[-1]

		runs = await store.list_by_task(task_id, ArtifactKind.RUN)

	plan = PlanDocument.model_validate_json(artifact.content)
	render_plan_progress(plan, title=f"{task_id} ({artifact.path})", console=console)
	render_run_history([RunResult.model_validate_json(a.content) for a in runs], console=console)
	return EXIT_SUCCEEDED


def cmd_show(args: argparse.Namespace) -> None:
	"""Show a task's plan and verification history."""
	config = load_config()
	try:
		code = asyncio.run(_show(config, args.task_id, args.revision))
	except ArtifactNotFoundError as e:
		console.print(str(e))
		code = EXIT_FAILED
	except StoreUnavailableError as e:
		console.print(f"[red]Artifact store unavailable:[/red] {e}")
		code = EXIT_STORE_UNAVAILABLE
	sys.exit(code)


async def _history(config: Config, task_id: str) -> int:
	async with ArtifactStore(config.artifacts_db_path) as store:
		artifacts = await store.list_by_task(task_id)
	if not artifacts:
		console.print(f"No artifacts for task '{task_id}'.")
		return EXIT_FAILED
	render_artifact_history(artifacts, console=console)
	return EXIT_SUCCEEDED


def cmd_history(args: argparse.Namespace) -> None:
	"""List every artifact recorded for a task."""
	config = load_config()
	try:
		code = asyncio.run(_history(config, args.task_id))
	except StoreUnavailableError as e:
		console.print(f"[red]Artifact store unavailable:[/red] {e}")
		code = EXIT_STORE_UNAVAILABLE
	sys.exit(code)


async def _tasks(config: Config) -> int:
	async with ArtifactStore(config.artifacts_db_path) as store:
		tasks = await store.list_tasks()
	if not tasks:
		console.print("No tasks recorded yet.")
		return EXIT_SUCCEEDED
	for info in tasks:
		console.print(f"{info['task_id']:30s} {info['artifact_count']:5d} artifacts  last {info['last_updated'][:19]}")
	return EXIT_SUCCEEDED


def cmd_tasks(args: argparse.Namespace) -> None:
	"""List tasks known to the artifact store."""
	config = load_config()
	try:
		code = asyncio.run(_tasks(config))
	except StoreUnavailableError as e:
		console.print(f"[red]Artifact store unavailable:[/red] {e}")
		code = EXIT_STORE_UNAVAILABLE
	sys.exit(code)


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="task-orchestrator",
		description="Drive a task through discovery, planning, execution and verification",
	)
	subparsers = parser.add_subparsers(dest="command")

	# run
	run_parser = subparsers.add_parser("run", help="Run a task to completion")
	run_parser.add_argument("reference", help="Task reference (name in the tasks directory or a path)")
	run_parser.add_argument("--tasks-dir", type=str, default=None, help="Directory holding task files")
	run_parser.add_argument("--project", type=str, default=None, help="Project root for code search and tests")
	run_parser.add_argument("--test-command", type=str, default=None, help="Command that runs the test suite")
	run_parser.add_argument("--implementer-command", type=str, default=None, help="Command that carries out a step")
	run_parser.add_argument("--max-attempts", type=int, default=None, help="Verification runs allowed")
	run_parser.add_argument("--step-timeout", type=float, default=None, help="Seconds allowed per step")
	run_parser.add_argument("--resume", action="store_true", help="Continue from the task's latest plan")
	run_parser.add_argument("--no-input", action="store_true", help="Never prompt; unanswered questions cancel")
	run_parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING or ERROR")
	run_parser.set_defaults(func=cmd_run)

	# show
	show_parser = subparsers.add_parser("show", help="Show a task's plan and verification runs")
	show_parser.add_argument("task_id", help="Task ID")
	show_parser.add_argument("--revision", type=int, default=None, help="Plan revision (default: latest)")
	show_parser.set_defaults(func=cmd_show)

	# history
	history_parser = subparsers.add_parser("history", help="List a task's artifacts in order")
	history_parser.add_argument("task_id", help="Task ID")
	history_parser.set_defaults(func=cmd_history)

	# tasks
	tasks_parser = subparsers.add_parser("tasks", help="List tasks with recorded artifacts")
	tasks_parser.set_defaults(func=cmd_tasks)

	return parser


def main() -> None:
	"""CLI entry point."""
	parser = build_parser()
	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)
