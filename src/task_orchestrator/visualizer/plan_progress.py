"""Rich views for plan progress, run history and run reports."""

from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..artifacts.models import Artifact, OrchestrationPhase, PlanDocument, RunResult, StepStatus

STATUS_ICONS = {
	StepStatus.PENDING: "[dim][ ][/dim]",
	StepStatus.IN_PROGRESS: "[yellow][~][/yellow]",
	StepStatus.DONE: "[green]\\[x][/green]",
	StepStatus.FAILED: "[red][!][/red]",
}

PHASE_STYLES = {
	OrchestrationPhase.SUCCEEDED: "green",
	OrchestrationPhase.FAILED: "red",
	OrchestrationPhase.BLOCKED: "yellow",
}


def render_plan_progress(plan: PlanDocument, title: str = "", console: Optional[Console] = None) -> None:
	"""Render a plan as a Rich Tree of its steps."""
	console = console or Console()

	progress = plan.get_progress()
	pct = progress["percent_complete"]

	tree = Tree(
		f"[bold]{escape(title or plan.task_id)}[/bold]  "
		f"[dim]({progress['done_steps']}/{progress['total_steps']} steps, {pct:.0f}%)[/dim]"
	)

	for step in plan.steps:
		icon = STATUS_ICONS.get(step.status, "[ ]")
		label = f"{icon} {step.index}. {escape(step.description)}"
		if step.repair:
			label += " [magenta](repair)[/magenta]"
		branch = tree.add(label)
		if step.reason:
			branch.add(f"[red]{escape(step.reason)}[/red]")
		for produced in step.produced_artifacts:
			branch.add(f"[dim]{escape(produced)}[/dim]")

	if plan.context:
		context_branch = tree.add("[bold]Context[/bold]")
		for hit in plan.context:
			context_branch.add(f"{escape(hit.location)} [dim]({hit.score:.2f})[/dim]")

	console.print(tree)


def render_run_history(results: Sequence[RunResult], console: Optional[Console] = None) -> None:
	"""Render verification attempts as a table."""
	console = console or Console()

	if not results:
		console.print("[dim]No verification runs recorded.[/dim]")
		return

	table = Table(title="Verification runs")
	table.add_column("Attempt", justify="right")
	table.add_column("Result")
	table.add_column("Recorded")
	table.add_column("Failure summary")

	for result in results:
		outcome = "[green]passed[/green]" if result.passed else "[red]failed[/red]"
		summary = (result.failure_summary or "").strip().splitlines()
		table.add_row(
			str(result.attempt),
			outcome,
			result.recorded_at[:19],
			escape(summary[-1]) if summary else "",
		)

	console.print(table)


def render_artifact_history(artifacts: Sequence[Artifact], console: Optional[Console] = None) -> None:
	"""Render a task's artifact lineage."""
	console = console or Console()

	table = Table(title="Artifacts")
	table.add_column("Path")
	table.add_column("Kind")
	table.add_column("Created")

	for artifact in artifacts:
		table.add_row(artifact.path, artifact.kind.value, artifact.created_at[:19])

	console.print(table)


def render_report(summary: dict, console: Optional[Console] = None) -> None:
	"""Render the outcome of an orchestration run."""
	console = console or Console()

	phase = OrchestrationPhase(summary["phase"])
	style = PHASE_STYLES.get(phase, "cyan")

	lines = [
		f"[bold]Task:[/bold] {escape(summary['task_id'])}",
		f"[bold]Phase:[/bold] [{style}]{phase.value}[/{style}]",
		f"[bold]Verification attempts:[/bold] {summary['attempts']}",
	]
	if summary.get("plan"):
		lines.append(f"[bold]Plan:[/bold] {summary['plan']}")
	if summary.get("error"):
		lines.append(f"[bold]Error:[/bold] [red]{summary['error']}[/red]")
	if summary.get("failure_summary"):
		lines.append("")
		lines.append(escape(summary["failure_summary"]))

	console.print(Panel("\n".join(lines), title="Orchestration", border_style=style))
