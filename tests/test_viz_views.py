"""Tests for visualizer Rich views."""

from pathlib import Path

from rich.console import Console

from task_orchestrator.artifacts.models import (
	Artifact,
	ArtifactKind,
	ContextHit,
	PlanDocument,
	RunResult,
)
from task_orchestrator.visualizer.plan_progress import (
	render_artifact_history,
	render_plan_progress,
	render_report,
	render_run_history,
)


def _make_plan() -> PlanDocument:
	plan = PlanDocument.from_descriptions(
		"task-1",
		["Create handler", "Add [bold] tests"],
		context=[ContextHit(location="old/000001-plan", score=0.75, snippet="handler")],
	)
	plan.start_step(1)
	plan.complete_step(1, ["src/handler.py"])
	plan.start_step(2)
	plan.fail_step(2, "assertion failed")
	plan.append_step("Resolve verification failure: 1 failed", repair=True)
	return plan


def _render(tmp_path: Path, render, *args) -> str:
	out = tmp_path / "out.txt"
	with open(out, "w") as f:
		console = Console(file=f, width=120)
		render(*args, console=console)
	return out.read_text()


def test_render_plan_progress(tmp_path: Path):
	output = _render(tmp_path, render_plan_progress, _make_plan())

	assert "task-1" in output
	assert "(1/3 steps" in output
	assert "[x] 1. Create handler" in output
	assert "[!] 2. Add [bold] tests" in output
	assert "assertion failed" in output
	assert "src/handler.py" in output
	assert "(repair)" in output
	assert "old/000001-plan" in output


def test_render_plan_progress_title(tmp_path: Path):
	output = _render(tmp_path, render_plan_progress, _make_plan(), "login (task-1/000004-plan)")

	assert "login (task-1/000004-plan)" in output


def test_render_run_history(tmp_path: Path):
	results = [
		RunResult(task_id="task-1", attempt=1, passed=False, failure_summary="FAILED x\n1 failed, 2 passed"),
		RunResult(task_id="task-1", attempt=2, passed=True),
	]

	output = _render(tmp_path, render_run_history, results)

	assert "Verification runs" in output
	assert "failed" in output
	assert "passed" in output
	assert "1 failed, 2 passed" in output


def test_render_run_history_empty(tmp_path: Path):
	output = _render(tmp_path, render_run_history, [])

	assert "No verification runs recorded." in output


def test_render_artifact_history(tmp_path: Path):
	artifacts = [
		Artifact(path="task-1/000001-plan", kind=ArtifactKind.PLAN, task_id="task-1", revision=1, content="{}"),
		Artifact(path="task-1/000002-run", kind=ArtifactKind.RUN, task_id="task-1", revision=2, content="{}"),
	]

	output = _render(tmp_path, render_artifact_history, artifacts)

	assert "task-1/000001-plan" in output
	assert "run" in output


def test_render_report(tmp_path: Path):
	summary = {
		"task_id": "task-1",
		"phase": "failed",
		"attempts": 2,
		"error": "VerificationExhausted",
		"failure_summary": "[red] 1 failed",
		"plan": "task-1/000007-plan",
	}

	output = _render(tmp_path, render_report, summary)

	assert "Orchestration" in output
	assert "failed" in output
	assert "VerificationExhausted" in output
	assert "task-1/000007-plan" in output
	assert "[red] 1 failed" in output
