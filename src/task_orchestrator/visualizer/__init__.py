"""Visualizer package - Rich terminal views for plans and orchestration runs."""

from .plan_progress import render_artifact_history, render_plan_progress, render_report, render_run_history

__all__ = [
	"render_artifact_history",
	"render_plan_progress",
	"render_report",
	"render_run_history",
]
