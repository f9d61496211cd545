"""Artifacts module - Append-only storage of plans, notes and run history."""

from .models import (
	Artifact,
	ArtifactKind,
	ContextHit,
	OrchestrationPhase,
	OrchestrationState,
	PlanDocument,
	PlanStep,
	RunResult,
	StepStatus,
	Task,
)
from .store import ArtifactStore

__all__ = [
	"Artifact",
	"ArtifactKind",
	"ArtifactStore",
	"ContextHit",
	"OrchestrationPhase",
	"OrchestrationState",
	"PlanDocument",
	"PlanStep",
	"RunResult",
	"StepStatus",
	"Task",
]
