"""Orchestrator module - Context retrieval, planning, execution, verification."""

from .engine import OrchestrationReport, Orchestrator
from .executor import ExecutionLoop, LivePlan
from .retriever import ContextRetriever
from .synthesizer import PlanSynthesizer
from .verifier import VerificationLoop, VerificationOutcome

__all__ = [
	"ContextRetriever",
	"ExecutionLoop",
	"LivePlan",
	"OrchestrationReport",
	"Orchestrator",
	"PlanSynthesizer",
	"VerificationLoop",
	"VerificationOutcome",
]
