"""Collaborators module - Interfaces and built-in adapters the engine delegates to."""

from .base import (
	CodeHit,
	CodeRepository,
	Decomposer,
	ExecutionContext,
	Implementer,
	ImplementationResult,
	TaskRepository,
	TestOutcome,
	TestRunner,
)
from .code import FileCodeRepository
from .commands import CommandImplementer, CommandTestRunner
from .planning import ChecklistDecomposer
from .tasks import FileTaskRepository

__all__ = [
	"ChecklistDecomposer",
	"CodeHit",
	"CodeRepository",
	"CommandImplementer",
	"CommandTestRunner",
	"Decomposer",
	"ExecutionContext",
	"FileCodeRepository",
	"FileTaskRepository",
	"Implementer",
	"ImplementationResult",
	"TaskRepository",
	"TestOutcome",
	"TestRunner",
]
