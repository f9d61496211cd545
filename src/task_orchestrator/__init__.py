"""task-orchestrator: drive tasks through discover, plan, execute and verify."""

__version__ = "0.1.0"
