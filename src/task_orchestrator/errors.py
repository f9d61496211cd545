"""
Error taxonomy for task orchestration.

Every terminal failure of an orchestration run is an OrchestrationError
subclass carrying a stable ``code`` that is reported to the user alongside
the final phase.
"""

from typing import Optional, Sequence


class OrchestrationError(Exception):
	"""Base class for all orchestration failures."""
	code = "OrchestrationError"


class TaskNotFoundError(OrchestrationError):
	"""Raised when a task reference cannot be resolved."""
	code = "TaskNotFound"


class InvalidTaskError(OrchestrationError):
	"""Raised when a resolved task is unusable (e.g. empty description)."""
	code = "InvalidTask"


class ConfigurationError(OrchestrationError):
	"""Raised when settings or collaborator wiring cannot drive a run."""
	code = "InvalidConfiguration"


class StoreUnavailableError(OrchestrationError):
	"""Raised when the artifact store cannot be read or written."""
	code = "StoreUnavailable"


class ArtifactNotFoundError(OrchestrationError):
	"""Raised when an artifact path does not exist."""
	code = "NotFound"


class PlanningFailedError(OrchestrationError):
	"""Raised when plan synthesis fails."""
	code = "PlanningFailed"


class EmptyPlanError(PlanningFailedError):
	"""Raised when decomposition yields zero steps."""
	code = "EmptyPlan"


class StepFailedError(OrchestrationError):
	"""Raised when a plan step fails to execute."""
	code = "StepFailed"

	def __init__(self, index: int, reason: str):
		self.index = index
		self.reason = reason
		super().__init__(f"Step {index} failed: {reason}")


class VerificationExhaustedError(OrchestrationError):
	"""Raised when verification still fails after the last allowed attempt."""
	code = "VerificationExhausted"

	def __init__(self, results: Sequence = (), failure_summary: Optional[str] = None):
		self.results = list(results)
		self.failure_summary = failure_summary
		super().__init__(
			f"Verification failed after {len(self.results)} attempt(s)"
			+ (f": {failure_summary}" if failure_summary else "")
		)


class UserCancelledError(OrchestrationError):
	"""Raised when the user cancels a run or declines to answer a question."""
	code = "UserCancelled"


class InvalidTransitionError(ValueError):
	"""Raised when a plan step transition would break step ordering."""
	pass


class ClarificationRequired(Exception):
	"""
	Raised by a decomposer that needs an answer before it can plan.

	Not an error: the orchestrator turns it into the ``blocked`` phase.
	"""

	def __init__(self, question: str):
		self.question = question
		super().__init__(question)
