"""
Exceptions raised by the orchestration engine.
"""

from typing import Optional


class OrchestratorError(Exception):
    """Base class for orchestration errors."""
    pass


class ProviderError(OrchestratorError):
    """Raised when the CI provider answers with an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(OrchestratorError):
    """Raised when a referenced entity does not exist."""
    pass


class JobFailedError(OrchestratorError):
    """Raised when a provider job finishes as failed or canceled."""

    def __init__(self, job_id: int, status: str):
        super().__init__(f"job {job_id} finished with status {status}")
        self.job_id = job_id
        self.status = status


class StepFailedError(OrchestratorError):
    """Raised when a step ends in error."""

    def __init__(self, step_id: int, reason: str):
        super().__init__(f"step {step_id} failed: {reason}")
        self.step_id = step_id
