"""
Status vocabulary and stage taxonomy.
"""

from enum import Enum
from typing import Dict, List


class StandStatus(str, Enum):
    CREATED = "created"
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class PipelineStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class JobStatus(str, Enum):
    MANUAL = "manual"
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELED = "canceled"

    @classmethod
    def from_provider(cls, raw: str) -> "JobStatus":
        """Normalise a GitLab job status into the job vocabulary."""
        try:
            return cls(raw)
        except ValueError:
            return _PROVIDER_ALIASES.get(raw, cls.PENDING)


_PROVIDER_ALIASES = {
    "created": JobStatus.PENDING,
    "waiting_for_resource": JobStatus.PENDING,
    "preparing": JobStatus.PENDING,
    "scheduled": JobStatus.PENDING,
    "skipped": JobStatus.CANCELED,
}

FAILED_JOB_STATUSES = {JobStatus.FAILED.value, JobStatus.CANCELED.value}
IN_FLIGHT_JOB_STATUSES = {JobStatus.PENDING.value, JobStatus.RUNNING.value}

# Provider stage name -> step order
STAGE_ORDER: Dict[str, int] = {
    "terraform": 1,
    "ansible": 2,
    "helm": 3,
}

DEFAULT_STEPS: List[Dict[str, object]] = [
    {"name": "Creating vm", "description": "Initial creation step", "order": 1},
    {"name": "Executing automation", "description": "Kubernetes installation", "order": 2},
    {"name": "Executing helm", "description": "Running helm", "order": 3},
]
