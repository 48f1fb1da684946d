from orchestrator.src.models.status import (
    StandStatus,
    PipelineStatus,
    StepStatus,
    JobStatus,
    FAILED_JOB_STATUSES,
    IN_FLIGHT_JOB_STATUSES,
    STAGE_ORDER,
    DEFAULT_STEPS,
)
from orchestrator.src.models.job import ProviderJob

__all__ = [
    "StandStatus",
    "PipelineStatus",
    "StepStatus",
    "JobStatus",
    "FAILED_JOB_STATUSES",
    "IN_FLIGHT_JOB_STATUSES",
    "STAGE_ORDER",
    "DEFAULT_STEPS",
    "ProviderJob",
]
