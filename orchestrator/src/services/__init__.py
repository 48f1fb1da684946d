from orchestrator.src.services.store import Store
from orchestrator.src.services.job_mapper import (
    job_number,
    sort_job_names,
    map_jobs_to_steps,
)
from orchestrator.src.services.recovery import recover_stale_stands
from orchestrator.src.services.provisioner import Provisioner
from orchestrator.src.services.executor import PipelineExecutor

__all__ = [
    "Store",
    "job_number",
    "sort_job_names",
    "map_jobs_to_steps",
    "recover_stale_stands",
    "Provisioner",
    "PipelineExecutor",
]
