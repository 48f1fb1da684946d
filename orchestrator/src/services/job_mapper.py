"""
Map provider jobs onto pipeline steps.
"""

import logging
import re
from typing import Dict, List

from orchestrator.src.models.db import Job, Step
from orchestrator.src.models.job import ProviderJob
from orchestrator.src.models.status import STAGE_ORDER, JobStatus

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

def job_number(name: str) -> int:
    """
    Leading number of a job name such as "[10-1]-deploy".
    Names without one sort as 0.
    """
    head = name.strip("[]").split("-")[0]
    match = _LEADING_INT.match(head)
    if not match:
        return 0
    return int(match.group(1))

def sort_job_names(names: List[str]) -> List[str]:
    return sorted(names, key=job_number)

def group_by_stage(jobs: List[ProviderJob]) -> Dict[str, Dict[str, ProviderJob]]:
    """Group jobs by stage; a repeated job name within a stage keeps the last one."""
    stages: Dict[str, Dict[str, ProviderJob]] = {}
    for job in jobs:
        stages.setdefault(job.stage, {})[job.name] = job
    return stages

def map_jobs_to_steps(jobs: List[ProviderJob], steps: List[Step]) -> List[Job]:
    """
    Build Job rows for the given steps from the provider job list.

    Jobs whose stage is not part of the stage taxonomy are dropped.
    """
    step_ids = {step.step_order: step.id for step in steps}
    result: List[Job] = []

    for stage, stage_jobs in group_by_stage(jobs).items():
        order = STAGE_ORDER.get(stage)
        if order is None or order not in step_ids:
            logger.warning(
                f"Dropping {len(stage_jobs)} job(s) of unknown stage '{stage}': "
                f"{', '.join(sorted(stage_jobs))}"
            )
            continue

        for job_order, name in enumerate(sort_job_names(list(stage_jobs)), start=1):
            provider_job = stage_jobs[name]
            result.append(
                Job(
                    step_id=step_ids[order],
                    gitlab_job_id=provider_job.id,
                    name=provider_job.name,
                    stage=provider_job.stage,
                    job_order=job_order,
                    status=JobStatus.from_provider(provider_job.status).value,
                )
            )

    return result
