"""
Pipeline executor - drives pending pipelines of a stand through their steps and jobs.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional

from orchestrator.src.errors import JobFailedError, StepFailedError
from orchestrator.src.gitlab.client import CIProvider
from orchestrator.src.models.db import Job, Pipeline, Stand, Step
from orchestrator.src.models.status import (
    FAILED_JOB_STATUSES,
    IN_FLIGHT_JOB_STATUSES,
    JobStatus,
    PipelineStatus,
    StandStatus,
    StepStatus,
)
from orchestrator.src.services.store import Store

logger = logging.getLogger(__name__)

class PipelineExecutor:
    def __init__(
        self,
        store: Store,
        provider: CIProvider,
        job_statuses: Optional[Dict[str, str]] = None,
        poll_interval: float = 10.0,
    ):
        self.store = store
        self.provider = provider
        # Last status written per provider job, shared with the owning scheduler
        self.job_statuses = job_statuses if job_statuses is not None else {}
        self.poll_interval = poll_interval

    async def execute_stand(self, stand: Stand) -> bool:
        """
        Run every pending pipeline of the stand, one at a time.
        Returns True if all of them succeeded.
        """
        pipelines = self.store.pending_pipelines(stand.id)
        if not pipelines:
            logger.info(f"Stand {stand.name} has no pending pipelines")
            return False

        logger.info(f"Processing stand {stand.name} (ID: {stand.id})")
        self.store.update_stand_status(stand.id, StandStatus.RUNNING.value)

        for pipeline in pipelines:
            try:
                await self.execute_pipeline(pipeline)
            except Exception:
                self.store.update_stand_status(stand.id, StandStatus.ERROR.value)
                logger.error(f"Pipeline {pipeline.id} of stand {stand.name} failed")
                raise

        self.store.update_stand_status(stand.id, StandStatus.SUCCESS.value)
        logger.info(f"Stand {stand.name} finished successfully")
        return True

    async def execute_pipeline(self, pipeline: Pipeline):
        steps = self.store.pending_steps(pipeline.id)

        self.store.update_pipeline_status(
            pipeline.id, PipelineStatus.RUNNING.value, started_at=datetime.utcnow()
        )

        for step in steps:
            try:
                await self.execute_step(step)
            except Exception:
                self.store.append_step_state(step.id, StepStatus.ERROR.value)
                self.store.update_pipeline_status(
                    pipeline.id, PipelineStatus.ERROR.value, finished_at=datetime.utcnow()
                )
                logger.exception(f"Step {step.id} ({step.name}) of pipeline {pipeline.id} failed")
                raise

            self.store.append_step_state(step.id, StepStatus.SUCCESS.value)
            logger.info(f"Step {step.id} ({step.name}) of pipeline {pipeline.id} succeeded")

        self.store.update_pipeline_status(
            pipeline.id, PipelineStatus.SUCCESS.value, finished_at=datetime.utcnow()
        )
        logger.info(f"Pipeline {pipeline.id} finished successfully")

    async def execute_step(self, step: Step):
        """
        Bring every unfinished job of the step to success.

        A job that already failed fails the step before anything is polled.
        Jobs still in flight on the provider are awaited before manual jobs
        are triggered.
        """
        jobs = self.store.unfinished_jobs(step.id)

        for job in jobs:
            if job.status in FAILED_JOB_STATUSES:
                self.store.update_step_status(step.id, StepStatus.ERROR.value)
                logger.error(f"Step {step.id} failed because job {job.id} is {job.status}")
                raise StepFailedError(step.id, f"job {job.id} is {job.status}")

        self.store.update_step_status(step.id, StepStatus.RUNNING.value)

        in_flight = [job for job in jobs if job.status in IN_FLIGHT_JOB_STATUSES]
        manual = [job for job in jobs if job.status == JobStatus.MANUAL.value]

        try:
            for job in in_flight:
                await self.monitor_job(job)
                self.store.update_job(job.id, finished_at=datetime.utcnow())
            for job in manual:
                await self.execute_job(job)
        except Exception as e:
            self.store.update_step_status(step.id, StepStatus.ERROR.value)
            raise StepFailedError(step.id, str(e)) from e

        self.store.update_step_status(step.id, StepStatus.SUCCESS.value)

    async def execute_job(self, job: Job):
        """Trigger a manual job unless it was already started, then wait for it."""
        logger.info(f"Running job {job.id} (GitLab job ID: {job.gitlab_job_id})")

        if job.started_at is None:
            await self.start_job(job)
        else:
            logger.info(f"Job {job.id} was started before, checking its status")

        await self.monitor_job(job, started=True)
        self.store.update_job(job.id, finished_at=datetime.utcnow())

    async def start_job(self, job: Job):
        await self.provider.run_job(job.gitlab_job_id)
        self.store.update_job(job.id, started_at=datetime.utcnow())

    async def monitor_job(self, job: Job, started: Optional[bool] = None):
        """
        Poll the job until it succeeds; the first check is immediate.

        A job that was never started and turns manual on the provider
        (its stage was reached) is played here.
        """
        job_key = f"job_{job.gitlab_job_id}"
        if started is None:
            started = job.started_at is not None

        while True:
            status = await self.check_job_status(job, job_key)
            if status == JobStatus.SUCCESS:
                return
            if status == JobStatus.MANUAL and not started:
                logger.info(f"Job {job.id} became manual, starting it")
                await self.start_job(job)
                started = True
            await asyncio.sleep(self.poll_interval)

    async def check_job_status(self, job: Job, job_key: str) -> JobStatus:
        """
        Fetch the job status and store it if it changed.
        Raises if the job failed.
        """
        try:
            raw_status = await self.provider.get_job_status(job.gitlab_job_id)
        except Exception:
            self.job_statuses.pop(job_key, None)
            logger.error(f"Failed to get status of job {job.gitlab_job_id}")
            raise

        status = JobStatus.from_provider(raw_status)

        if self.job_statuses.get(job_key) != status.value:
            self.store.update_job_status(job.id, status.value)
            self.job_statuses[job_key] = status.value

        if status.value in FAILED_JOB_STATUSES:
            self.job_statuses.pop(job_key, None)
            logger.error(f"Job {job.id} finished with status {status.value}")
            raise JobFailedError(job.id, status.value)

        if status == JobStatus.SUCCESS:
            self.job_statuses.pop(job_key, None)

        return status
