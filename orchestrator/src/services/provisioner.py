"""
Provisioning executor - turns a freshly created stand into a running GitLab pipeline.
"""

import logging

from orchestrator.src.gitlab.client import CIProvider
from orchestrator.src.models.db import Stand
from orchestrator.src.models.status import StandStatus
from orchestrator.src.services.job_mapper import map_jobs_to_steps
from orchestrator.src.services.store import Store

logger = logging.getLogger(__name__)

class Provisioner:
    def __init__(self, store: Store, provider: CIProvider):
        self.store = store
        self.provider = provider

    async def provision(self, stand: Stand):
        """
        Prepare the branch, environment and variables of a stand, then trigger
        its pipeline and record the resulting jobs.

        The provider resources are checked before being created, so a stand
        that failed halfway is safe to provision again. The database part is a
        single transaction: on any error nothing is kept and the stand stays
        'created'.
        """
        logger.info(f"Provisioning stand {stand.name}")

        await self.ensure_branch(stand)
        await self.ensure_environment(stand)
        await self.ensure_variables(stand)

        with self.store.transaction() as session:
            pipeline = self.store.create_pipeline(session, stand)

            gitlab_pipeline_id = await self.provider.run_pipeline(stand.name)
            self.store.set_pipeline_external_id(session, pipeline.id, gitlab_pipeline_id)
            logger.info(f"Pipeline {gitlab_pipeline_id} triggered for {stand.name}")

            provider_jobs = await self.provider.get_jobs_for_pipeline(gitlab_pipeline_id)
            steps = self.store.steps_of_pipeline(session, pipeline.id)
            jobs = map_jobs_to_steps(provider_jobs, steps)
            self.store.add_jobs(session, jobs)
            logger.info(
                f"Recorded {len(jobs)} of {len(provider_jobs)} jobs for {stand.name}"
            )

            self.store.update_stand_status(stand.id, StandStatus.PENDING.value, session=session)

        logger.info(f"Stand {stand.name} provisioned and moved to pending")

    async def ensure_branch(self, stand: Stand):
        if await self.provider.branch_exists(stand.name):
            logger.info(f"Branch {stand.name} already exists")
            return
        await self.provider.clone_branch(stand.name, stand.ref)
        logger.info(f"Branch {stand.name} created from {stand.ref}")

    async def ensure_environment(self, stand: Stand):
        if await self.provider.environment_exists(stand.name):
            logger.info(f"Environment {stand.name} already exists")
            return
        await self.provider.create_environment(stand.name)
        logger.info(f"Environment {stand.name} created")

    async def ensure_variables(self, stand: Stand):
        products = self.store.stand_products(stand.name)

        # Existing variables are overwritten with the current product list
        if await self.provider.variables_exist(stand.name):
            await self.provider.update_variables(stand.name, products)
            logger.info(f"Variables updated for {stand.name}")
        else:
            await self.provider.create_variables(stand.name, products)
            logger.info(f"Variables created for {stand.name}")
