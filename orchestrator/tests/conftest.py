"""Shared fixtures for orchestrator tests."""

from datetime import datetime
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.pool import StaticPool

from orchestrator.src.errors import ProviderError
from orchestrator.src.models.db import Job, Pipeline, Stand, Step, StepState, User
from orchestrator.src.models.job import ProviderJob
from orchestrator.src.models.status import DEFAULT_STEPS
from orchestrator.src.services.store import Store


class FakeProvider:
    """In-memory CI provider that records every call."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.branches = set()
        self.environments = set()
        self.variables: Dict[str, List[str]] = {}
        self.next_pipeline_id = 100
        self.pipeline_jobs: List[ProviderJob] = [
            ProviderJob(id=1, name="[1-1]-create-vm", stage="terraform"),
            ProviderJob(id=2, name="[1-1]-install-k8s", stage="ansible"),
            ProviderJob(id=3, name="[1-1]-deploy", stage="helm"),
        ]
        # Scripted statuses per job id; the last one repeats
        self.job_statuses: Dict[int, List[str]] = {}
        self.failures: Dict[str, Exception] = {}

    def _call(self, name: str, *args):
        self.calls.append((name,) + args)
        if name in self.failures:
            raise self.failures[name]

    def called(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    async def branch_exists(self, name):
        self._call("branch_exists", name)
        return name in self.branches

    async def clone_branch(self, name, ref):
        self._call("clone_branch", name, ref)
        self.branches.add(name)

    async def environment_exists(self, name):
        self._call("environment_exists", name)
        return name in self.environments

    async def create_environment(self, name):
        self._call("create_environment", name)
        self.environments.add(name)

    async def variables_exist(self, name):
        self._call("variables_exist", name)
        return name in self.variables

    async def create_variables(self, name, products):
        self._call("create_variables", name, list(products))
        self.variables[name] = list(products)

    async def update_variables(self, name, products):
        self._call("update_variables", name, list(products))
        self.variables[name] = list(products)

    async def run_pipeline(self, branch):
        self._call("run_pipeline", branch)
        self.next_pipeline_id += 1
        return self.next_pipeline_id

    async def get_jobs_for_pipeline(self, pipeline_id):
        self._call("get_jobs_for_pipeline", pipeline_id)
        return list(self.pipeline_jobs)

    async def run_job(self, job_id):
        self._call("run_job", job_id)

    async def get_job_status(self, job_id):
        self._call("get_job_status", job_id)
        statuses = self.job_statuses.get(job_id, ["success"])
        if len(statuses) > 1:
            return statuses.pop(0)
        return statuses[0]


@pytest.fixture
def store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = Store(engine)
    store.create_schema()
    yield store
    engine.dispose()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def make_stand(store):
    """Factory for a stand owned by user 1."""

    def _make(name="stand-1", status="created", products=None, ref="master"):
        with store.transaction() as session:
            if session.get(User, 1) is None:
                session.add(User(id=1, name="tester", role="admin"))
            stand = Stand(
                name=name,
                user_id=1,
                products=products if products is not None else ["A", "B"],
                ref=ref,
                status=status,
            )
            session.add(stand)
        return stand

    return _make


@pytest.fixture
def seed_pipeline(store):
    """
    Factory for a pipeline with the three default steps.

    `jobs` maps a step order to a list of (gitlab id, status, started_at) tuples.
    """

    def _seed(
        stand: Stand,
        status: str = "pending",
        step_statuses: Optional[Dict[int, str]] = None,
        jobs: Optional[Dict[int, List[tuple]]] = None,
    ) -> Pipeline:
        step_statuses = step_statuses or {}
        jobs = jobs or {}
        with store.transaction() as session:
            pipeline = Pipeline(
                name=stand.name,
                stand_id=stand.id,
                status=status,
                gitlab_pipeline_id=500,
                created_at=datetime.utcnow(),
            )
            session.add(pipeline)
            session.flush()
            for default in DEFAULT_STEPS:
                order = default["order"]
                step = Step(
                    pipeline_id=pipeline.id,
                    name=default["name"],
                    step_order=order,
                    status=step_statuses.get(order, "pending"),
                )
                session.add(step)
                session.flush()
                for job_order, (gitlab_id, job_status, started_at) in enumerate(jobs.get(order, []), start=1):
                    session.add(
                        Job(
                            step_id=step.id,
                            gitlab_job_id=gitlab_id,
                            name=f"[{job_order}-1]-job-{gitlab_id}",
                            job_order=job_order,
                            status=job_status,
                            started_at=started_at,
                        )
                    )
        return pipeline

    return _seed


@pytest.fixture
def rows(store):
    """Read helpers returning fresh rows from the database."""

    class Rows:
        def stand(self, name):
            return store.get_stand(name)

        def pipelines(self, stand_id):
            with store.session_factory() as session:
                return list(
                    session.scalars(
                        select(Pipeline).where(Pipeline.stand_id == stand_id).order_by(Pipeline.id)
                    )
                )

        def steps(self, pipeline_id):
            with store.session_factory() as session:
                return store.steps_of_pipeline(session, pipeline_id)

        def jobs(self, step_id):
            with store.session_factory() as session:
                return list(
                    session.scalars(select(Job).where(Job.step_id == step_id).order_by(Job.job_order))
                )

        def step_states(self):
            with store.session_factory() as session:
                return list(session.scalars(select(StepState).order_by(StepState.id)))

    return Rows()


@pytest.fixture
def provider_error():
    return ProviderError("gitlab unavailable", status_code=502)
