"""
Persistent store for stands, pipelines, steps, jobs and step notifications.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import create_engine, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from orchestrator.src.errors import NotFoundError
from orchestrator.src.models.db import Base, Job, Pipeline, Stand, Step, StepState
from orchestrator.src.models.queries import (
    mark_delivered_statement,
    stand_status_query,
    undelivered_notifications_query,
)
from orchestrator.src.models.status import (
    DEFAULT_STEPS,
    JobStatus,
    PipelineStatus,
    StandStatus,
    StepStatus,
)

logger = logging.getLogger(__name__)

class Store:
    """Queries and single-row updates, plus transaction scoping for multi-row work."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, **engine_kwargs) -> "Store":
        return cls(create_engine(database_url, **engine_kwargs))

    def create_schema(self):
        Base.metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session committed on exit and rolled back on any exception."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # Stands

    def stands_by_status(self, status: str) -> List[Stand]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(Stand).where(Stand.status == status).order_by(Stand.created_at, Stand.id)
                )
            )

    def get_stand(self, name: str, session: Optional[Session] = None) -> Stand:
        if session is None:
            with self.session_factory() as own:
                return self.get_stand(name, own)
        stand = session.scalars(select(Stand).where(Stand.name == name)).first()
        if stand is None:
            raise NotFoundError(f"stand {name} not found")
        return stand

    def stand_status(self, name: str) -> str:
        with self.session_factory() as session:
            status = session.scalar(stand_status_query(name))
        if status is None:
            raise NotFoundError(f"stand {name} not found")
        return status

    def stand_products(self, name: str, session: Optional[Session] = None) -> List[str]:
        stand = self.get_stand(name, session)
        return list(stand.products or [])

    def update_stand_status(self, stand_id: int, status: str, session: Optional[Session] = None):
        stmt = update(Stand).where(Stand.id == stand_id).values(status=status)
        if session is not None:
            session.execute(stmt)
            return
        with self.session_factory() as own:
            own.execute(stmt)
            own.commit()
        logger.info(f"Updated stand {stand_id} status to {status}")

    # Pipelines

    def pending_pipelines(self, stand_id: int) -> List[Pipeline]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(Pipeline)
                    .where(Pipeline.stand_id == stand_id)
                    .where(Pipeline.status == PipelineStatus.PENDING.value)
                    .order_by(Pipeline.created_at, Pipeline.id)
                )
            )

    def create_pipeline(self, session: Session, stand: Stand) -> Pipeline:
        """Add a pending pipeline for the stand together with its default steps."""
        pipeline = Pipeline(
            name=stand.name,
            stand_id=stand.id,
            status=PipelineStatus.PENDING.value,
            created_at=datetime.utcnow(),
        )
        session.add(pipeline)
        session.flush()

        for step in DEFAULT_STEPS:
            session.add(
                Step(
                    pipeline_id=pipeline.id,
                    name=step["name"],
                    description=step["description"],
                    step_order=step["order"],
                    status=StepStatus.PENDING.value,
                )
            )
        session.flush()
        return pipeline

    def set_pipeline_external_id(self, session: Session, pipeline_id: int, external_id: int):
        session.execute(
            update(Pipeline).where(Pipeline.id == pipeline_id).values(gitlab_pipeline_id=external_id)
        )

    def update_pipeline_status(
        self,
        pipeline_id: int,
        status: str,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ):
        values = {"status": status}
        if started_at:
            values["started_at"] = started_at
        if finished_at:
            values["finished_at"] = finished_at

        with self.session_factory() as session:
            session.execute(update(Pipeline).where(Pipeline.id == pipeline_id).values(**values))
            session.commit()
        logger.info(f"Updated pipeline {pipeline_id} status to {status}")

    # Steps

    def steps_of_pipeline(self, session: Session, pipeline_id: int) -> List[Step]:
        return list(
            session.scalars(
                select(Step).where(Step.pipeline_id == pipeline_id).order_by(Step.step_order)
            )
        )

    def pending_steps(self, pipeline_id: int) -> List[Step]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(Step)
                    .where(Step.pipeline_id == pipeline_id)
                    .where(Step.status == StepStatus.PENDING.value)
                    .order_by(Step.step_order, Step.id)
                )
            )

    def update_step_status(self, step_id: int, status: str):
        with self.session_factory() as session:
            session.execute(update(Step).where(Step.id == step_id).values(status=status))
            session.commit()
        logger.debug(f"Updated step {step_id} status to {status}")

    # Jobs

    def add_jobs(self, session: Session, jobs: List[Job]):
        session.add_all(jobs)
        session.flush()

    def unfinished_jobs(self, step_id: int) -> List[Job]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(Job)
                    .where(Job.step_id == step_id)
                    .where(Job.status != JobStatus.SUCCESS.value)
                    .order_by(Job.job_order, Job.id)
                )
            )

    def update_job(self, job_id: int, **values):
        with self.session_factory() as session:
            session.execute(update(Job).where(Job.id == job_id).values(**values))
            session.commit()
        logger.debug(f"Updated job {job_id}: {values}")

    def update_job_status(self, job_id: int, status: str):
        self.update_job(job_id, status=status)

    # Notifications

    def append_step_state(self, step_id: int, status: str) -> StepState:
        with self.session_factory() as session:
            step = session.get(Step, step_id)
            if step is None:
                raise NotFoundError(f"step {step_id} not found")
            stand = step.pipeline.stand

            state = StepState(
                stand_name=stand.name,
                step_name=step.name,
                user_id=stand.user_id,
                status=status,
                step_order=step.step_order,
                delivered=False,
            )
            session.add(state)
            session.commit()
            logger.info(
                f"Recorded {status} notification for step {step_id} (stand: {stand.name})"
            )
            return state

    def undelivered_notifications(self) -> List[StepState]:
        with self.session_factory() as session:
            return list(session.scalars(undelivered_notifications_query()))

    def mark_notification_delivered(self, notification_id: int):
        with self.session_factory() as session:
            result = session.execute(mark_delivered_statement(notification_id))
            session.commit()
        if result.rowcount == 0:
            raise NotFoundError(f"notification {notification_id} not found")

    # Recovery

    def recover_stand(self, stand_id: int):
        """
        Revert the running work of one stand so the scheduler picks it up again.
        Unfinished jobs become manual and are re-checked before being run.
        """
        with self.transaction() as session:
            session.execute(
                update(Stand).where(Stand.id == stand_id).values(status=StandStatus.PENDING.value)
            )

            pipeline_ids = list(
                session.scalars(
                    select(Pipeline.id)
                    .where(Pipeline.stand_id == stand_id)
                    .where(Pipeline.status == PipelineStatus.RUNNING.value)
                )
            )
            if not pipeline_ids:
                return

            session.execute(
                update(Pipeline)
                .where(Pipeline.id.in_(pipeline_ids))
                .values(status=PipelineStatus.PENDING.value)
            )

            step_ids = list(
                session.scalars(
                    select(Step.id)
                    .where(Step.pipeline_id.in_(pipeline_ids))
                    .where(Step.status == StepStatus.RUNNING.value)
                )
            )
            if not step_ids:
                return

            # Jobs are selected through the running steps, so they go first
            session.execute(
                update(Job)
                .where(Job.step_id.in_(step_ids))
                .where(Job.status != JobStatus.SUCCESS.value)
                .values(status=JobStatus.MANUAL.value)
            )
            session.execute(
                update(Step).where(Step.id.in_(step_ids)).values(status=StepStatus.PENDING.value)
            )
