"""
Database models for the orchestrator (sync version).
"""

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

class User(Base):
    __tablename__ = "users"

    # Chat id of the user, assigned by the caller
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)

    stands = relationship("Stand", back_populates="user")

class Stand(Base):
    __tablename__ = "stands"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    products = Column(JSON, nullable=False, default=list)
    ref = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default="created", index=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="stands")
    pipelines = relationship("Pipeline", back_populates="stand")

class Pipeline(Base):
    __tablename__ = "pipelines"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    stand_id = Column(Integer, ForeignKey("stands.id", ondelete="CASCADE"), nullable=False, index=True)
    gitlab_pipeline_id = Column(Integer, index=True)
    status = Column(String(50), nullable=False, default="pending")
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    stand = relationship("Stand", back_populates="pipelines")
    steps = relationship("Step", back_populates="pipeline")

class Step(Base):
    __tablename__ = "steps"

    id = Column(Integer, primary_key=True)
    pipeline_id = Column(Integer, ForeignKey("pipelines.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    step_order = Column(Integer, nullable=False, default=0, index=True)
    status = Column(String(50), nullable=False, default="pending")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    pipeline = relationship("Pipeline", back_populates="steps")
    jobs = relationship("Job", back_populates="step")

class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True)
    step_id = Column(Integer, ForeignKey("steps.id", ondelete="CASCADE"), nullable=False, index=True)
    gitlab_job_id = Column(Integer, index=True)
    name = Column(String(255), nullable=False)
    stage = Column(String(255))
    job_order = Column(Integer, nullable=False, default=0)
    status = Column(String(50), nullable=False)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    step = relationship("Step", back_populates="jobs")

class StepState(Base):
    """Terminal outcome of a step, delivered to the user by an external notifier."""
    __tablename__ = "step_states"

    id = Column(Integer, primary_key=True)
    stand_name = Column(String(255), nullable=False)
    step_name = Column(String(255), nullable=False)
    user_id = Column(BigInteger, nullable=False, index=True)
    status = Column(String(50), nullable=False)
    step_order = Column(Integer, nullable=False)
    delivered = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

class Product(Base):
    """Catalogue entry for a product that can be deployed on a stand."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    code = Column(String(100), nullable=False, unique=True, index=True)
