from datetime import datetime
from typing import Optional, Any

from sqlalchemy import String, Integer, DateTime, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB

from app.db.session import Base
from app.domain.states import JobStatus, IterationStatus

# JSONB on Postgres, plain JSON everywhere else (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")

class JobDefinitionRow(Base):
    __tablename__ = "job_definitions"

    # id is the job code; the primary key is the uniqueness guard for adds
    id: Mapped[str] = mapped_column(String, primary_key=True)
    code: Mapped[str] = mapped_column(String, unique=True, nullable=False)

    # Bucketing ("group"/"type" are reserved words in SQL)
    group: Mapped[Optional[str]] = mapped_column("job_group", String, nullable=True)
    type: Mapped[Optional[str]] = mapped_column("job_type", String, nullable=True, index=True)
    cluster: Mapped[str] = mapped_column(String, nullable=False, index=True)
    status: Mapped[JobStatus] = mapped_column(String, nullable=False, default=JobStatus.ACTIVE)

    # Payload
    job_data: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)

    # Tracking
    created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    modified: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        # Serves the active-set lookup of every status exchange
        Index("ix_job_definitions_sync", "cluster", "job_group", "job_type", "status"),
    )

class JobIterationRow(Base):
    __tablename__ = "job_iterations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # No foreign key: the log outlives deleted definitions
    job_id: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[IterationStatus] = mapped_column(String, nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    message: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    runtime: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_job_iterations_job_ts", "job_id", "timestamp"),
    )

class AgentDefinitionRow(Base):
    __tablename__ = "agent_definitions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    cluster: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Last reported health, replaced wholesale on each heartbeat
    health: Mapped[Optional[dict[str, Any]]] = mapped_column(JsonType, nullable=True)
    registered: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
