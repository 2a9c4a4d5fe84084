import logging
from typing import Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.db.models import AgentDefinitionRow, JobDefinitionRow, JobIterationRow
from app.db.session import Base, make_sessionmaker
from app.domain.errors import DuplicateKeyError, RecordNotFoundError, StoreError
from app.domain.models import AgentDefinition, JobDefinition, JobIteration, Page
from app.domain.states import IterationStatus, JobStatus
from app.domain.timestamps import normalize, utcnow
from app.stores.base import AgentDefinitionStore, JobDefinitionStore, JobIterationStore

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT, used for the agent upsert
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class _SqlStore:
    table = None

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = make_sessionmaker(engine)

    async def prepare(self) -> bool:
        # create_all skips tables that already exist
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=[self.table])
        logger.info("Prepared table %s", self.table.name)
        return True


def _check_page(page: int, size: int):
    if page < 0 or size < 1:
        raise ValueError(f"Invalid page request: page={page}, size={size}")


def _to_job(row: JobDefinitionRow) -> JobDefinition:
    return JobDefinition(
        id=row.id,
        code=row.code,
        group=row.group,
        type=row.type,
        cluster=row.cluster,
        status=JobStatus(row.status),
        job_data=dict(row.job_data or {}),
        created=normalize(row.created),
        created_by=row.created_by,
        modified=normalize(row.modified),
    )


def _copy_job_fields(row: JobDefinitionRow, definition: JobDefinition):
    row.code = definition.code
    row.group = definition.group
    row.type = definition.type
    row.cluster = definition.cluster
    row.status = definition.status
    row.job_data = dict(definition.job_data or {})
    row.created = definition.created
    row.created_by = definition.created_by
    row.modified = definition.modified


class SqlJobDefinitionStore(_SqlStore, JobDefinitionStore):
    table = JobDefinitionRow.__table__

    async def insert(self, definition: JobDefinition) -> JobDefinition:
        row = JobDefinitionRow(id=definition.id)
        _copy_job_fields(row, definition)
        async with self.session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                # Primary key / unique code collision from a concurrent add
                await session.rollback()
                raise DuplicateKeyError("Job definition", definition.id) from e
            return _to_job(row)

    async def update(self, definition: JobDefinition) -> JobDefinition:
        async with self.session_factory() as session:
            row = await session.get(JobDefinitionRow, definition.id)
            if not row:
                raise RecordNotFoundError("Job definition", definition.id)
            _copy_job_fields(row, definition)
            await session.commit()
            return _to_job(row)

    async def get_by_id(self, id: str) -> Optional[JobDefinition]:
        async with self.session_factory() as session:
            row = await session.get(JobDefinitionRow, id)
            return _to_job(row) if row else None

    async def delete_by_id(self, id: str) -> Optional[JobDefinition]:
        async with self.session_factory() as session:
            row = await session.get(JobDefinitionRow, id)
            if not row:
                return None
            deleted = _to_job(row)
            await session.delete(row)
            await session.commit()
            return deleted

    async def get_all(self) -> list[JobDefinition]:
        return await self._select()

    async def get_by_type(self, type: str) -> list[JobDefinition]:
        return await self._select(JobDefinitionRow.type == type)

    async def get_by_status_in(
        self,
        type: str,
        group: str,
        cluster: str,
        statuses: Iterable[JobStatus],
    ) -> list[JobDefinition]:
        return await self._select(
            JobDefinitionRow.type == type,
            JobDefinitionRow.group == group,
            JobDefinitionRow.cluster == cluster,
            JobDefinitionRow.status.in_([str(s) for s in statuses]),
        )

    async def get_all_groups(self, cluster: str) -> list[str]:
        return await self._distinct(JobDefinitionRow.group, cluster)

    async def get_all_types(self, cluster: str) -> list[str]:
        return await self._distinct(JobDefinitionRow.type, cluster)

    async def get_page_by_code(self, page: int, size: int) -> Page[JobDefinition]:
        _check_page(page, size)
        async with self.session_factory() as session:
            total = await session.scalar(select(func.count()).select_from(JobDefinitionRow))
            stmt = (
                select(JobDefinitionRow)
                .order_by(JobDefinitionRow.code.asc())
                .offset(page * size)
                .limit(size)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return Page(items=[_to_job(r) for r in rows], total=total or 0)

    async def _select(self, *conditions) -> list[JobDefinition]:
        stmt = select(JobDefinitionRow).where(*conditions).order_by(JobDefinitionRow.code.asc())
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_job(r) for r in rows]

    async def _distinct(self, column, cluster: str) -> list[str]:
        stmt = (
            select(column)
            .where(JobDefinitionRow.cluster == cluster, column.is_not(None))
            .distinct()
            .order_by(column)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())


def _to_iteration(row: JobIterationRow) -> JobIteration:
    return JobIteration(
        id=row.id,
        job_id=row.job_id,
        status=IterationStatus(row.status),
        timestamp=normalize(row.timestamp),
        message=row.message,
        runtime=row.runtime,
    )


class SqlJobIterationStore(_SqlStore, JobIterationStore):
    table = JobIterationRow.__table__

    async def insert(self, iteration: JobIteration) -> JobIteration:
        row = JobIterationRow(
            job_id=iteration.job_id,
            status=iteration.status,
            timestamp=normalize(iteration.timestamp) or utcnow(),
            message=iteration.message,
            runtime=iteration.runtime,
        )
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()
            return _to_iteration(row)

    async def get_page_by_timestamp(
        self,
        job_id: Optional[str],
        statuses: Optional[Iterable[IterationStatus]],
        page: int,
        size: int,
    ) -> Page[JobIteration]:
        _check_page(page, size)
        conditions = []
        if job_id is not None:
            conditions.append(JobIterationRow.job_id == job_id)
        if statuses:
            conditions.append(JobIterationRow.status.in_([str(s) for s in statuses]))

        async with self.session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(JobIterationRow).where(*conditions)
            )
            stmt = (
                select(JobIterationRow)
                .where(*conditions)
                .order_by(JobIterationRow.timestamp.desc(), JobIterationRow.id.desc())
                .offset(page * size)
                .limit(size)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return Page(items=[_to_iteration(r) for r in rows], total=total or 0)


def _to_agent(row: AgentDefinitionRow) -> AgentDefinition:
    return AgentDefinition(
        id=row.id,
        cluster=row.cluster,
        name=row.name,
        health=dict(row.health) if row.health is not None else None,
        registered=normalize(row.registered),
    )


class SqlAgentDefinitionStore(_SqlStore, AgentDefinitionStore):
    table = AgentDefinitionRow.__table__

    async def update(self, agent: AgentDefinition) -> AgentDefinition:
        dialect = self.engine.dialect.name
        if dialect not in _UPSERT_INSERTS:
            raise StoreError(f"Agent upsert is not supported on {dialect}")

        values = {
            "cluster": agent.cluster,
            "name": agent.name,
            "health": dict(agent.health) if agent.health is not None else None,
            "registered": normalize(agent.registered),
        }
        stmt = _UPSERT_INSERTS[dialect](AgentDefinitionRow).values(id=agent.id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=["id"], set_=values)

        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()
        return AgentDefinition(id=agent.id, **values)

    async def get_by_id(self, id: str) -> Optional[AgentDefinition]:
        async with self.session_factory() as session:
            row = await session.get(AgentDefinitionRow, id)
            return _to_agent(row) if row else None

    async def delete_by_id(self, id: str) -> Optional[AgentDefinition]:
        async with self.session_factory() as session:
            row = await session.get(AgentDefinitionRow, id)
            if not row:
                return None
            deleted = _to_agent(row)
            await session.delete(row)
            await session.commit()
            return deleted

    async def get_all(self) -> list[AgentDefinition]:
        stmt = select(AgentDefinitionRow).order_by(AgentDefinitionRow.id.asc())
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_agent(r) for r in rows]


__all__ = [
    "SqlJobDefinitionStore",
    "SqlJobIterationStore",
    "SqlAgentDefinitionStore",
]
