"""
In-memory store implementations.

Suitable for testing and single-process deployments.
Thread-safe via asyncio.Lock; records are copied on the way in and out so
callers can never mutate stored state behind the store's back.
"""

import asyncio
import copy
from typing import Iterable, Optional

from app.domain.errors import DuplicateKeyError, RecordNotFoundError
from app.domain.models import AgentDefinition, JobDefinition, JobIteration, Page
from app.domain.states import IterationStatus, JobStatus
from app.domain.timestamps import normalize, utcnow
from app.stores.base import AgentDefinitionStore, JobDefinitionStore, JobIterationStore


def _paginate(items: list, page: int, size: int) -> Page:
    if page < 0 or size < 1:
        raise ValueError(f"Invalid page request: page={page}, size={size}")
    start = page * size
    return Page(items=items[start:start + size], total=len(items))


class InMemoryJobDefinitionStore(JobDefinitionStore):

    def __init__(self):
        self._definitions: dict[str, JobDefinition] = {}
        self._lock = asyncio.Lock()

    async def prepare(self) -> bool:
        return True

    async def insert(self, definition: JobDefinition) -> JobDefinition:
        async with self._lock:
            if definition.id in self._definitions:
                raise DuplicateKeyError("Job definition", definition.id)
            self._definitions[definition.id] = copy.deepcopy(definition)
            return copy.deepcopy(definition)

    async def update(self, definition: JobDefinition) -> JobDefinition:
        async with self._lock:
            if definition.id not in self._definitions:
                raise RecordNotFoundError("Job definition", definition.id)
            self._definitions[definition.id] = copy.deepcopy(definition)
            return copy.deepcopy(definition)

    async def get_by_id(self, id: str) -> Optional[JobDefinition]:
        async with self._lock:
            return copy.deepcopy(self._definitions.get(id))

    async def delete_by_id(self, id: str) -> Optional[JobDefinition]:
        async with self._lock:
            return self._definitions.pop(id, None)

    async def get_all(self) -> list[JobDefinition]:
        return await self._select(lambda d: True)

    async def get_by_type(self, type: str) -> list[JobDefinition]:
        return await self._select(lambda d: d.type == type)

    async def get_by_status_in(
        self,
        type: str,
        group: str,
        cluster: str,
        statuses: Iterable[JobStatus],
    ) -> list[JobDefinition]:
        wanted = set(statuses)
        return await self._select(
            lambda d: d.type == type
            and d.group == group
            and d.cluster == cluster
            and d.status in wanted
        )

    async def get_all_groups(self, cluster: str) -> list[str]:
        async with self._lock:
            return sorted({
                d.group for d in self._definitions.values()
                if d.cluster == cluster and d.group is not None
            })

    async def get_all_types(self, cluster: str) -> list[str]:
        async with self._lock:
            return sorted({
                d.type for d in self._definitions.values()
                if d.cluster == cluster and d.type is not None
            })

    async def get_page_by_code(self, page: int, size: int) -> Page[JobDefinition]:
        ordered = await self.get_all()
        return _paginate(ordered, page, size)

    async def _select(self, predicate) -> list[JobDefinition]:
        async with self._lock:
            found = [copy.deepcopy(d) for d in self._definitions.values() if predicate(d)]
        found.sort(key=lambda d: d.code)
        return found


class InMemoryJobIterationStore(JobIterationStore):

    def __init__(self):
        self._iterations: list[JobIteration] = []
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def prepare(self) -> bool:
        return True

    async def insert(self, iteration: JobIteration) -> JobIteration:
        async with self._lock:
            stored = copy.deepcopy(iteration)
            stored.id = self._next_id
            self._next_id += 1
            stored.timestamp = normalize(stored.timestamp) or utcnow()
            self._iterations.append(stored)
            return copy.deepcopy(stored)

    async def get_page_by_timestamp(
        self,
        job_id: Optional[str],
        statuses: Optional[Iterable[IterationStatus]],
        page: int,
        size: int,
    ) -> Page[JobIteration]:
        wanted = set(statuses) if statuses else None
        async with self._lock:
            found = [
                copy.deepcopy(i) for i in self._iterations
                if (job_id is None or i.job_id == job_id)
                and (wanted is None or i.status in wanted)
            ]
        found.sort(key=lambda i: (i.timestamp, i.id), reverse=True)
        return _paginate(found, page, size)


class InMemoryAgentDefinitionStore(AgentDefinitionStore):

    def __init__(self):
        self._agents: dict[str, AgentDefinition] = {}
        self._lock = asyncio.Lock()

    async def prepare(self) -> bool:
        return True

    async def update(self, agent: AgentDefinition) -> AgentDefinition:
        async with self._lock:
            self._agents[agent.id] = copy.deepcopy(agent)
            return copy.deepcopy(agent)

    async def get_by_id(self, id: str) -> Optional[AgentDefinition]:
        async with self._lock:
            return copy.deepcopy(self._agents.get(id))

    async def delete_by_id(self, id: str) -> Optional[AgentDefinition]:
        async with self._lock:
            return self._agents.pop(id, None)

    async def get_all(self) -> list[AgentDefinition]:
        async with self._lock:
            agents = [copy.deepcopy(a) for a in self._agents.values()]
        agents.sort(key=lambda a: a.id)
        return agents


__all__ = [
    "InMemoryJobDefinitionStore",
    "InMemoryJobIterationStore",
    "InMemoryAgentDefinitionStore",
]
