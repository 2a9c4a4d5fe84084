import dataclasses
import logging
from typing import Any, Iterable, Optional, Union

from app.commands.add_job import add_job
from app.commands.heartbeat import heartbeat, registration
from app.commands.mark_as import mark_as
from app.commands.update_job import update_job
from app.domain.models import (
    AgentDefinition,
    JobDefinition,
    JobIteration,
    JobMetadata,
    Page,
    StatusExchangeRequest,
    StatusExchangeResponse,
)
from app.domain.states import IterationStatus, JobStatus
from app.domain.timestamps import normalize, utcnow
from app.scheduler import exchange
from app.settings import settings
from app.stores.base import AgentDefinitionStore, JobDefinitionStore, JobIterationStore

logger = logging.getLogger(__name__)


class SchedulerController:
    """
    Entry point of the control plane.

    Holds nothing but its store handles: every call reads current truth from
    the stores and writes back through them, so one instance can serve any
    number of concurrent requests.

    "Not found" and "already exists" outcomes are reported as None; storage
    failures propagate to the caller unchanged.
    """

    def __init__(
        self,
        definitions: JobDefinitionStore,
        iterations: JobIterationStore,
        agents: AgentDefinitionStore,
    ):
        self.definitions = definitions
        self.iterations = iterations
        self.agents = agents

    async def initialize(self) -> bool:
        """
        Prepares agents, definitions and iterations stores, in that order,
        stopping at the first one that fails.
        """
        for name, store in (
            ("agents", self.agents),
            ("definitions", self.definitions),
            ("iterations", self.iterations),
        ):
            try:
                prepared = await store.prepare()
            except Exception as e:
                logger.error(f"Failed to prepare {name} store: {e}")
                return False
            if not prepared:
                logger.error(f"Failed to prepare {name} store.")
                return False
        return True

    # --- Synchronization ---

    async def get_metadata(self, cluster: Optional[str] = None) -> JobMetadata:
        return await exchange.get_metadata(self.definitions, cluster or settings.DEFAULT_CLUSTER)

    async def status_exchange(self, request: StatusExchangeRequest) -> StatusExchangeResponse:
        request = StatusExchangeRequest(
            group=request.group,
            type=request.type,
            cluster=request.cluster or settings.DEFAULT_CLUSTER,
            state={code: normalize(ts) for code, ts in request.state.items()},
        )
        return await exchange.status_exchange(self.definitions, request)

    async def get_all_active(self, group: str, type: str, cluster: Optional[str] = None) -> list[JobDefinition]:
        return await exchange.get_all_active(self.definitions, group, type, cluster or settings.DEFAULT_CLUSTER)

    # --- Job lifecycle ---

    async def add_job(self, definition: JobDefinition) -> Optional[JobDefinition]:
        return await add_job(self.definitions, definition)

    async def update_job(self, definition: JobDefinition) -> Optional[JobDefinition]:
        return await update_job(self.definitions, definition)

    async def mark_as(self, id: str, status: JobStatus) -> Optional[JobDefinition]:
        return await mark_as(self.definitions, id, status)

    async def get_job(self, id: str) -> Optional[JobDefinition]:
        return await self.definitions.get_by_id(id)

    async def delete_job(self, id: str) -> Optional[JobDefinition]:
        deleted = await self.definitions.delete_by_id(id)
        if deleted:
            logger.info("Job %s deleted", id)
        return deleted

    async def get_all_jobs(self, type: Optional[str] = None) -> list[JobDefinition]:
        if type is None or not type.strip():
            return await self.definitions.get_all()
        return await self.definitions.get_by_type(type)

    async def get_jobs_page(self, page: int, size: int) -> Page[JobDefinition]:
        return await self.definitions.get_page_by_code(page, size)

    # --- Iterations ---

    async def add_iteration(self, iteration: JobIteration) -> JobIteration:
        iteration = dataclasses.replace(iteration, timestamp=normalize(iteration.timestamp) or utcnow())
        return await self.iterations.insert(iteration)

    async def get_iterations(
        self,
        job_id: Optional[str] = None,
        status: Union[IterationStatus, Iterable[IterationStatus], None] = None,
        page: int = 0,
        size: int = settings.DEFAULT_PAGE_SIZE,
    ) -> Page[JobIteration]:
        # A single status is accepted as shorthand for a one-element set
        if isinstance(status, str):
            statuses = [IterationStatus(status)]
        elif status is not None:
            statuses = [IterationStatus(s) for s in status] or None
        else:
            statuses = None
        return await self.iterations.get_page_by_timestamp(job_id, statuses, page, size)

    # --- Agents ---

    async def registration(self, agent: AgentDefinition) -> AgentDefinition:
        return await registration(self.agents, agent)

    async def heartbeat(self, id: str, health: Optional[dict[str, Any]]) -> Optional[AgentDefinition]:
        return await heartbeat(self.agents, id, health)

    async def get_agents(self) -> list[AgentDefinition]:
        return await self.agents.get_all()

    async def get_agent(self, id: str) -> Optional[AgentDefinition]:
        return await self.agents.get_by_id(id)

    async def delete_agent(self, id: str) -> Optional[AgentDefinition]:
        deleted = await self.agents.delete_by_id(id)
        if deleted:
            logger.info("Agent %s deleted", id)
        return deleted
