"""
Store capability interfaces consumed by the scheduler controller.

The controller never owns durable state: every operation reads current truth
through these interfaces and writes back through them. Implementations must
be safe for concurrent use from many asyncio tasks.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from app.domain.models import AgentDefinition, JobDefinition, JobIteration, Page
from app.domain.states import IterationStatus, JobStatus


class JobDefinitionStore(ABC):
    """Durable keyed storage of job definitions."""

    @abstractmethod
    async def prepare(self) -> bool:
        """Idempotent initialization (create tables, indexes...)."""
        ...

    @abstractmethod
    async def insert(self, definition: JobDefinition) -> JobDefinition:
        """Insert a new definition.

        Raises:
            DuplicateKeyError: If a definition with the same id exists
        """
        ...

    @abstractmethod
    async def update(self, definition: JobDefinition) -> JobDefinition:
        """Replace an existing definition as a whole.

        Raises:
            RecordNotFoundError: If the definition does not exist
        """
        ...

    @abstractmethod
    async def get_by_id(self, id: str) -> Optional[JobDefinition]:
        ...

    @abstractmethod
    async def delete_by_id(self, id: str) -> Optional[JobDefinition]:
        """Delete a definition, returning what was removed."""
        ...

    @abstractmethod
    async def get_all(self) -> list[JobDefinition]:
        ...

    @abstractmethod
    async def get_by_type(self, type: str) -> list[JobDefinition]:
        ...

    @abstractmethod
    async def get_by_status_in(
        self,
        type: str,
        group: str,
        cluster: str,
        statuses: Iterable[JobStatus],
    ) -> list[JobDefinition]:
        ...

    @abstractmethod
    async def get_all_groups(self, cluster: str) -> list[str]:
        """Distinct groups in the cluster, sorted."""
        ...

    @abstractmethod
    async def get_all_types(self, cluster: str) -> list[str]:
        """Distinct types in the cluster, sorted."""
        ...

    @abstractmethod
    async def get_page_by_code(self, page: int, size: int) -> Page[JobDefinition]:
        """A 0-based page of definitions ordered by code."""
        ...


class JobIterationStore(ABC):
    """Append-only log of job execution attempts."""

    @abstractmethod
    async def prepare(self) -> bool:
        ...

    @abstractmethod
    async def insert(self, iteration: JobIteration) -> JobIteration:
        """Append an iteration; the store assigns its id."""
        ...

    @abstractmethod
    async def get_page_by_timestamp(
        self,
        job_id: Optional[str],
        statuses: Optional[Iterable[IterationStatus]],
        page: int,
        size: int,
    ) -> Page[JobIteration]:
        """A 0-based page of iterations, newest first."""
        ...


class AgentDefinitionStore(ABC):
    """Durable keyed storage of agent definitions."""

    @abstractmethod
    async def prepare(self) -> bool:
        ...

    @abstractmethod
    async def update(self, agent: AgentDefinition) -> AgentDefinition:
        """Insert or replace the agent."""
        ...

    @abstractmethod
    async def get_by_id(self, id: str) -> Optional[AgentDefinition]:
        ...

    @abstractmethod
    async def delete_by_id(self, id: str) -> Optional[AgentDefinition]:
        ...

    @abstractmethod
    async def get_all(self) -> list[AgentDefinition]:
        ...


__all__ = [
    "JobDefinitionStore",
    "JobIterationStore",
    "AgentDefinitionStore",
]
