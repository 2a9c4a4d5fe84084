from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from app.domain.states import JobStatus, IterationStatus

T = TypeVar("T")

@dataclass
class JobDefinition:
    code: str
    group: Optional[str] = None
    type: Optional[str] = None
    # id mirrors code; it is assigned by the controller on add
    id: Optional[str] = None
    cluster: Optional[str] = None
    status: Optional[JobStatus] = None
    job_data: Optional[dict[str, Any]] = None

    created: Optional[datetime] = None
    created_by: Optional[str] = None
    modified: Optional[datetime] = None

@dataclass
class JobIteration:
    job_id: str
    status: IterationStatus
    timestamp: Optional[datetime] = None
    message: Optional[str] = None
    runtime: Optional[int] = None  # milliseconds
    id: Optional[int] = None

@dataclass
class AgentDefinition:
    id: str
    cluster: Optional[str] = None
    name: Optional[str] = None
    health: Optional[dict[str, Any]] = None
    registered: Optional[datetime] = None

@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int

@dataclass
class JobMetadata:
    cluster: str
    groups: list[str]
    types: list[str]

@dataclass
class StatusExchangeRequest:
    group: str
    type: str
    cluster: Optional[str] = None
    # job code -> modified timestamp last seen by the requester
    state: dict[str, datetime] = field(default_factory=dict)

@dataclass
class StatusExchangeResponse:
    group: str
    type: str
    removed: list[str] = field(default_factory=list)
    updated: dict[str, JobDefinition] = field(default_factory=dict)
    added: dict[str, JobDefinition] = field(default_factory=dict)
