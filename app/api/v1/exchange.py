from datetime import datetime
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.api.deps import Controller
from app.api.v1.jobs import JobResponse
from app.domain.models import StatusExchangeRequest

router = APIRouter()

class MetadataRequest(BaseModel):
    cluster: Optional[str] = None

class MetadataResponse(BaseModel):
    cluster: str
    groups: list[str]
    types: list[str]

class StatusExchangeBody(BaseModel):
    group: str
    type: str
    cluster: Optional[str] = None
    # job code -> modified timestamp the agent holds
    state: dict[str, datetime] = Field(default_factory=dict)

class StatusExchangeResult(BaseModel):
    group: str
    type: str
    removed: list[str]
    updated: dict[str, JobResponse]
    added: dict[str, JobResponse]

@router.post("/metadata", response_model=MetadataResponse)
async def metadata(body: MetadataRequest, controller: Controller):
    return await controller.get_metadata(body.cluster)

@router.post("/status", response_model=StatusExchangeResult)
async def status_exchange(body: StatusExchangeBody, controller: Controller):
    return await controller.status_exchange(
        StatusExchangeRequest(
            group=body.group,
            type=body.type,
            cluster=body.cluster,
            state=body.state,
        )
    )
