from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict

from app.api.deps import Controller
from app.domain.models import JobIteration
from app.domain.states import IterationStatus
from app.settings import settings

router = APIRouter()

class IterationCreate(BaseModel):
    job_id: str
    status: IterationStatus
    timestamp: Optional[datetime] = None
    message: Optional[str] = None
    runtime: Optional[int] = None

class IterationResponse(BaseModel):
    id: int
    job_id: str
    status: IterationStatus
    timestamp: datetime
    message: Optional[str] = None
    runtime: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)

class IterationPageResponse(BaseModel):
    items: list[IterationResponse]
    total: int
    page: int
    size: int

@router.post("", response_model=IterationResponse, status_code=status.HTTP_201_CREATED)
async def add_iteration(payload: IterationCreate, controller: Controller):
    return await controller.add_iteration(JobIteration(**payload.model_dump()))

@router.get("", response_model=IterationPageResponse)
async def list_iterations(
    controller: Controller,
    job_id: Optional[str] = None,
    status: Optional[list[IterationStatus]] = Query(None),
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
):
    result = await controller.get_iterations(job_id, status, page, size)
    return IterationPageResponse(
        items=[IterationResponse.model_validate(i) for i in result.items],
        total=result.total,
        page=page,
        size=size,
    )
