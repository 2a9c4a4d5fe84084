from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict

from app.api.deps import Controller
from app.domain.models import JobDefinition
from app.domain.states import JobStatus
from app.settings import settings

router = APIRouter()

class JobCreate(BaseModel):
    code: str
    group: Optional[str] = None
    type: Optional[str] = None
    cluster: Optional[str] = None
    status: Optional[JobStatus] = None
    job_data: Optional[dict[str, Any]] = None
    created_by: Optional[str] = None

class JobUpdate(BaseModel):
    group: Optional[str] = None
    type: Optional[str] = None
    cluster: Optional[str] = None
    status: Optional[JobStatus] = None
    job_data: Optional[dict[str, Any]] = None
    # Accepted for symmetry with the response shape, always overridden
    created: Optional[datetime] = None
    created_by: Optional[str] = None

class MarkAsRequest(BaseModel):
    status: JobStatus

class JobResponse(BaseModel):
    id: str
    code: str
    group: Optional[str]
    type: Optional[str]
    cluster: str
    status: JobStatus
    job_data: dict[str, Any]
    created: datetime
    created_by: Optional[str]
    modified: datetime
    model_config = ConfigDict(from_attributes=True)

class JobPageResponse(BaseModel):
    items: list[JobResponse]
    total: int
    page: int
    size: int

@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(payload: JobCreate, controller: Controller):
    job = await controller.add_job(JobDefinition(**payload.model_dump()))
    if not job:
        raise HTTPException(status_code=409, detail=f"Job {payload.code} already exists")
    return job

@router.get("", response_model=list[JobResponse])
async def list_jobs(controller: Controller, type: Optional[str] = None):
    return await controller.get_all_jobs(type)

@router.get("/page", response_model=JobPageResponse)
async def jobs_page(
    controller: Controller,
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
):
    result = await controller.get_jobs_page(page, size)
    return JobPageResponse(
        items=[JobResponse.model_validate(j) for j in result.items],
        total=result.total,
        page=page,
        size=size,
    )

@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, controller: Controller):
    job = await controller.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job

@router.put("/{job_id}", response_model=JobResponse)
async def update_job(job_id: str, payload: JobUpdate, controller: Controller):
    # The path id is authoritative, and so is the stored code
    job = await controller.update_job(JobDefinition(id=job_id, code=job_id, **payload.model_dump()))
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job

@router.post("/{job_id}/status", response_model=JobResponse)
async def mark_job(job_id: str, payload: MarkAsRequest, controller: Controller):
    job = await controller.mark_as(job_id, payload.status)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job

@router.delete("/{job_id}", response_model=JobResponse)
async def delete_job(job_id: str, controller: Controller):
    job = await controller.delete_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job
