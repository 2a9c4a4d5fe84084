from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict

from app.api.deps import Controller
from app.domain.models import AgentDefinition

router = APIRouter()

class RegistrationRequest(BaseModel):
    id: str
    cluster: Optional[str] = None
    name: Optional[str] = None
    health: Optional[dict[str, Any]] = None

class HeartbeatRequest(BaseModel):
    health: Optional[dict[str, Any]] = None

class AgentResponse(BaseModel):
    id: str
    cluster: Optional[str] = None
    name: Optional[str] = None
    health: Optional[dict[str, Any]] = None
    registered: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

@router.post("", response_model=AgentResponse)
async def register_agent(body: RegistrationRequest, controller: Controller):
    return await controller.registration(AgentDefinition(**body.model_dump()))

@router.put("/{agent_id}/health", response_model=AgentResponse)
async def agent_heartbeat(agent_id: str, body: HeartbeatRequest, controller: Controller):
    agent = await controller.heartbeat(agent_id, body.health)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not registered")
    return agent

@router.get("", response_model=list[AgentResponse])
async def list_agents(controller: Controller):
    return await controller.get_agents()

@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(agent_id: str, controller: Controller):
    agent = await controller.get_agent(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent

@router.delete("/{agent_id}", response_model=AgentResponse)
async def delete_agent(agent_id: str, controller: Controller):
    agent = await controller.delete_agent(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent
