import dataclasses
import logging
from typing import Any, Optional

from app.api.v1.metrics import AGENT_HEARTBEAT_TOTAL
from app.domain.models import AgentDefinition
from app.domain.timestamps import normalize, utcnow
from app.stores.base import AgentDefinitionStore

logger = logging.getLogger(__name__)

async def registration(
    agents: AgentDefinitionStore,
    agent: AgentDefinition
) -> AgentDefinition:
    """
    Registers (or re-registers) an agent. Always succeeds.
    """
    agent = dataclasses.replace(agent)
    agent.registered = normalize(agent.registered) or utcnow()

    stored = await agents.update(agent)
    logger.info("Agent %s registered (cluster=%s)", stored.id, stored.cluster)
    return stored

async def heartbeat(
    agents: AgentDefinitionStore,
    agent_id: str,
    health: Optional[dict[str, Any]]
) -> Optional[AgentDefinition]:
    """
    Replaces the reported health of a registered agent.
    Returns None, without touching the store, if the agent is unknown.
    """
    existing = await agents.get_by_id(agent_id)

    if not existing:
        logger.warning("Heartbeat from unregistered agent %s ignored.", agent_id)
        AGENT_HEARTBEAT_TOTAL.labels(result="unknown_agent").inc()
        return None

    # Health is replaced as a whole, never merged
    stored = await agents.update(dataclasses.replace(existing, health=health))

    AGENT_HEARTBEAT_TOTAL.labels(result="success").inc()
    logger.debug("Heartbeat from agent %s", agent_id)
    return stored
