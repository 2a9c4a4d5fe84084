import dataclasses
import logging
from typing import Optional

from app.commands.update_job import update_job
from app.domain.models import JobDefinition
from app.domain.states import JobStatus
from app.stores.base import JobDefinitionStore

logger = logging.getLogger(__name__)

async def mark_as(
    definitions: JobDefinitionStore,
    job_id: str,
    status: JobStatus
) -> Optional[JobDefinition]:
    """
    Changes only the status of a job, through the regular update path so that
    every update rule (timestamps, immutability) applies.
    """
    existing = await definitions.get_by_id(job_id)
    if not existing:
        logger.warning("Cannot mark job %s as %s: not found.", job_id, status)
        return None

    return await update_job(definitions, dataclasses.replace(existing, status=JobStatus(status)))
