import dataclasses
import logging
from typing import Optional

from app.api.v1.metrics import JOB_LIFECYCLE_TOTAL
from app.commands.defaults import apply_defaults
from app.domain.errors import RecordNotFoundError
from app.domain.models import JobDefinition
from app.domain.timestamps import advance
from app.stores.base import JobDefinitionStore

logger = logging.getLogger(__name__)

async def update_job(
    definitions: JobDefinitionStore,
    definition: JobDefinition
) -> Optional[JobDefinition]:
    """
    Replaces an existing job definition.
    Creation fields and the code are immutable and always taken from the stored
    record; `modified` is advanced past its previous value.
    Returns None if the job does not exist.
    """
    existing = await definitions.get_by_id(definition.id)
    if not existing:
        logger.warning("Job with id %s does not exist.", definition.id)
        JOB_LIFECYCLE_TOTAL.labels(operation="update", result="not_found").inc()
        return None

    definition = dataclasses.replace(definition)

    # Fix immutable properties
    definition.code = existing.code
    definition.created = existing.created
    definition.created_by = existing.created_by

    definition.modified = advance(existing.modified)
    apply_defaults(definition)

    try:
        stored = await definitions.update(definition)
    except RecordNotFoundError:
        # Deleted between the lookup and the write
        logger.warning("Job with id %s was deleted during update.", definition.id)
        JOB_LIFECYCLE_TOTAL.labels(operation="update", result="not_found").inc()
        return None

    JOB_LIFECYCLE_TOTAL.labels(operation="update", result="success").inc()
    logger.debug("Job %s updated (status=%s, modified=%s)", stored.id, stored.status, stored.modified)
    return stored
