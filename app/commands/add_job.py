import dataclasses
import logging
from typing import Optional

from app.api.v1.metrics import JOB_LIFECYCLE_TOTAL
from app.commands.defaults import apply_defaults
from app.domain.errors import DuplicateKeyError
from app.domain.models import JobDefinition
from app.domain.timestamps import utcnow
from app.stores.base import JobDefinitionStore

logger = logging.getLogger(__name__)

async def add_job(
    definitions: JobDefinitionStore,
    definition: JobDefinition
) -> Optional[JobDefinition]:
    """
    Stores a new job definition under its code.
    Returns None if a definition with that code already exists.
    """
    definition = dataclasses.replace(definition)

    # The code is the identity
    definition.id = definition.code

    existing = await definitions.get_by_id(definition.id)
    if existing:
        logger.warning("Job with code %s already exists.", definition.code)
        JOB_LIFECYCLE_TOTAL.labels(operation="add", result="conflict").inc()
        return None

    now = utcnow()
    definition.created = now
    definition.modified = now
    apply_defaults(definition)

    try:
        stored = await definitions.insert(definition)
    except DuplicateKeyError:
        # Lost the race against a concurrent add of the same code
        logger.warning("Job with code %s already exists (concurrent add).", definition.code)
        JOB_LIFECYCLE_TOTAL.labels(operation="add", result="conflict").inc()
        return None

    JOB_LIFECYCLE_TOTAL.labels(operation="add", result="success").inc()
    logger.info("Job %s added (group=%s, type=%s, cluster=%s)", stored.code, stored.group, stored.type, stored.cluster)
    return stored
