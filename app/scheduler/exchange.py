import logging
from datetime import datetime
from typing import Iterable, Optional

from app.api.v1.metrics import STATUS_EXCHANGE_TOTAL, SYNC_CHANGES_TOTAL
from app.domain.models import (
    JobDefinition,
    JobMetadata,
    StatusExchangeRequest,
    StatusExchangeResponse,
)
from app.domain.states import SYNC_STATUSES
from app.domain.timestamps import is_after, same_instant
from app.settings import settings
from app.stores.base import JobDefinitionStore

logger = logging.getLogger(__name__)

async def get_metadata(definitions: JobDefinitionStore, cluster: str) -> JobMetadata:
    """
    Groups and types present in a cluster; agents use this to know which
    status exchanges to run.
    """
    groups = await definitions.get_all_groups(cluster)
    types = await definitions.get_all_types(cluster)
    return JobMetadata(cluster=cluster, groups=groups, types=types)

async def get_all_active(
    definitions: JobDefinitionStore,
    group: str,
    type: str,
    cluster: str
) -> list[JobDefinition]:
    """
    The jobs agents should be running for a bucket.
    Defined, paused, completed and failed jobs are excluded.
    """
    return await definitions.get_by_status_in(type, group, cluster, SYNC_STATUSES)

def compute_changes(
    group: str,
    type: str,
    active: Iterable[JobDefinition],
    state: dict[str, datetime],
    stale_policy: Optional[str] = None
) -> StatusExchangeResponse:
    """
    Diffs the active jobs of a bucket against what the requester last saw.

    - code unknown to the requester              -> added
    - requester saw an older modification time   -> updated
    - requester saw the same modification time   -> left out
    - requester saw a newer modification time    -> left out, unless the
      stale policy is "resend", in which case it is sent as updated
    - requester knows a code that is not active  -> removed

    A job that leaves the ACTIVE status is reported as removed exactly like a
    deleted one; agents get no separate pause signal.
    """
    stale_policy = stale_policy or settings.STALE_STATE_POLICY
    response = StatusExchangeResponse(group=group, type=type)
    active_codes = set()

    for job in active:
        active_codes.add(job.code)
        known = state.get(job.code)

        if known is None:
            response.added[job.code] = job
            continue

        if same_instant(job.modified, known):
            continue

        if is_after(job.modified, known) or stale_policy == "resend":
            response.updated[job.code] = job

    response.removed = [code for code in state if code not in active_codes]
    return response

async def status_exchange(
    definitions: JobDefinitionStore,
    request: StatusExchangeRequest
) -> StatusExchangeResponse:
    active = await get_all_active(definitions, request.group, request.type, request.cluster)
    response = compute_changes(request.group, request.type, active, request.state)

    STATUS_EXCHANGE_TOTAL.inc()
    SYNC_CHANGES_TOTAL.labels(change="added").inc(len(response.added))
    SYNC_CHANGES_TOTAL.labels(change="updated").inc(len(response.updated))
    SYNC_CHANGES_TOTAL.labels(change="removed").inc(len(response.removed))

    logger.debug(
        "Status exchange %s/%s@%s: known=%d active=%d added=%d updated=%d removed=%d",
        request.group, request.type, request.cluster, len(request.state), len(active),
        len(response.added), len(response.updated), len(response.removed),
    )
    return response
