from app.domain.models import JobDefinition
from app.domain.states import JobStatus
from app.settings import settings

def apply_defaults(definition: JobDefinition) -> JobDefinition:
    """
    Fills the optional fields every stored definition must carry.
    Missing values are never rejected, only defaulted.
    """
    if definition.status is None:
        definition.status = JobStatus.ACTIVE
    else:
        definition.status = JobStatus(definition.status)

    # Unassigned jobs belong to the default cluster
    if definition.cluster is None:
        definition.cluster = settings.DEFAULT_CLUSTER

    if definition.job_data is None:
        definition.job_data = {}

    return definition
