from collections import Counter

from app.api.v1.metrics import JOBS_BY_STATUS, AGENTS_REGISTERED
from app.domain.states import JobStatus

async def run_metrics_tasks(controller):
    """
    Periodic gauge refresh, run on every instance so each /metrics endpoint
    reports current catalog state:
    1. Job definitions per status
    2. Registered agents
    """
    jobs = await controller.get_all_jobs()
    counts = Counter(job.status for job in jobs)

    # Emit zeros too so a drained status does not keep its last value
    for status in JobStatus:
        JOBS_BY_STATUS.labels(status=str(status)).set(counts.get(status, 0))

    agents = await controller.get_agents()
    AGENTS_REGISTERED.set(len(agents))
