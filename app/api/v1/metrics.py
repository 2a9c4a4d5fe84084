from prometheus_client import Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response

router = APIRouter()

# Metrics Definitions
STATUS_EXCHANGE_TOTAL = Counter(
    "status_exchange_total",
    "Status exchange requests served"
)

SYNC_CHANGES_TOTAL = Counter(
    "sync_changes_total",
    "Job changes sent to agents by status exchange",
    ["change"] # added|updated|removed
)

JOB_LIFECYCLE_TOTAL = Counter(
    "job_lifecycle_total",
    "Job definition writes",
    ["operation", "result"] # add|update x success|conflict|not_found
)

AGENT_HEARTBEAT_TOTAL = Counter(
    "agent_heartbeat_total",
    "Agent heartbeats received",
    ["result"] # success|unknown_agent
)

JOBS_BY_STATUS = Gauge(
    "job_definitions",
    "Number of job definitions in the catalog",
    ["status"]
)

AGENTS_REGISTERED = Gauge(
    "agents_registered",
    "Number of registered agents"
)

@router.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
