import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.settings import settings
from app.api.v1.jobs import router as jobs_router
from app.api.v1.exchange import router as exchange_router
from app.api.v1.iterations import router as iterations_router
from app.api.v1.agents import router as agents_router
from app.api.v1.metrics import router as metrics_router
from app.domain.errors import ConfigurationError
from app.scheduler.controller import SchedulerController

logger = logging.getLogger("uvicorn")

def configure_logging(level: str = settings.LOG_LEVEL):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

def build_controller(backend: str = settings.STORE_BACKEND) -> SchedulerController:
    if backend == "memory":
        from app.stores.memory import (
            InMemoryAgentDefinitionStore,
            InMemoryJobDefinitionStore,
            InMemoryJobIterationStore,
        )
        return SchedulerController(
            definitions=InMemoryJobDefinitionStore(),
            iterations=InMemoryJobIterationStore(),
            agents=InMemoryAgentDefinitionStore(),
        )

    if backend == "sql":
        from app.db.session import get_engine
        from app.stores.sql import (
            SqlAgentDefinitionStore,
            SqlJobDefinitionStore,
            SqlJobIterationStore,
        )
        engine = get_engine()
        return SchedulerController(
            definitions=SqlJobDefinitionStore(engine),
            iterations=SqlJobIterationStore(engine),
            agents=SqlAgentDefinitionStore(engine),
        )

    raise ConfigurationError(f"Unknown store backend: {backend}")

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    from app.scheduler.service import MetricsRefresher

    configure_logging()

    # Tests and embedding callers may provide their own controller
    controller = getattr(app.state, "controller", None)
    if controller is None:
        controller = build_controller()
        app.state.controller = controller

    # 1. Prepare stores (retry: the database may still be starting)
    for i in range(settings.INIT_RETRIES):
        if await controller.initialize():
            logger.info(f"BOOTSTRAP: Stores ready ({settings.STORE_BACKEND}).")
            break
        logger.warning(f"Bootstrap: Stores not ready, retrying in {settings.INIT_RETRY_DELAY_SECONDS}s... ({i+1}/{settings.INIT_RETRIES})")
        await asyncio.sleep(settings.INIT_RETRY_DELAY_SECONDS)
    else:
        raise ConfigurationError("Stores could not be prepared")

    # 2. Start gauge refresher
    refresher = MetricsRefresher(controller, interval=settings.METRICS_REFRESH_INTERVAL_SECONDS)
    await refresher.start()

    yield

    # Shutdown
    await refresher.stop()
    if settings.STORE_BACKEND == "sql":
        from app.db.session import dispose_engine
        await dispose_engine()

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan
)

app.include_router(exchange_router, prefix="/api/v1/exchange", tags=["exchange"])
app.include_router(jobs_router, prefix="/api/v1/jobs", tags=["jobs"])
app.include_router(iterations_router, prefix="/api/v1/iterations", tags=["iterations"])
app.include_router(agents_router, prefix="/api/v1/agents", tags=["agents"])
app.include_router(metrics_router, tags=["metrics"])

@app.get("/health")
async def health():
    return {"status": "ok"}
