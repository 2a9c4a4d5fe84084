"""
Shared fixtures for controller tests.

- In-memory and SQLite-backed controllers
- An httpx client bound to the FastAPI app through ASGITransport
- Job definition factory
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.domain.models import JobDefinition
from app.main import app
from app.scheduler.controller import SchedulerController
from app.stores.memory import (
    InMemoryAgentDefinitionStore,
    InMemoryJobDefinitionStore,
    InMemoryJobIterationStore,
)
from app.stores.sql import (
    SqlAgentDefinitionStore,
    SqlJobDefinitionStore,
    SqlJobIterationStore,
)


def make_job(code: str, group: str = "reports", type: str = "cron", **kwargs) -> JobDefinition:
    """Create a job definition with sensible test defaults."""
    return JobDefinition(code=code, group=group, type=type, **kwargs)


@pytest.fixture
async def controller():
    ctl = SchedulerController(
        definitions=InMemoryJobDefinitionStore(),
        iterations=InMemoryJobIterationStore(),
        agents=InMemoryAgentDefinitionStore(),
    )
    assert await ctl.initialize()
    return ctl


@pytest.fixture
async def sql_engine():
    # One shared connection so every session sees the same in-memory database
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest.fixture
async def sql_controller(sql_engine):
    ctl = SchedulerController(
        definitions=SqlJobDefinitionStore(sql_engine),
        iterations=SqlJobIterationStore(sql_engine),
        agents=SqlAgentDefinitionStore(sql_engine),
    )
    assert await ctl.initialize()
    return ctl


@pytest.fixture
async def api_client(controller):
    # ASGITransport does not run the lifespan, so wire the controller directly
    app.state.controller = controller
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    del app.state.controller
