"""
Tests for the SQLAlchemy stores, run against in-memory SQLite.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.domain.errors import DuplicateKeyError, RecordNotFoundError
from app.domain.models import AgentDefinition, JobIteration, StatusExchangeRequest
from app.domain.states import IterationStatus, JobStatus
from app.domain.timestamps import utcnow
from app.stores.sql import SqlJobDefinitionStore
from conftest import make_job

BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)


class TestSqlJobDefinitionStore:

    async def test_prepare_is_idempotent(self, sql_engine):
        store = SqlJobDefinitionStore(sql_engine)
        assert await store.prepare()
        assert await store.prepare()

    async def test_insert_duplicate_raises(self, sql_controller):
        job = make_job("nightly", id="nightly", cluster="c", status=JobStatus.ACTIVE,
                       job_data={}, created=utcnow(), modified=utcnow())
        await sql_controller.definitions.insert(job)

        with pytest.raises(DuplicateKeyError):
            await sql_controller.definitions.insert(job)

        # The failed insert left the session usable
        assert (await sql_controller.definitions.get_by_id("nightly")).code == "nightly"

    async def test_update_missing_raises(self, sql_controller):
        job = make_job("ghost", id="ghost", cluster="c", status=JobStatus.ACTIVE,
                       job_data={}, created=utcnow(), modified=utcnow())
        with pytest.raises(RecordNotFoundError):
            await sql_controller.definitions.update(job)

    async def test_roundtrip_keeps_timezone_and_precision(self, sql_controller):
        added = await sql_controller.add_job(make_job("nightly", job_data={"nested": {"a": [1, 2]}}))

        stored = await sql_controller.get_job("nightly")

        assert stored == added
        assert stored.modified.tzinfo == timezone.utc
        assert stored.job_data == {"nested": {"a": [1, 2]}}

    async def test_second_add_is_noop(self, sql_controller):
        first = await sql_controller.add_job(make_job("nightly", job_data={"n": 1}))

        assert await sql_controller.add_job(make_job("nightly", job_data={"n": 2})) is None
        assert await sql_controller.get_all_jobs() == [first]

    async def test_naive_timestamps_read_back_as_utc(self, sql_controller):
        naive = datetime(2024, 5, 1, 12, 0, 0, 123456)
        job = make_job("nightly", id="nightly", cluster="c", status=JobStatus.ACTIVE,
                       job_data={}, created=naive, modified=naive)
        await sql_controller.definitions.insert(job)

        stored = await sql_controller.definitions.get_by_id("nightly")

        assert stored.modified == datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)


class TestSqlController:

    async def test_lifecycle(self, sql_controller):
        added = await sql_controller.add_job(make_job("nightly", created_by="alice"))
        updated = await sql_controller.update_job(make_job("nightly", id="nightly", created_by="mallory"))
        marked = await sql_controller.mark_as("nightly", JobStatus.PAUSED)

        assert updated.created == added.created
        assert updated.created_by == "alice"
        assert marked.status == JobStatus.PAUSED
        assert added.modified < updated.modified < marked.modified

        assert (await sql_controller.delete_job("nightly")).code == "nightly"
        assert await sql_controller.get_job("nightly") is None

    async def test_status_exchange(self, sql_controller):
        j1 = await sql_controller.add_job(make_job("j1"))
        await sql_controller.add_job(make_job("j2"))
        await sql_controller.add_job(make_job("j4", status=JobStatus.PAUSED))

        result = await sql_controller.status_exchange(StatusExchangeRequest(
            group="reports",
            type="cron",
            state={"j1": j1.modified, "j3": BASE, "j4": BASE},
        ))

        assert set(result.added) == {"j2"}
        assert result.updated == {}
        assert sorted(result.removed) == ["j3", "j4"]

    async def test_metadata(self, sql_controller):
        await sql_controller.add_job(make_job("a", group="reports", type="cron"))
        await sql_controller.add_job(make_job("b", group="billing", type="cron"))
        await sql_controller.add_job(make_job("c", group="audit", type="once", cluster="eu"))

        metadata = await sql_controller.get_metadata()

        assert metadata.groups == ["billing", "reports"]
        assert metadata.types == ["cron"]

    async def test_jobs_page(self, sql_controller):
        for i in range(7):
            await sql_controller.add_job(make_job(f"job-{6 - i}"))

        first = await sql_controller.get_jobs_page(0, 3)
        last = await sql_controller.get_jobs_page(2, 3)

        assert [j.code for j in first.items] == ["job-0", "job-1", "job-2"]
        assert [j.code for j in last.items] == ["job-6"]
        assert first.total == 7

    async def test_iterations(self, sql_controller):
        for i in range(6):
            await sql_controller.add_iteration(JobIteration(
                job_id="nightly" if i < 4 else "hourly",
                status=IterationStatus.SUCCEEDED if i % 2 else IterationStatus.FAILED,
                timestamp=BASE + timedelta(minutes=i),
                runtime=i * 100,
            ))

        page = await sql_controller.get_iterations("nightly", IterationStatus.SUCCEEDED, 0, 10)

        assert page.total == 2
        assert [i.runtime for i in page.items] == [300, 100]
        assert page.items[0].timestamp == BASE + timedelta(minutes=3)

    async def test_agents(self, sql_controller):
        await sql_controller.registration(AgentDefinition(id="agent-1", cluster="eu", health={"cpu": 0.2}))

        updated = await sql_controller.heartbeat("agent-1", {"mem": 100})

        assert updated.health == {"mem": 100}
        assert updated.cluster == "eu"
        assert await sql_controller.heartbeat("ghost", {}) is None
        assert [a.id for a in await sql_controller.get_agents()] == ["agent-1"]
        assert (await sql_controller.delete_agent("agent-1")).id == "agent-1"
        assert await sql_controller.get_agents() == []

    async def test_concurrent_registrations(self, sql_controller):
        results = await asyncio.gather(*[
            sql_controller.registration(AgentDefinition(id="agent-1", health={"n": i})) for i in range(5)
        ])

        assert [a.id for a in results] == ["agent-1"] * 5
        assert [a.id for a in await sql_controller.get_agents()] == ["agent-1"]

    async def test_iteration_offsets_stored_as_utc(self, sql_controller):
        plus_five = timezone(timedelta(hours=5))
        await sql_controller.add_iteration(JobIteration(
            job_id="nightly",
            status=IterationStatus.SUCCEEDED,
            timestamp=datetime(2024, 5, 1, 17, 30, tzinfo=plus_five),
        ))
        await sql_controller.add_iteration(JobIteration(
            job_id="nightly",
            status=IterationStatus.SUCCEEDED,
            timestamp=datetime(2024, 5, 1, 13, 0),
        ))

        page = await sql_controller.get_iterations("nightly", None, 0, 10)

        assert [i.timestamp for i in page.items] == [
            datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc),
            datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
        ]
