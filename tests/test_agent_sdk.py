"""
Agent SDK tests: the client talks to the real app in-process.
"""

import pytest
from httpx import ASGITransport

from agent_sdk import AgentConfig, AgentRunner, ControllerClient, LocalJobState
from app.domain.states import JobStatus
from app.main import app
from conftest import make_job


@pytest.fixture
async def client(controller):
    app.state.controller = controller
    client = ControllerClient("http://test", "agent-1", transport=ASGITransport(app=app))
    yield client
    await client.close()
    del app.state.controller


@pytest.fixture
def runner(client):
    return AgentRunner(client, AgentConfig(name="box"), health_provider=lambda: {"cpu": 0.1})


def job(code, modified):
    return {"code": code, "modified": modified}


class TestLocalJobState:

    def test_apply(self):
        state = LocalJobState("reports", "cron")
        state.apply({"added": {"a": job("a", "t1"), "b": job("b", "t1")}, "updated": {}, "removed": []})

        changes = state.apply({"added": {}, "updated": {"a": job("a", "t2")}, "removed": ["b", "ghost"]})

        assert state.state() == {"a": "t2"}
        assert [j["code"] for j in changes.updated] == ["a"]
        # Removing something never held is not a change
        assert changes.removed == ["b"]

    def test_empty_response_is_no_change(self):
        state = LocalJobState("reports", "cron")
        assert not state.apply({"added": {}, "updated": {}, "removed": []})
        assert len(state) == 0


class TestControllerClient:

    async def test_metadata_and_exchange(self, controller, client):
        await controller.add_job(make_job("j1"))

        metadata = await client.metadata()
        response = await client.status_exchange("reports", "cron", {})

        assert metadata["groups"] == ["reports"]
        assert list(response["added"]) == ["j1"]

    async def test_heartbeat_requires_registration(self, controller, client):
        assert await client.heartbeat({"cpu": 0.5}) is False
        assert await client.register("box", {"cpu": 0.5}) is True
        assert await client.heartbeat({"cpu": 0.7}) is True

        assert (await controller.get_agent("agent-1")).health == {"cpu": 0.7}

    async def test_add_iteration(self, controller, client):
        assert await client.add_iteration("j1", "succeeded", message="ok", runtime=12)

        page = await controller.get_iterations("j1")
        assert page.items[0].runtime == 12

    async def test_failures_are_reported_not_raised(self, controller, client):
        assert await client.add_iteration("j1", "exploded") is False
        assert await client.status_exchange("reports", "cron", {"j1": "not-a-date"}) is None


class TestAgentRunner:

    async def test_sync_tracks_catalog(self, controller, runner):
        await controller.add_job(make_job("a"))
        await controller.add_job(make_job("b", type="once"))

        first = await runner.sync_once()
        assert set(runner.jobs()) == {"a", "b"}
        assert set(first) == {("reports", "cron"), ("reports", "once")}

        # Nothing moved: nothing to apply
        assert await runner.sync_once() == {}

        await controller.update_job(make_job("a", id="a", job_data={"v": 2}))
        await controller.mark_as("b", JobStatus.PAUSED)

        third = await runner.sync_once()

        assert [j["code"] for j in third[("reports", "cron")].updated] == ["a"]
        assert third[("reports", "once")].removed == ["b"]
        assert runner.jobs()["a"]["job_data"] == {"v": 2}
        assert set(runner.jobs()) == {"a"}

    async def test_removal_from_vanished_bucket(self, controller, runner):
        await controller.add_job(make_job("only", group="billing"))
        await runner.sync_once()

        # The group disappears from metadata along with its last job
        await controller.delete_job("only")
        changes = await runner.sync_once()

        assert changes[("billing", "cron")].removed == ["only"]
        assert runner.jobs() == {}
        assert runner.buckets == {}

    async def test_listener_called_with_changes(self, controller, client):
        seen = []

        async def listener(group, type, changes):
            seen.append((group, type, [j["code"] for j in changes.added]))

        runner = AgentRunner(client, listener=listener)
        await controller.add_job(make_job("a"))

        await runner.sync_once()
        await runner.sync_once()

        assert seen == [("reports", "cron", ["a"])]

    async def test_signal_registers_again_after_delete(self, controller, runner):
        assert await runner.signal_once()
        assert (await controller.get_agent("agent-1")).name == "box"

        await controller.delete_agent("agent-1")
        assert await runner.signal_once()

        assert (await controller.get_agent("agent-1")).health == {"cpu": 0.1}

    async def test_identity_comes_from_client(self, controller):
        await controller.add_job(make_job("eu-job", cluster="eu"))
        await controller.add_job(make_job("default-job"))
        app.state.controller = controller
        client = ControllerClient("http://test", "agent-eu", cluster="eu", transport=ASGITransport(app=app))
        runner = AgentRunner(client)

        try:
            await runner.sync_once()
            assert await runner.signal_once()
        finally:
            await client.close()
            del app.state.controller

        assert set(runner.jobs()) == {"eu-job"}
        assert (await controller.get_agent("agent-eu")).cluster == "eu"
