import asyncio
import subprocess
import time
import sys
import os
import httpx

import logging

logging.basicConfig(level=logging.INFO)

sys.path.append(os.getcwd())

from agent_sdk import AgentConfig, AgentRunner, ControllerClient

API_PORT = 8002
API_URL = f"http://localhost:{API_PORT}"

async def verify_sync():
    # 1. Start Server (in-memory stores, no database needed)
    print("Starting API Server...")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "app.main:app", "--port", str(API_PORT)],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env={**os.environ, "STORE_BACKEND": "memory"},
    )

    # Wait for health
    async with httpx.AsyncClient() as client:
        start = time.time()
        ready = False
        while time.time() - start < 10:
            try:
                resp = await client.get(f"{API_URL}/health")
                if resp.status_code == 200:
                    ready = True
                    break
            except Exception:
                await asyncio.sleep(0.5)

        if not ready:
            print("Failed to start API server")
            proc.terminate()
            stdout, stderr = proc.communicate()
            print(stderr.decode())
            sys.exit(1)

    print("API Server Ready.")

    agent = ControllerClient(API_URL, "verify-agent")
    runner = AgentRunner(agent, AgentConfig(name="verifier"))

    try:
        async with httpx.AsyncClient(base_url=API_URL) as client:
            # 2. Catalog
            for code in ("nightly", "hourly"):
                resp = await client.post("/api/v1/jobs", json={
                    "code": code,
                    "group": "reports",
                    "type": "cron",
                    "job_data": {"command": f"run-{code}"},
                })
                print(f"Created {code}: {resp.status_code}")

            # 3. First sync gets everything
            changes = await runner.sync_once()
            known = sorted(runner.jobs())
            print(f"After first sync: {known}")
            if known != ["hourly", "nightly"]:
                print("FAILURE: Agent did not receive the active jobs")
                sys.exit(1)

            # 4. Second sync is empty
            changes = await runner.sync_once()
            if changes:
                print(f"FAILURE: Unchanged catalog produced changes: {changes}")
                sys.exit(1)
            print("SUCCESS: Repeated sync is idempotent")

            # 5. Update one, pause the other
            await client.put("/api/v1/jobs/nightly", json={
                "group": "reports",
                "type": "cron",
                "job_data": {"command": "run-nightly", "retries": 3},
            })
            await client.post("/api/v1/jobs/hourly/status", json={"status": "paused"})

            changes = await runner.sync_once()
            bucket = changes.get(("reports", "cron"))
            if not bucket or [j["code"] for j in bucket.updated] != ["nightly"] or bucket.removed != ["hourly"]:
                print(f"FAILURE: Unexpected changes {changes}")
                sys.exit(1)
            print("SUCCESS: Update and pause delivered")

            # 6. Heartbeat and iteration log
            if not await runner.signal_once():
                print("FAILURE: Heartbeat rejected")
                sys.exit(1)
            await agent.add_iteration("nightly", "succeeded", message="ok", runtime=1200)

            resp = await client.get("/api/v1/iterations", params={"job_id": "nightly"})
            print(f"Iterations: {resp.json()['total']}")

            resp = await client.get("/api/v1/agents/verify-agent")
            print(f"Agent health: {resp.json()['health']}")

    finally:
        await agent.close()
        proc.terminate()
        proc.wait()

if __name__ == "__main__":
    asyncio.run(verify_sync())
