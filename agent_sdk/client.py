import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

class ControllerClient:
    def __init__(
        self,
        base_url: str,
        worker_id: str,
        cluster: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.worker_id = worker_id
        self.cluster = cluster
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def metadata(self) -> Optional[Dict[str, Any]]:
        """
        Groups and types known in this agent's cluster.
        """
        try:
            resp = await self.client.post("/api/v1/exchange/metadata", json={"cluster": self.cluster})
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Metadata request failed for worker=%s cluster=%s: %s", self.worker_id, self.cluster, e)
            return None

    async def status_exchange(self, group: str, type: str, state: Dict[str, str]) -> Optional[Dict[str, Any]]:
        """
        Sends the locally known {code: modified} map for a bucket and returns
        the change set ({added, updated, removed}).
        """
        payload = {
            "group": group,
            "type": type,
            "cluster": self.cluster,
            "state": state,
        }
        try:
            resp = await self.client.post("/api/v1/exchange/status", json=payload)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Status exchange failed for worker=%s bucket=%s/%s: %s", self.worker_id, group, type, e)
            return None

    async def register(self, name: Optional[str] = None, health: Optional[Dict[str, Any]] = None) -> bool:
        try:
            resp = await self.client.post(
                "/api/v1/agents",
                json={
                    "id": self.worker_id,
                    "cluster": self.cluster,
                    "name": name,
                    "health": health,
                }
            )
            resp.raise_for_status()
            return True
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Registration failed for worker=%s: %s", self.worker_id, e)
            return False

    async def heartbeat(self, health: Optional[Dict[str, Any]]) -> bool:
        try:
            resp = await self.client.put(
                f"/api/v1/agents/{self.worker_id}/health",
                json={"health": health}
            )
            resp.raise_for_status()
            return True
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            log_fn = logger.info if status_code == 404 else logger.warning
            log_fn("Heartbeat rejected for worker=%s status=%s", self.worker_id, status_code)
            return False
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Heartbeat failed for worker=%s: %s", self.worker_id, e)
            return False

    async def add_iteration(
        self,
        job_id: str,
        status: str,
        message: Optional[str] = None,
        runtime: Optional[int] = None,
    ) -> bool:
        try:
            resp = await self.client.post(
                "/api/v1/iterations",
                json={
                    "job_id": job_id,
                    "status": status,
                    "message": message,
                    "runtime": runtime,
                }
            )
            resp.raise_for_status()
            return True
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Iteration report failed for worker=%s job=%s: %s", self.worker_id, job_id, e)
            return False

    async def close(self):
        await self.client.aclose()
