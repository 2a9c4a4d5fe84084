import asyncio
import itertools
import logging
import os
import socket
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from agent_sdk.client import ControllerClient
from agent_sdk.state import LocalJobState, SyncChanges

logger = logging.getLogger(__name__)

SyncListener = Callable[[str, str, SyncChanges], Awaitable[None]]
HealthProvider = Callable[[], Dict[str, Any]]

def default_health() -> Dict[str, Any]:
    return {
        "heartbeat": datetime.now(timezone.utc).isoformat(),
        "hostname": socket.gethostname(),
        "pid": os.getpid(),
    }

@dataclass
class AgentConfig:
    # Identity (worker id, cluster) belongs to the ControllerClient
    name: Optional[str] = None
    # Seconds between job syncs / between heartbeats
    job_sync_rate: float = 30.0
    worker_signal_rate: float = 10.0

class AgentRunner:
    def __init__(
        self,
        client: ControllerClient,
        config: Optional[AgentConfig] = None,
        listener: Optional[SyncListener] = None,
        health_provider: HealthProvider = default_health,
    ):
        self.client = client
        self.config = config or AgentConfig()
        self.listener = listener
        self.health_provider = health_provider
        self.buckets: Dict[Tuple[str, str], LocalJobState] = {}
        self.running = False
        self._shutdown_event = asyncio.Event()

    def jobs(self) -> Dict[str, Dict[str, Any]]:
        """All locally known active jobs, keyed by code."""
        merged = {}
        for bucket in self.buckets.values():
            merged.update(bucket.jobs)
        return merged

    async def sync_once(self) -> Dict[Tuple[str, str], SyncChanges]:
        """
        One synchronization round: discover buckets, exchange state for each,
        apply the deltas and notify the listener.
        """
        metadata = await self.client.metadata()
        if metadata is None:
            return {}

        keys = set(itertools.product(metadata.get("groups", []), metadata.get("types", [])))
        # Buckets that vanished from the cluster still need their removals
        keys.update(key for key, bucket in self.buckets.items() if len(bucket))

        applied = {}
        for group, type in sorted(keys):
            bucket = self.buckets.get((group, type))
            if bucket is None:
                bucket = LocalJobState(group, type)

            response = await self.client.status_exchange(group, type, bucket.state())
            if response is None:
                continue

            changes = bucket.apply(response)
            if len(bucket):
                self.buckets[(group, type)] = bucket
            else:
                self.buckets.pop((group, type), None)

            if changes:
                applied[(group, type)] = changes
                if self.listener:
                    await self.listener(group, type, changes)

        return applied

    async def signal_once(self) -> bool:
        health = self.health_provider()
        if await self.client.heartbeat(health):
            return True

        # Unknown to the controller (e.g. deleted): register again
        logger.info(f"Re-registering worker {self.client.worker_id}")
        return await self.client.register(self.config.name, health)

    async def run(self):
        self.running = True
        self._shutdown_event.clear()

        if not await self.client.register(self.config.name, self.health_provider()):
            logger.warning(f"Worker {self.client.worker_id} could not register, heartbeats will retry")

        logger.info(f"Worker {self.client.worker_id} started (Cluster: {self.client.cluster})")

        tasks = [
            asyncio.create_task(self._every(self.config.job_sync_rate, self.sync_once)),
            asyncio.create_task(self._every(self.config.worker_signal_rate, self.signal_once)),
        ]
        try:
            await self._shutdown_event.wait()
        finally:
            for task in tasks:
                task.cancel()
            for task in tasks:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            logger.info("Worker runner stopped")

    def stop(self):
        self.running = False
        self._shutdown_event.set()

    async def _every(self, interval: float, action: Callable[[], Awaitable[Any]]):
        while self.running:
            try:
                await action()
            except Exception as e:
                logger.exception("Error in runner loop for worker %s: %s", self.client.worker_id, e)

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
