import asyncio
import logging

from app.scheduler.ticker import run_metrics_tasks

logger = logging.getLogger(__name__)

class MetricsRefresher:
    def __init__(self, controller, interval: float = 15.0):
        self.controller = controller
        self.interval = interval
        self._running = False
        self._task = None

    async def start(self):
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Metrics refresher started.")

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Metrics refresher stopped.")

    async def _loop(self):
        while self._running:
            try:
                await run_metrics_tasks(self.controller)
            except Exception as e:
                logger.error(f"Error refreshing metrics: {e}", exc_info=True)

            await asyncio.sleep(self.interval)
