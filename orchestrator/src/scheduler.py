"""
Scheduler - two polling lanes that pick up stands and hand them to executors.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from orchestrator.src.active_stands import ActiveStands
from orchestrator.src.gitlab.client import CIProvider
from orchestrator.src.models.db import Stand
from orchestrator.src.models.status import StandStatus
from orchestrator.src.services.executor import PipelineExecutor
from orchestrator.src.services.provisioner import Provisioner
from orchestrator.src.services.recovery import recover_stale_stands
from orchestrator.src.services.store import Store

logger = logging.getLogger(__name__)

StandHandler = Callable[[Stand], Awaitable[object]]

class Lane:
    """One polling lane: stands in `status` are handed to `handler`."""

    def __init__(self, name: str, status: str, interval: float, max_concurrent: int, handler: StandHandler):
        self.name = name
        self.status = status
        self.interval = interval
        self.max_concurrent = max_concurrent
        self.handler = handler
        # Held while a check of this lane is in flight
        self.guard = asyncio.Lock()

class Scheduler:
    def __init__(
        self,
        store: Store,
        provider: CIProvider,
        pending_interval: float = 10.0,
        created_interval: float = 15.0,
        max_concurrent_pending: int = 1,
        max_concurrent_created: int = 1,
        job_poll_interval: float = 10.0,
    ):
        logger.info("Creating stand scheduler")
        self.store = store
        self.provider = provider
        self.active = ActiveStands()
        self.job_statuses: Dict[str, str] = {}

        self.executor = PipelineExecutor(
            store, provider, job_statuses=self.job_statuses, poll_interval=job_poll_interval
        )
        self.provisioner = Provisioner(store, provider)

        self.pending_lane = Lane(
            "pending",
            StandStatus.PENDING.value,
            pending_interval,
            max_concurrent_pending,
            self.executor.execute_stand,
        )
        self.created_lane = Lane(
            "created",
            StandStatus.CREATED.value,
            created_interval,
            max_concurrent_created,
            self.provisioner.provision,
        )
        self._checks: List[asyncio.Task] = []

    @classmethod
    def from_settings(cls, store: Store, provider: CIProvider, settings) -> "Scheduler":
        return cls(
            store,
            provider,
            pending_interval=settings.pending_interval,
            created_interval=settings.created_interval,
            max_concurrent_pending=settings.max_concurrent_pending,
            max_concurrent_created=settings.max_concurrent_created,
            job_poll_interval=settings.job_poll_interval,
        )

    def recover(self) -> List[str]:
        return recover_stale_stands(self.store, self.active)

    async def run(self, ticks: Optional[int] = None):
        """
        Tick both lanes until cancelled. With `ticks`, each lane ticks that many
        times and the call returns once all started checks are done.
        """
        logger.info("Starting stand scheduler")
        await asyncio.gather(
            self._tick(self.pending_lane, ticks),
            self._tick(self.created_lane, ticks),
        )
        if self._checks:
            await asyncio.gather(*self._checks, return_exceptions=True)

    async def _tick(self, lane: Lane, ticks: Optional[int]):
        count = 0
        while ticks is None or count < ticks:
            await asyncio.sleep(lane.interval)
            count += 1
            task = asyncio.create_task(self.check_lane(lane))
            self._checks.append(task)
            task.add_done_callback(self._checks.remove)

    async def check_lane(self, lane: Lane) -> bool:
        """
        Run one check of the lane unless the previous one is still in flight.
        Returns False when the tick was skipped.
        """
        if lane.guard.locked():
            logger.info(f"Previous check of {lane.name} stands is still running, skipping")
            return False

        async with lane.guard:
            logger.info(f"Checking stands in status {lane.status}...")
            try:
                await self.dispatch(lane)
            except Exception:
                logger.exception(f"Error while checking {lane.name} stands")
        return True

    async def dispatch(self, lane: Lane):
        stands = self.store.stands_by_status(lane.status)
        if not stands:
            logger.info(f"No stands in status {lane.status}")
            return

        semaphore = asyncio.Semaphore(lane.max_concurrent)
        tasks = []
        for stand in stands:
            if stand.name in self.active:
                logger.info(f"Stand {stand.name} is already being processed, skipping")
                continue
            tasks.append(asyncio.create_task(self.process(lane, stand, semaphore)))

        await asyncio.gather(*tasks)

    async def process(self, lane: Lane, stand: Stand, semaphore: asyncio.Semaphore):
        async with semaphore:
            if not self.active.try_acquire(stand.name):
                logger.info(f"Stand {stand.name} is already being processed, skipping")
                return
            try:
                await lane.handler(stand)
            except Exception:
                logger.exception(f"Failed to process {lane.name} stand {stand.name}")
            finally:
                self.active.release(stand.name)
