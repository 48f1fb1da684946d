"""
Startup recovery of stands interrupted by a previous crash.
"""

import logging
from typing import List

from orchestrator.src.models.status import StandStatus
from orchestrator.src.active_stands import ActiveStands
from orchestrator.src.services.store import Store

logger = logging.getLogger(__name__)

def recover_stale_stands(store: Store, active: ActiveStands) -> List[str]:
    """
    Move stands left in 'running' back to 'pending'.

    Each stand is recovered in its own transaction; a failure is logged and
    the remaining stands are still processed. Returns the recovered names.
    """
    logger.info("Looking for stale stands...")
    recovered = []

    for stand in store.stands_by_status(StandStatus.RUNNING.value):
        if stand.name in active:
            logger.info(f"Stand {stand.name} is being processed, skipping")
            continue

        logger.info(f"Found stale stand {stand.name} (ID: {stand.id}), recovering")
        try:
            store.recover_stand(stand.id)
        except Exception:
            logger.exception(f"Failed to recover stand {stand.name}")
            continue

        recovered.append(stand.name)
        logger.info(f"Stand {stand.name} recovered")

    if not recovered:
        logger.info("No stale stands found")
    return recovered
