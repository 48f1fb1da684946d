"""
Stand orchestrator - main entry point.
"""

import asyncio
import logging
import sys

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from orchestrator.src.config import get_settings
from orchestrator.src.gitlab import GitLabClient
from orchestrator.src.scheduler import Scheduler
from orchestrator.src.services.store import Store

logger = logging.getLogger(__name__)

def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

def init_store(database_url: str) -> Store:
    """Connect to the database and make sure the schema exists."""
    store = Store.from_url(database_url, pool_pre_ping=True)
    with store.engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    store.create_schema()
    return store

async def serve(scheduler: Scheduler, client: GitLabClient):
    try:
        await scheduler.run()
    finally:
        await client.close()

def main():
    """Main entry point."""
    configure_logging()

    try:
        settings = get_settings()
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info("Starting stand orchestrator")

    missing = settings.missing_gitlab_settings()
    if missing:
        logger.error(f"Missing GitLab configuration: {', '.join(missing)}")
        sys.exit(1)

    try:
        store = init_store(settings.database_url)
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}")
        sys.exit(1)

    logger.info(f"GitLab API: {settings.gitlab_api_url} (project {settings.gitlab_project_id})")
    client = GitLabClient.from_settings(settings)
    scheduler = Scheduler.from_settings(store, client, settings)

    scheduler.recover()

    try:
        asyncio.run(serve(scheduler, client))
    except KeyboardInterrupt:
        logger.info("Scheduler shutting down...")

if __name__ == "__main__":
    main()
