from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

import uvicorn

from api.src.config import get_settings
from api.src.db.database import init_db
from api.src.routes import health_router, stands_router, notifications_router, products_router

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting stand orchestrator API")
    await init_db()
    yield
    # Shutdown
    logger.info("Shutting down stand orchestrator API")

app = FastAPI(
    title="Stand Orchestrator",
    description="Ephemeral test stands provisioned through GitLab pipelines",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(stands_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")
app.include_router(products_router, prefix="/api/v1")

@app.get("/")
async def root():
    return {
        "name": "Stand Orchestrator",
        "version": "0.1.0",
        "docs": "/docs"
    }

def run():
    """Serve the API with uvicorn."""
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

if __name__ == "__main__":
    run()
