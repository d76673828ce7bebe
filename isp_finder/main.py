"""
FastAPI application for the ISP Finder API.

Routers only handle HTTP concerns; all business logic lives in the service.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from isp_finder.config import settings
from isp_finder.services import isp_finder_service
from isp_finder.routers import search, selection, signals, health

# Configure logging once
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Loads the catalog on startup and cancels pending work on shutdown.
    """
    # Startup
    logger.info("Initializing ISP Finder Service...")
    await isp_finder_service.initialize()
    logger.info("Service initialized successfully.")
    yield

    # Shutdown
    await isp_finder_service.shutdown()
    logger.info("Application shutting down.")


# Create FastAPI app
app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    lifespan=lifespan,
    description="Locate, filter, rank and compare internet service providers by city.",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"]
)

# Include routers
app.include_router(search.router)
app.include_router(selection.router)
app.include_router(signals.router)
app.include_router(health.router)
