# Dev Portal - FastAPI Application

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from devportal import __version__
from devportal.api.routes import get_manager, router

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s  %(levelname)-8s  %(message)s"
)
logger = logging.getLogger("devportal")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown hooks."""
    mgr = get_manager()
    logger.info(
        "Dev Portal API started (%d services: %s)",
        len(mgr.registry),
        ", ".join(mgr.registry.ids()),
    )
    yield
    # Managed services outlive the control plane
    logger.info("Dev Portal API stopped")


app = FastAPI(
    title="Dev Portal",
    description="Local control plane for the M-Suite development services",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routes
app.include_router(router)
