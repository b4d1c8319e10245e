"""Main FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orbit import __version__
from orbit.api.endpoints import router
from orbit.api.oauth import router as oauth_router
from orbit.services.scheduler import get_scheduler
from orbit.utils.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(f"Orbit {__version__} starting")
    yield
    await get_scheduler().shutdown()
    logger.info("Orbit stopped")


# Create FastAPI application
app = FastAPI(
    title="Orbit",
    description="A conversational assistant for Gmail and Google Calendar with tool calling and confirmations.",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    tags_metadata=[
        {
            "name": "Chat",
            "description": (
                "Stream conversation turns, record confirmation decisions for pending tool calls, "
                "stop a running turn and inspect or clear the history."
            ),
        },
        {
            "name": "OAuth",
            "description": "Connect, inspect and disconnect the Google account.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(router)
app.include_router(oauth_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("orbit.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
