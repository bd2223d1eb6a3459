"""Doable Core FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_settings
from ..database import init_db
from .routers import chat, invitations

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("doable-core")

settings = get_settings()
logger.info("Starting Doable Core API")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup."""
    init_db()
    logger.info("Database tables ready")
    yield


# Create FastAPI app
app = FastAPI(
    title="Doable Core API",
    description="Team issue tracking with an AI chat assistant",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Conversation-Id"],
)

# Team-scoped routers under /api/v1/teams
app.include_router(chat.router, prefix="/api/v1/teams")
app.include_router(invitations.router, prefix="/api/v1/teams")


@app.get("/")
def root():
    """Root endpoint with server info."""
    return {
        "name": "Doable Core API",
        "version": __version__,
        "docs": "/docs",
        "description": "Team issue tracking with an AI chat assistant",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
