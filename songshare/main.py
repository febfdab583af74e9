"""
SongShare - FastAPI Application

Fractional song royalty investment: settlement of confirmed investments
into per-song royalty pools and pro-rata revenue distribution.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from songshare.core.config import settings
from songshare.core.database import engine, Base
from songshare.routers.songs import router as songs_router, artist_songs_router
from songshare.routers.investments import router as investments_router
from songshare.routers.webhooks import router as webhooks_router
from songshare.routers.distributions import router as distributions_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Create tables on startup (for development)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield
    # Cleanup on shutdown
    await engine.dispose()


app = FastAPI(
    title="SongShare",
    description="Fractional song royalty investment and revenue distribution",
    version="0.1.0",
    lifespan=lifespan,
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
app.include_router(songs_router)
app.include_router(artist_songs_router)
app.include_router(investments_router)
app.include_router(webhooks_router)
app.include_router(distributions_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
