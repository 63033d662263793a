"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import analytics, imports, market_data, portfolio
from config import settings
from database import init_db
from logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup; stop quote polling on shutdown."""
    try:
        init_db()
    except Exception:
        logger.error("Database initialization failed on startup", exc_info=True)
        raise
    logger.info("Portfolio tracker started (%s)", settings.ENVIRONMENT)
    yield
    market_data.shutdown_quote_scheduler()
    logger.info("Portfolio tracker stopped")


app = FastAPI(
    title="Portfolio Tracker",
    description="Transaction-ledger portfolio tracking with live quotes",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(portfolio.router)
app.include_router(market_data.router)
app.include_router(imports.router)
app.include_router(analytics.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
