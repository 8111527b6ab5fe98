"""FastAPI application for the placement billing engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.accounting import router as accounting_router
from src.api.billing_plans import router as billing_plans_router
from src.api.compliance import router as compliance_router
from src.services import async_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Dispose the database engine on shutdown."""
    logger.info("Billing API starting...")
    try:
        yield
    finally:
        try:
            await async_engine.dispose()
            logger.info("Database engine disposed")
        except Exception as e:
            logger.error("Error disposing database engine: %s", e, exc_info=True)


app = FastAPI(
    title="Placement Billing",
    description="Billing plans, monthly bills, payments and fee compliance for worker placements",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(billing_plans_router)
app.include_router(accounting_router)
app.include_router(compliance_router)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {"status": "ok"}


__all__ = ["app"]
