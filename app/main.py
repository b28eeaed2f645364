"""FastAPI application entry point."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from core.config import Settings, load_config
from core.errors import ConfigValidationError
from orchestration.runner import Services, run_delivery_async, run_ingestion_async

app = FastAPI(
    title="Job Match API",
    description="Health and run triggers for the job ingestion-and-matching pipeline",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache
def get_services() -> Services:
    """Process-wide stores and dedup cache, built once from the environment."""
    return Services.from_settings(Settings())


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Job Match API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.post("/runs/ingest")
async def trigger_ingest(services: Services = Depends(get_services)):
    """Run one ingestion batch and return its summary."""
    try:
        settings, sources = load_config(settings=services.settings)
    except ConfigValidationError as e:
        raise HTTPException(status_code=422, detail={"error": str(e), "errors": e.errors}) from e
    ctx = await run_ingestion_async(settings, sources, services=services)
    return ctx.summary()


@app.post("/runs/deliver")
async def trigger_deliver(services: Services = Depends(get_services)):
    """Run one delivery cycle and return per-user outcomes."""
    ctx, summary = await run_delivery_async(services.settings, services=services)
    return {
        "summary": ctx.summary(),
        "outcomes": [o.model_dump(mode="json") for o in summary.outcomes],
    }
