"""FastAPI application for the task API."""

import logging

from fastapi import FastAPI

from .tasks import router as tasks_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Task API",
    description="Task CRUD and CSV bulk upload with queue fan-out",
    version="1.0.0",
)

app.include_router(tasks_router)


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "healthy"}
