from fastapi import FastAPI

from .notifications import router as notifications_router
from .scheduler import router as scheduler_router


def register_routes(app: FastAPI) -> None:
    """Register every API router on the FastAPI application."""

    app.include_router(scheduler_router)
    app.include_router(notifications_router)
