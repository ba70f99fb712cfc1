"""FastAPI dependency utilities."""

from fastapi import HTTPException, Request, status

from notification_engine.application.use_cases.notifications import Dispatcher
from notification_engine.runtime import NotificationRuntime


def get_runtime(request: Request) -> NotificationRuntime:
    """Return the engine assembled by the application lifespan."""

    runtime: NotificationRuntime | None = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification engine is not running",
        )
    return runtime


def get_dispatcher(request: Request) -> Dispatcher:
    return get_runtime(request).dispatcher
