from contextlib import asynccontextmanager

from fastapi import FastAPI

from notification_engine.config import Settings, get_settings
from notification_engine.infrastructure.database import get_engine, initialize_database
from notification_engine.interfaces.api.routes import register_routes
from notification_engine.runtime import NotificationRuntime, build_runtime


def create_app(
    settings: Settings | None = None,
    *,
    runtime: NotificationRuntime | None = None,
) -> FastAPI:
    """Create the FastAPI application whose lifespan owns the dispatcher."""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = runtime
        if active is None:
            initialize_database()
            active = build_runtime(settings)
        app.state.runtime = active
        if settings.scheduler_enabled:
            active.dispatcher.start()
        try:
            yield
        finally:
            active.close()
            app.state.runtime = None
            if runtime is None:
                get_engine().dispose()

    app = FastAPI(title="Notification engine", lifespan=lifespan)
    register_routes(app)
    return app
