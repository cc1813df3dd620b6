"""
Main FastAPI application for Subwatch.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Callable, Dict, Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from subwatch.config import settings, validate_settings
from subwatch.middleware.correlation import CorrelationIdMiddleware
from subwatch.constants import (
    TASK_MONITOR_CHECK_INTERVAL_SECONDS,
    SHUTDOWN_DRAIN_TIMEOUT_SECONDS,
)
from subwatch.database import init_db, close_db, AsyncSessionLocal
from subwatch.utils.logger import setup_logger
from subwatch.clients import create_backend
from subwatch.services import NotificationService, PersistenceService, SubscriptionManager
from subwatch.api import subscriptions, status, settings as settings_api


class BackgroundTaskMonitor:
    """
    Monitors and restarts background tasks if they die unexpectedly.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}
        self._task_factories: Dict[str, Callable] = {}
        self._monitor_task: Optional[asyncio.Task] = None
        self._running = False

    def register_task(self, name: str, factory: Callable) -> asyncio.Task:
        """
        Register and start a background task.

        Args:
            name: Unique name for the task
            factory: Coroutine factory that creates the task
        """
        self._task_factories[name] = factory
        task = asyncio.create_task(factory(), name=name)
        self._tasks[name] = task
        logger.info(f"Background task '{name}' started")
        return task

    async def start_monitoring(self, check_interval: float = TASK_MONITOR_CHECK_INTERVAL_SECONDS):
        self._running = True
        self._monitor_task = asyncio.create_task(
            self._monitor_loop(check_interval),
            name="task_monitor"
        )

    async def stop(self):
        """Stop all tasks and the monitor."""
        self._running = False

        if self._monitor_task:
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass

        for name, task in self._tasks.items():
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            logger.debug(f"Background task '{name}' stopped")

    async def _monitor_loop(self, check_interval: float):
        while self._running:
            try:
                await asyncio.sleep(check_interval)

                for name, task in list(self._tasks.items()):
                    if not task.done():
                        continue
                    if task.cancelled():
                        logger.debug(f"Background task '{name}' was cancelled")
                        continue
                    exc = task.exception()
                    if exc:
                        logger.error(f"Background task '{name}' crashed: {exc}")

                    logger.warning(f"Restarting background task '{name}'")
                    self._tasks[name] = asyncio.create_task(self._task_factories[name](), name=name)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in task monitor: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager."""
    # Startup
    setup_logger()
    logger.info(f"Starting {settings.app_name} {settings.app_version}...")

    for warning in validate_settings(settings):
        logger.warning(f"Configuration: {warning}")

    await init_db()
    logger.info("Database initialized")

    persistence_service = PersistenceService(
        AsyncSessionLocal,
        settings.persistence.flush_interval_seconds,
    )
    notification_service = NotificationService(settings.notifications, settings.app_name)
    backend = create_backend(settings.backend)

    manager = SubscriptionManager(
        backend,
        notification_service.notify,
        persistence_service.mark_dirty,
        page_size=settings.page_size,
    )
    persistence_service.bind(lambda: manager.subscriptions)

    manager.initialize(await persistence_service.load())
    await manager.start()

    task_monitor = BackgroundTaskMonitor()
    task_monitor.register_task("persistence_flush", persistence_service.run_flush_loop)
    await task_monitor.start_monitoring(check_interval=TASK_MONITOR_CHECK_INTERVAL_SECONDS)

    app.state.subscription_manager = manager
    app.state.persistence_service = persistence_service
    app.state.notification_service = notification_service
    app.state.backend = backend
    app.state.task_monitor = task_monitor

    logger.info(f"{settings.app_name} started successfully")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await task_monitor.stop()

    # Timeout so an unreachable backend cannot hang shutdown
    try:
        await asyncio.wait_for(manager.stop(), timeout=SHUTDOWN_DRAIN_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Timeout waiting for in-flight refreshes during shutdown")

    await persistence_service.flush()
    await backend.close()
    await notification_service.close()
    await close_db()
    logger.info(f"{settings.app_name} shut down complete")


app = FastAPI(
    title="Subwatch",
    description="Subscription collection manager with scheduled node-count refreshes",
    version=settings.app_version,
    lifespan=lifespan
)

# Correlation ID middleware (first, to capture all requests)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(subscriptions.router)
app.include_router(status.router)
app.include_router(settings_api.router)


@app.get("/api/status/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.app_version
    }


@app.get("/api/status/ready")
async def readiness_check(request: Request):
    """
    Readiness check: database reachable and subscription manager running.
    """
    checks = {
        "database": False,
        "subscription_manager": False,
    }

    try:
        async with AsyncSessionLocal() as db:
            from sqlalchemy import text
            await db.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception as e:
        logger.warning(f"Readiness check - database failed: {e}")

    manager = getattr(request.app.state, "subscription_manager", None)
    if manager is not None and manager.running:
        checks["subscription_manager"] = True

    if all(checks.values()):
        return {"status": "ready", "checks": checks}
    return JSONResponse({"status": "not_ready", "checks": checks}, status_code=503)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
