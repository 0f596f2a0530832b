"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The lifespan builds every long-lived component exactly once per
process, in dependency order, and tears them down in reverse:

    publisher → gateway → bridge (fatal if Redis is down) → repositories
    → services → scheduled jobs

Components live on app.state; handlers get them through api/deps.py.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from managemate import __version__
from managemate.api import api_router
from managemate.config import settings
from managemate.realtime.bridge import MessageBusBridge
from managemate.realtime.gateway import Gateway
from managemate.realtime.pubsub import EventPublisher
from managemate.realtime.websocket import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    A BridgeConnectError here aborts startup on purpose: without the bus
    the gateway would accept clients and never deliver anything.
    """
    logger.info(
        "managemate.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    publisher = EventPublisher(settings.redis_url)
    await publisher.init()
    logger.info("managemate.redis_connected", url=settings.redis_url)

    gateway = Gateway()
    bridge = MessageBusBridge(
        gateway,
        settings.redis_url,
        initial_delay=settings.bridge_reconnect_initial_delay,
        max_delay=settings.bridge_reconnect_max_delay,
        max_attempts=settings.bridge_reconnect_max_attempts,
    )
    try:
        await bridge.connect()
    except Exception:
        await publisher.close()
        raise
    bridge.start()

    from managemate.db.engine import async_session_factory, engine
    from managemate.db.repositories import (
        SqlChatRepository,
        SqlNotificationRepository,
        SqlTaskRepository,
        SqlUserRepository,
    )
    from managemate.scheduler.conflicts import ConflictDetector
    from managemate.scheduler.digest import NotificationDigest
    from managemate.scheduler.runner import JobScheduler
    from managemate.services.chat_service import ChatService
    from managemate.services.email_service import SmtpEmailSender
    from managemate.services.notification_service import NotificationService

    notification_repo = SqlNotificationRepository(async_session_factory)
    notification_service = NotificationService(notification_repo, publisher)
    chat_service = ChatService(SqlChatRepository(async_session_factory), publisher)

    detector = ConflictDetector(
        SqlTaskRepository(async_session_factory),
        publisher,
        notifications=notification_service,
        page_size=settings.conflict_scan_page_size,
    )
    digest = NotificationDigest(
        notification_repo,
        SqlUserRepository(async_session_factory),
        SmtpEmailSender(settings),
        base_url=settings.base_url,
    )

    scheduler = JobScheduler()
    scheduler.add("conflicts", detector.run, settings.conflict_check_interval_seconds)
    scheduler.add("digest", digest.run, settings.email_digest_interval_seconds)
    if settings.scheduler_enabled:
        scheduler.start()

    app.state.publisher = publisher
    app.state.gateway = gateway
    app.state.bridge = bridge
    app.state.scheduler = scheduler
    app.state.notification_service = notification_service
    app.state.chat_service = chat_service

    yield

    logger.info("managemate.shutdown")
    await scheduler.stop()
    await bridge.close()
    await publisher.close()
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="ManageMate Realtime",
        description="Live notifications, module chat and task conflict alerts",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: managemate.main:app)
app = create_app()
