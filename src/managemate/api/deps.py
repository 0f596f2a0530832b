"""FastAPI dependencies — hand the lifespan-built components to handlers.

Learn: Everything stateful (publisher, gateway, bridge, scheduler, services)
is constructed once in the app lifespan and parked on app.state. Handlers
ask for it through these functions instead of importing globals, so tests
can put their own objects on app.state.
"""

from fastapi import Request

from managemate.realtime.gateway import Gateway
from managemate.scheduler.runner import JobScheduler
from managemate.services.chat_service import ChatService
from managemate.services.notification_service import NotificationService


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def get_scheduler(request: Request) -> JobScheduler:
    return request.app.state.scheduler


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service
