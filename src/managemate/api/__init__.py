"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.
Authentication is handled by the auth provider in front of this service.
"""

from fastapi import APIRouter

from managemate.api.chat import router as chat_router
from managemate.api.health import router as health_router
from managemate.api.jobs import router as jobs_router
from managemate.api.notifications import router as notifications_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(chat_router, tags=["chat"])
api_router.include_router(notifications_router, tags=["notifications"])
api_router.include_router(jobs_router, tags=["jobs"])
