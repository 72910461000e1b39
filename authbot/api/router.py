"""Master router: includes all sub-routers."""

from fastapi import APIRouter

from .routes.admin import router as admin_router
from .routes.login import router as login_router
from .routes.login import session_router
from .routes.webhook import router as webhook_router

api_router = APIRouter()

api_router.include_router(webhook_router)
api_router.include_router(login_router)
api_router.include_router(admin_router)

# Mounted by the app factory when session_route is on
session_check_router = session_router
