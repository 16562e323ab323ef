"""PhishNet - API Routers"""
from .auth import router as auth_router
from .incidents import router as incidents_router
from .review import router as review_router
from .admin import router as admin_router

__all__ = [
    "auth_router",
    "incidents_router",
    "review_router",
    "admin_router",
]
