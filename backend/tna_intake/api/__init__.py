"""
API route controllers for the intake API.

Routes handle HTTP requests and delegate to services for business logic.
"""

from .health import router as health_router
from .intake import router as intake_router
from .submissions import router as submissions_router
from .communications import router as communications_router
from .export import router as export_router
from .analytics import router as analytics_router
from .auth import router as auth_router

__all__ = [
    "health_router",
    "intake_router",
    "submissions_router",
    "communications_router",
    "export_router",
    "analytics_router",
    "auth_router",
]
