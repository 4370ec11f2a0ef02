"""API routers for the StackAlchemy application.

This module exports all API routers for inclusion in the main FastAPI app.
"""

from .ask import router as ask_router
from .health import router as health_router
from .projects import router as projects_router

__all__ = [
    "ask_router",
    "health_router",
    "projects_router",
]
