"""StackAlchemy - API module for REST endpoints.

This module provides the FastAPI application and all related components
for the StackAlchemy API.
"""

from .config import Settings, get_settings
from .dependencies import (
    Container,
    build_container,
    get_project_service,
    get_project_store,
    get_question_answerer,
)
from .main import app, create_app

__all__ = [
    "app",
    "build_container",
    "Container",
    "create_app",
    "get_project_service",
    "get_project_store",
    "get_question_answerer",
    "get_settings",
    "Settings",
]
