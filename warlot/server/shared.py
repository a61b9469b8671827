"""Shared definitions for the mock gateway.

This module contains:
- ServerError exception class
- Access to the project registry bound to the running application
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from starlette.requests import Request

    from .project_manager import ProjectManager


@dataclass
class ServerError(Exception):
    """Exception raised for gateway errors with HTTP status code and error code."""

    status_code: int
    code: str
    message: str

    def __str__(self) -> str:
        return self.message


def get_projects(request: Request) -> ProjectManager:
    """Return the project registry of the application serving ``request``."""
    return request.app.state.projects
