"""Local mock of the warlot gateway, backed by DuckDB.

Modules:
    server: Application factory and CLI entry point
    routes: Route definitions
    handlers: HTTP request handlers
    middleware: HTTP middleware (error handling, API key validation)
    project_manager: Project registry and SQL execution
    serializers: JSON rendering of result rows
    shared: Shared definitions (ServerError, registry access)
"""

# Imported first so a missing server extra reports the install hint
from .server import app, create_app
from .middleware import ApiKeyMiddleware, ErrorHandlingMiddleware
from .project_manager import ProjectManager, ProjectRecord, split_statements
from .routes import get_gateway_routes
from .shared import ServerError

__all__ = [
    # Application
    "app",
    "create_app",
    # Routes
    "get_gateway_routes",
    # Middleware
    "ApiKeyMiddleware",
    "ErrorHandlingMiddleware",
    # Projects
    "ProjectManager",
    "ProjectRecord",
    "split_statements",
    # Shared
    "ServerError",
]
