"""Mock gateway application and CLI entry point."""

from __future__ import annotations

import argparse
import contextlib
import logging
from collections.abc import AsyncIterator

try:
    import duckdb  # noqa: F401
    import sqlglot  # noqa: F401
    from starlette.applications import Starlette
    from starlette.middleware import Middleware
    from uvicorn import run
except ImportError as e:
    raise ImportError(
        "Optional dependencies for the mock gateway are not installed. "
        "Install them using one of the following commands:\n"
        "  - With uv: 'uv sync --extra server'\n"
        "  - With pip: 'pip install warlot[server]'"
    ) from e

from ..config import MockSettings
from .middleware import ApiKeyMiddleware, ErrorHandlingMiddleware
from .project_manager import ProjectManager
from .routes import get_gateway_routes

logger = logging.getLogger(__name__)


def create_app(
    projects: ProjectManager | None = None,
    settings: MockSettings | None = None,
    debug: bool = False,
) -> Starlette:
    """Create the mock gateway application.

    Args:
        projects: Project registry to serve; a fresh one is created from
            ``settings`` if omitted
        settings: Mock settings; read from the environment if omitted
        debug: Starlette debug mode

    Returns:
        Configured Starlette application
    """
    settings = settings or MockSettings.from_env()
    projects = projects or ProjectManager(settings.db_path)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        yield
        projects.close()

    app = Starlette(
        debug=debug,
        routes=get_gateway_routes(),
        middleware=[
            # Outermost first: errors raised by key validation are rendered too
            Middleware(ErrorHandlingMiddleware),
            Middleware(ApiKeyMiddleware),
        ],
        lifespan=lifespan,
    )
    app.state.projects = projects
    app.state.stream_batch = settings.stream_batch
    return app


app = create_app()


# CLI Entry Point
def main() -> None:
    parser = argparse.ArgumentParser(description="Run the warlot mock gateway.")

    parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="Host to run the server on (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--port", type=int, default=8000, help="Port to run the server on (default: 8000)"
    )

    parser.add_argument(
        "--debug", action="store_true", help="Enable debug mode (default: False)"
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    logger.info("serving mock gateway on http://%s:%d", args.host, args.port)

    run(create_app(debug=args.debug), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
