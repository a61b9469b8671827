"""Route definitions for the mock gateway.

Implements the gateway endpoints:
    /warlotSql/projects/init, /warlotSql/projects/resolve - Project lookup and creation
    /auth/issue - API key issuance
    /warlotSql/projects/{project_id}/... - SQL, tables, status and commit
"""

from starlette.routing import Route

from . import handlers

PROJECT = "/warlotSql/projects/{project_id}"


def get_gateway_routes() -> list[Route]:
    """Get all gateway routes.

    Returns:
        List of Starlette Route objects, ending with the catch-all fallback
    """
    return [
        # Projects
        Route("/warlotSql/projects/init", handlers.init_project, methods=["POST"]),
        Route("/warlotSql/projects/resolve", handlers.resolve_project, methods=["POST"]),
        Route("/auth/issue", handlers.issue_key, methods=["POST"]),
        # SQL
        Route(f"{PROJECT}/sql", handlers.execute_sql, methods=["POST"]),
        # Tables
        Route(f"{PROJECT}/tables", handlers.list_tables, methods=["GET"]),
        Route(f"{PROJECT}/tables/count", handlers.count_tables, methods=["GET"]),
        Route(f"{PROJECT}/tables/{{table}}/rows", handlers.browse_rows, methods=["GET"]),
        Route(f"{PROJECT}/tables/{{table}}/schema", handlers.table_schema, methods=["GET"]),
        # Lifecycle
        Route(f"{PROJECT}/status", handlers.project_status, methods=["GET"]),
        Route(f"{PROJECT}/commit", handlers.commit_project, methods=["POST"]),
        Route("/{path:path}", handlers.fallback_route),
    ]
