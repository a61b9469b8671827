"""``warlotdev``: command-line front-end for the warlot gateway.

Every command accepts the global connection flags; their defaults come from
the ``WARLOT_*`` environment variables (see :mod:`warlot.config`).

Examples::

    warlotdev resolve --holder 0xH --pname myproj
    warlotdev init --holder 0xH --pname myproj --owner 0xUSER
    warlotdev sql --project <id> -q 'SELECT * FROM products LIMIT 5'
    warlotdev sql --project <id> -q 'INSERT INTO t (name) VALUES (?)' --params '["alice"]' --idempotency one
    warlotdev tables browse --project <id> --table products --limit 10
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from collections.abc import Sequence
from typing import Any

from . import __version__
from .client import Client
from .config import Settings
from .errors import WarlotError
from .models import (
    InitProjectRequest,
    IssueKeyRequest,
    ResolveProjectRequest,
    SQLRequest,
    SQLResponse,
)
from .options import CallOptions

PROG = "warlotdev"


def print_json(value: Any) -> None:
    if isinstance(value, SQLResponse):
        value = value.to_dict()
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    print(json.dumps(value, indent=2, default=str))


def _global_flags(settings: Settings) -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    group = common.add_argument_group("connection")
    group.add_argument("--base", dest="base_url", default=settings.base_url, help="API base URL (env WARLOT_BASE_URL)")
    group.add_argument("--apikey", dest="api_key", default=settings.api_key, help="API key (env WARLOT_API_KEY)")
    group.add_argument("--holder", dest="holder_id", default=settings.holder_id, help="Holder ID (env WARLOT_HOLDER)")
    group.add_argument(
        "--pname", dest="project_name", default=settings.project_name, help="Project name (env WARLOT_PNAME)"
    )
    group.add_argument(
        "--timeout", type=int, default=settings.timeout, help="Request timeout in seconds (env WARLOT_TIMEOUT)"
    )
    group.add_argument(
        "--retries", type=int, default=settings.retries, help="Retries on 429/5xx (env WARLOT_RETRIES)"
    )
    group.add_argument(
        "--backoff-init",
        dest="backoff_init_ms",
        type=int,
        default=settings.backoff_init_ms,
        help="Initial backoff in ms (env WARLOT_BACKOFF_INIT_MS)",
    )
    group.add_argument(
        "--backoff-max",
        dest="backoff_max_ms",
        type=int,
        default=settings.backoff_max_ms,
        help="Max backoff in ms (env WARLOT_BACKOFF_MAX_MS)",
    )
    group.add_argument("-v", "--verbose", action="store_true", help="Log requests and responses (API key redacted)")
    return common


def build_parser(settings: Settings | None = None) -> argparse.ArgumentParser:
    settings = settings or Settings.from_env()
    common = _global_flags(settings)

    parser = argparse.ArgumentParser(prog=PROG, description="Command-line client for the Warlot SQL API.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", metavar="<command>", required=True)

    commands.add_parser("resolve", parents=[common], help="Resolve a project by holder and name")

    init = commands.add_parser("init", parents=[common], help="Initialize a new project")
    init.add_argument("--owner", default="", help="Owner address")
    init.add_argument(
        "--include-pass", action=argparse.BooleanOptionalAction, default=True, help="Include pass artifacts"
    )
    init.add_argument("--deletable", action=argparse.BooleanOptionalAction, default=True, help="Deletable project")

    issue = commands.add_parser("issue-key", parents=[common], help="Issue a project API key")
    issue.add_argument("--project", default="", help="Project ID")
    issue.add_argument("--user", default="", help="User address")

    sql = commands.add_parser("sql", parents=[common], help="Execute a SQL statement")
    sql.add_argument("--project", default="", help="Project ID")
    sql.add_argument("-q", "--query", default="", help="SQL statement")
    sql.add_argument("--params", default="", help='Parameters as a JSON array, e.g. ["Laptop", 999.99]')
    sql.add_argument("--idempotency", default="", help="Idempotency key for writes")
    sql.add_argument("--stream", action="store_true", help="Stream rows, printing one JSON object per row")

    tables = commands.add_parser("tables", help="Inspect tables")
    table_commands = tables.add_subparsers(dest="tables_command", metavar="<list|browse|schema|count>", required=True)
    for name, help_text in (("list", "List tables"), ("count", "Count tables")):
        sub = table_commands.add_parser(name, parents=[common], help=help_text)
        sub.add_argument("--project", default="", help="Project ID")
    browse = table_commands.add_parser("browse", parents=[common], help="Browse table rows")
    browse.add_argument("--project", default="", help="Project ID")
    browse.add_argument("--table", default="", help="Table name")
    browse.add_argument("--limit", type=int, default=10, help="Page size")
    browse.add_argument("--offset", type=int, default=0, help="Rows to skip")
    schema = table_commands.add_parser("schema", parents=[common], help="Show a table schema")
    schema.add_argument("--project", default="", help="Project ID")
    schema.add_argument("--table", default="", help="Table name")

    for name, help_text in (("status", "Show project status"), ("commit", "Commit pending changes")):
        sub = commands.add_parser(name, parents=[common], help=help_text)
        sub.add_argument("--project", default="", help="Project ID")

    return parser


def _require(parser: argparse.ArgumentParser, args: argparse.Namespace, *names: str) -> None:
    for name in names:
        if not str(getattr(args, name, "") or "").strip():
            flag = {
                "base_url": "--base",
                "api_key": "--apikey",
                "holder_id": "--holder",
                "project_name": "--pname",
                "query": "-q",
            }.get(name, "--" + name)
            parser.error(f"missing required flag: {flag}")


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings(
        base_url=args.base_url,
        api_key=args.api_key,
        holder_id=args.holder_id,
        project_name=args.project_name,
        timeout=args.timeout,
        retries=args.retries,
        backoff_init_ms=args.backoff_init_ms,
        backoff_max_ms=args.backoff_max_ms,
    )


def run(args: argparse.Namespace, client: Client, parser: argparse.ArgumentParser) -> None:
    """Dispatch one parsed command."""
    call = CallOptions(deadline=float(args.timeout) if args.timeout > 0 else None)
    command = args.command
    project_auth = ("project", "holder_id", "project_name", "api_key")

    if command == "resolve":
        _require(parser, args, "holder_id", "project_name")
        print_json(client.resolve_project(ResolveProjectRequest(args.holder_id, args.project_name), call))

    elif command == "init":
        _require(parser, args, "holder_id", "project_name", "owner")
        request = InitProjectRequest(
            holder_id=args.holder_id,
            project_name=args.project_name,
            owner_address=args.owner,
            include_pass=args.include_pass,
            deletable=args.deletable,
        )
        print_json(client.init_project(request, call))

    elif command == "issue-key":
        _require(parser, args, "project", "holder_id", "project_name", "user")
        request = IssueKeyRequest(args.project, args.holder_id, args.project_name, args.user)
        print_json(client.issue_api_key(request, call))

    elif command == "sql":
        _require(parser, args, *project_auth, "query")
        params: list[Any] = []
        if args.params.strip():
            try:
                params = json.loads(args.params)
            except ValueError as e:
                raise WarlotError(f"invalid --params JSON: {e}") from e
            if not isinstance(params, list):
                raise WarlotError("invalid --params JSON: expected an array")
        call.idempotency_key = args.idempotency
        request = SQLRequest(args.query, params)
        if args.stream:
            with client.exec_sql_stream(args.project, request, call) as scanner:
                for row in scanner:
                    print_json(row)
                if scanner.err is not None:
                    raise WarlotError(f"stream read error: {scanner.err}") from scanner.err
        else:
            print_json(client.exec_sql(args.project, request, call))

    elif command == "tables":
        sub = args.tables_command
        if sub in ("browse", "schema"):
            _require(parser, args, *project_auth, "table")
        else:
            _require(parser, args, *project_auth)
        project = client.project(args.project)
        if sub == "list":
            print_json(project.tables(call))
        elif sub == "browse":
            print_json(project.browse(args.table, args.limit, args.offset, call))
        elif sub == "schema":
            print_json(project.schema(args.table, call))
        else:
            print_json(project.count(call))

    elif command == "status":
        _require(parser, args, *project_auth)
        print_json(client.get_project_status(args.project, call))

    elif command == "commit":
        _require(parser, args, *project_auth)
        print_json(client.commit_project(args.project, call))


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    with Client(_settings_from_args(args).to_client_config()) as client:
        try:
            run(args, client, parser)
        except WarlotError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
