import asyncio
import json
import threading
import time
from dataclasses import dataclass, field
from time import sleep
from typing import Any, Callable, Iterator

import pytest

from warlot import Client, ClientConfig, RetryPolicy

# Conditional imports for server tests (optional dependencies)
try:
    import uvicorn
    from starlette.applications import Starlette
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.routing import Route

    from warlot.config import MockSettings
    from warlot.server import ProjectManager, create_app

    HAS_SERVER_DEPS = True
except ImportError:
    HAS_SERVER_DEPS = False


# Fast retries so retry tests stay quick
FAST_RETRY = RetryPolicy(max_retries=3, initial_backoff=0.01, max_backoff=0.05)


@dataclass
class Reply:
    """One scripted response."""

    status: int = 200
    body: Any = ""
    headers: dict[str, str] = field(default_factory=dict)
    delay: float = 0.0


@dataclass
class Recorded:
    """One request received by a scripted server."""

    method: str
    path: str
    query: str
    headers: dict[str, str]
    body: bytes
    at: float

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass
class ScriptedServer:
    url: str
    calls: list[Recorded]


def scripted_app(replies: list[Reply], calls: list[Recorded]) -> "Starlette":
    """App answering every request with the next scripted reply (the last one repeats)."""

    async def handler(request: Request) -> Response:
        calls.append(
            Recorded(
                method=request.method,
                path=request.scope.get("raw_path", b"").decode() or request.url.path,
                query=request.url.query,
                headers={k.lower(): v for k, v in request.headers.items()},
                body=await request.body(),
                at=time.monotonic(),
            )
        )
        reply = replies[min(len(calls), len(replies)) - 1]
        if reply.delay:
            await asyncio.sleep(reply.delay)
        body = reply.body
        if not isinstance(body, (str, bytes)):
            body = json.dumps(body)
        return Response(body, status_code=reply.status, headers=reply.headers, media_type="application/json")

    return Starlette(routes=[Route("/{path:path}", handler, methods=["GET", "POST"])])


@pytest.fixture
def serve(unused_tcp_port_factory: Callable[[], int]) -> Iterator[Callable[[Any], str]]:
    """Start apps under uvicorn in daemon threads; returns their base URLs."""
    if not HAS_SERVER_DEPS:
        pytest.skip("Server dependencies (uvicorn, starlette) not installed")

    running = []

    def start(app: Any) -> str:
        port = unused_tcp_port_factory()
        config = uvicorn.Config(app, host="127.0.0.1", port=port, log_level="error")
        server = uvicorn.Server(config)
        thread = threading.Thread(target=server.run, name="Server", daemon=True)
        thread.start()

        # Wait until the server is fully started
        while not server.started:
            sleep(0.05)

        running.append((server, thread))
        return f"http://127.0.0.1:{port}"

    yield start

    # Graceful shutdown
    for server, thread in running:
        server.should_exit = True
        thread.join()


@pytest.fixture
def scripted(serve: Callable[[Any], str]) -> Callable[..., ScriptedServer]:
    def start(*replies: Reply) -> ScriptedServer:
        calls: list[Recorded] = []
        url = serve(scripted_app(list(replies), calls))
        return ScriptedServer(url, calls)

    return start


@pytest.fixture
def projects() -> Iterator["ProjectManager"]:
    if not HAS_SERVER_DEPS:
        pytest.skip("Server dependencies (duckdb, sqlglot, starlette) not installed")
    manager = ProjectManager()
    yield manager
    manager.close()


@pytest.fixture
def gateway(serve: Callable[[Any], str], projects: "ProjectManager") -> str:
    """Base URL of a live mock gateway with a fresh project registry."""
    return serve(create_app(projects, MockSettings(stream_batch=2)))


@pytest.fixture
def make_client() -> Iterator[Callable[..., Client]]:
    clients = []

    def build(base_url: str, **config: Any) -> Client:
        config.setdefault("retry", FAST_RETRY)
        client = Client(ClientConfig(base_url=base_url, **config))
        clients.append(client)
        return client

    yield build

    for client in clients:
        client.close()


@pytest.fixture
def project(gateway: str, make_client: Callable[..., Client]):
    """A project on the live mock gateway, with a client holding its API key."""
    from warlot import InitProjectRequest, IssueKeyRequest

    bootstrap = make_client(gateway)
    created = bootstrap.init_project(InitProjectRequest("0xholder", "demo", "0xowner"))
    issued = bootstrap.issue_api_key(IssueKeyRequest(created.project_id, "0xholder", "demo", "0xowner"))
    client = make_client(gateway, api_key=issued.api_key, holder_id="0xholder", project_name="demo")
    return client.project(created.project_id)
