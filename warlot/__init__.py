__version__ = "0.1.0"

from .client import Client  # noqa: E402
from .errors import (  # noqa: E402
    APIError,
    DeadlineExceeded,
    DecodeError,
    MigrationError,
    RequestCancelled,
    RetryError,
    SQLError,
    TransportError,
    WarlotError,
)
from .migrate import Migrator  # noqa: E402
from .models import (  # noqa: E402
    InitProjectRequest,
    IssueKeyRequest,
    ResolveProjectRequest,
    SQLRequest,
    SQLResponse,
)
from .options import CallOptions, ClientConfig  # noqa: E402
from .pager import Pager  # noqa: E402
from .project import Project  # noqa: E402
from .query import query  # noqa: E402
from .stream import RowScanner  # noqa: E402
from .transport import RetryPolicy  # noqa: E402

__all__ = [
    "__version__",
    # Client
    "CallOptions",
    "Client",
    "ClientConfig",
    "Project",
    "RetryPolicy",
    # Rows
    "Pager",
    "RowScanner",
    "query",
    "Migrator",
    # Requests
    "InitProjectRequest",
    "IssueKeyRequest",
    "ResolveProjectRequest",
    "SQLRequest",
    "SQLResponse",
    # Errors
    "APIError",
    "DeadlineExceeded",
    "DecodeError",
    "MigrationError",
    "RequestCancelled",
    "RetryError",
    "SQLError",
    "TransportError",
    "WarlotError",
]
