"""Idempotent SQL migrations.

Migration files are plain ``*.sql`` files applied in file-name order. Each
applied file is recorded in the ``_migrations`` ledger table of the project,
so running :meth:`Migrator.up` again only applies new files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import MigrationError, WarlotError
from .options import CallOptions
from .query import query

if TYPE_CHECKING:
    from .project import Project

logger = logging.getLogger(__name__)

LEDGER_TABLE = "_migrations"

CREATE_LEDGER_SQL = f"""
CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
    id TEXT PRIMARY KEY,
    applied_at TEXT NOT NULL
)
"""


@dataclass
class _LedgerRow:
    id: str


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class Migrator:
    """Applies migration files to a project.

    Args:
        clock: Returns the ``applied_at`` timestamp to record
    """

    def __init__(self, clock=_utc_now) -> None:
        self._clock = clock

    def up(self, project: Project, directory: str | Path | Traversable) -> list[str]:
        """Apply every pending ``*.sql`` file in ``directory``.

        Args:
            project: Target project
            directory: Directory path, or a package resource directory

        Returns:
            File names applied by this run, in order

        Raises:
            MigrationError: The ledger could not be prepared, or a file failed
                to read, apply or record; ``applied`` lists what succeeded
        """
        root = Path(directory) if isinstance(directory, str) else directory

        try:
            project.sql(CREATE_LEDGER_SQL)
        except WarlotError as e:
            raise MigrationError(f"create {LEDGER_TABLE}: {e}") from e

        files = sorted(
            (entry for entry in root.iterdir() if entry.is_file() and entry.name.lower().endswith(".sql")),
            key=lambda entry: entry.name,
        )

        try:
            done = {row.id for row in query(project, f"SELECT id FROM {LEDGER_TABLE}", row_type=_LedgerRow)}
        except WarlotError as e:
            raise MigrationError(f"load applied migrations: {e}") from e

        applied: list[str] = []
        for entry in files:
            name = entry.name
            if name in done:
                continue
            try:
                sql = entry.read_text(encoding="utf-8")
            except OSError as e:
                raise MigrationError(f"read {name}: {e}", name, applied) from e
            try:
                project.sql(sql, options=CallOptions(idempotency_key=f"mig-{name}"))
            except WarlotError as e:
                raise MigrationError(f"apply {name}: {e}", name, applied) from e
            try:
                project.sql(
                    f"INSERT INTO {LEDGER_TABLE} (id, applied_at) VALUES (?, ?)",
                    [name, self._clock()],
                )
            except WarlotError as e:
                raise MigrationError(f"record {name}: {e}", name, applied) from e
            logger.info("applied migration %s", name)
            applied.append(name)
        return applied
