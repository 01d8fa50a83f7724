from pathlib import Path
from typing import Any, Dict
from sqlalchemy.engine import URL
from .base import SQLAlchemyBackend
from ..deadline import Deadline
from ..domain.models import EngineKind, Target, TrustPolicy
from ..exceptions import ConnectError

# VM instructions between deadline checks
PROGRESS_INTERVAL = 1000


class SQLiteBackend(SQLAlchemyBackend):
    """
    Embedded SQLite file. `name` is the database path; host, port, user and
    trust settings do not apply. The file is opened read-only so that a
    mistyped path fails instead of creating an empty database.
    """
    kind = EngineKind.SQLITE

    def build_url(self, target: Target, secret: str, policy: TrustPolicy) -> URL:
        if not target.name:
            raise ConnectError("sqlite target needs 'name' set to the database file path")
        path = Path(target.name).expanduser().absolute().as_posix()
        return URL.create(
            "sqlite",
            database=f"file:{path}",
            query={"mode": "ro", "uri": "true"},
        )

    def connect_arguments(self, target: Target, policy: TrustPolicy, deadline: Deadline) -> Dict[str, Any]:
        # busy timeout for a locked file
        remaining = deadline.remaining()
        return {"timeout": 5.0 if remaining is None else remaining}

    def apply_deadline(self, dbapi_connection, deadline: Deadline) -> None:
        if deadline.unbounded:
            return

        def _interrupt_when_expired() -> int:
            # non-zero aborts the running statement with "interrupted"
            return 1 if deadline.expired else 0

        dbapi_connection.set_progress_handler(_interrupt_when_expired, PROGRESS_INTERVAL)
