import logging
from typing import Any, Dict, Optional
from sqlalchemy import create_engine, text, event
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import NullPool
from ..deadline import Deadline
from ..domain.models import EngineKind, Target, TrustPolicy
from ..exceptions import CheckError, ConnectError, HealthCheckError, ProbeError

logger = logging.getLogger(__name__)


def describe_error(exc: BaseException) -> str:
    """Driver message without SQLAlchemy's statement echo and doc links."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return f"{type(exc.orig).__name__}: {exc.orig}".strip()
    return f"{type(exc).__name__}: {exc}"


class SQLAlchemyBackend:
    """
    Shared lifecycle for the relational engines.
    Subclasses only describe how to reach the server (`build_url`,
    `connect_arguments`); connect/probe/verify/release live here.
    """
    kind: EngineKind

    # Session statements that put the connection into read-only mode
    READ_ONLY_SESSION_SQL: Optional[str] = None

    def __init__(self):
        self.target_id: Optional[str] = None
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    @staticmethod
    def _enforce_read_only_listener(conn, cursor, statement, parameters, context, executemany):
        """
        Event Hook (Interceptor).
        Blocks any SQL that doesn't start with a whitelist keyword.
        """
        sql = statement.strip().upper()

        allowed_starts = (
            "SELECT",
            "WITH",
            "EXPLAIN",
            "DESCRIBE",
            "SHOW",
            "VALUES",
            "PRAGMA",
            "SET",          # session configuration
            "ALTER SESSION" # Oracle session configuration
        )

        if not any(sql.startswith(keyword) for keyword in allowed_starts):
            raise PermissionError(
                f"SAFETY BLOCK: Operation blocked! Only read-only queries are allowed. "
                f"Attempted: {sql[:50]}..."
            )

    def _set_readonly_session_listener(self, connection):
        """
        Session-level read-only mode, applied right after connecting.
        The statement interceptor stays the primary guard.
        """
        if not self.READ_ONLY_SESSION_SQL:
            return
        try:
            connection.execute(text(self.READ_ONLY_SESSION_SQL))
        except DBAPIError as e:
            logger.warning("%s: could not set read-only session: %s", self.target_id, describe_error(e))
            connection.rollback()

    def build_url(self, target: Target, secret: str, policy: TrustPolicy) -> URL:
        raise NotImplementedError

    def connect_arguments(self, target: Target, policy: TrustPolicy, deadline: Deadline) -> Dict[str, Any]:
        """DBAPI keyword arguments (timeouts, TLS objects) for this engine."""
        return {}

    def apply_deadline(self, dbapi_connection, deadline: Deadline) -> None:
        """Bound the next driver call by the remaining deadline, where the driver allows it."""

    def _step_failure(self, error_cls, step: str, exc: Exception, deadline: Deadline):
        if deadline.expired:
            return error_cls(f"Deadline of {deadline.seconds}s exceeded during {step}: {describe_error(exc)}")
        return error_cls(f"{step.capitalize()} failed: {describe_error(exc)}")

    def connect(self, target: Target, secret: str, policy: TrustPolicy, deadline: Deadline) -> None:
        if self._connection is not None:
            raise ConnectError(f"{target.id}: backend is already connected")
        self.target_id = target.id
        deadline.check(ConnectError, "connect")

        try:
            url = self.build_url(target, secret, policy)
            connect_args = self.connect_arguments(target, policy, deadline)
            # One-shot check: no pooling
            self._engine = create_engine(url, poolclass=NullPool, connect_args=connect_args)

            event.listen(self._engine, "before_cursor_execute", self._enforce_read_only_listener)
            event.listen(self._engine, "engine_connect", self._set_readonly_session_listener)

            self._connection = self._engine.connect()
        except CheckError:
            self.release()
            raise
        except Exception as e:
            self.release()
            raise ConnectError(f"Connection failed: {describe_error(e)}") from e

        logger.debug("%s: connected (%s)", target.id, self.kind.value)

    def probe(self, deadline: Deadline) -> None:
        """
        Liveness via the dialect's ping: a native driver ping where one exists
        (mysql, oracle), otherwise the dialect's minimal SELECT 1.
        """
        if self._connection is None:
            raise ProbeError("Probe requires a connected backend")
        deadline.check(ProbeError, "probe")
        try:
            dbapi_connection = self._connection.connection.dbapi_connection
            self.apply_deadline(dbapi_connection, deadline)
            self._connection.dialect.do_ping(dbapi_connection)
        except Exception as e:
            raise self._step_failure(ProbeError, "ping", e, deadline) from e

    def verify(self, query: str, deadline: Deadline) -> None:
        if self._connection is None:
            raise HealthCheckError("Health check requires a connected backend")
        deadline.check(HealthCheckError, "health check")
        try:
            self.apply_deadline(self._connection.connection.dbapi_connection, deadline)
            result = self._connection.execute(text(query))
            if result.returns_rows:
                result.fetchall()
        except Exception as e:
            raise self._step_failure(HealthCheckError, "health check query", e, deadline) from e

    def release(self) -> Optional[Exception]:
        error = None
        if self._connection is not None:
            try:
                self._connection.close()
            except Exception as e:
                error = e
                logger.warning("%s: error while closing connection: %s", self.target_id, describe_error(e))
            finally:
                self._connection = None
        if self._engine is not None:
            try:
                self._engine.dispose()
            except Exception as e:
                error = error or e
                logger.warning("%s: error while disposing engine: %s", self.target_id, describe_error(e))
            finally:
                self._engine = None
        return error
