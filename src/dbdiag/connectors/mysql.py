from typing import Any, Dict
from sqlalchemy.engine import URL
from .base import SQLAlchemyBackend
from .dsn import build_url
from ..deadline import Deadline
from ..domain.models import EngineKind, Target, TrustPolicy

DEFAULT_PORT = 3306


class MySQLBackend(SQLAlchemyBackend):
    """
    MySQL / MariaDB over PyMySQL.
    TLS is handed to the driver as a ready SSLContext built from the policy.
    """
    kind = EngineKind.MYSQL
    READ_ONLY_SESSION_SQL = "SET SESSION TRANSACTION READ ONLY"

    def build_url(self, target: Target, secret: str, policy: TrustPolicy) -> URL:
        return build_url(
            "mysql+pymysql",
            target.host,
            target.port or DEFAULT_PORT,
            target.user,
            secret,
            target.name,
        )

    def connect_arguments(self, target: Target, policy: TrustPolicy, deadline: Deadline) -> Dict[str, Any]:
        timeout = deadline.whole_seconds()
        args: Dict[str, Any] = {
            "connect_timeout": timeout,
            "read_timeout": timeout,
            "write_timeout": timeout,
        }
        ctx = policy.ssl_context()
        if ctx is None:
            args["ssl_disabled"] = True
        else:
            args["ssl"] = ctx
        return args
