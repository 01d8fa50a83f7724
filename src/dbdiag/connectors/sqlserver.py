from typing import Any, Dict
from sqlalchemy.engine import URL
from .base import SQLAlchemyBackend
from .dsn import build_url
from ..deadline import Deadline
from ..domain.models import EngineKind, Target, TrustPolicy

DEFAULT_PORT = 1433


class SQLServerBackend(SQLAlchemyBackend):
    """
    Microsoft SQL Server over pyodbc.
    Trust is expressed through the ODBC keywords Encrypt/TrustServerCertificate;
    the driver validates against the OS trust store and always checks the host name.
    """
    kind = EngineKind.SQLSERVER
    ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

    @staticmethod
    def trust_params(policy: TrustPolicy) -> Dict[str, str]:
        if not policy.encrypted:
            return {"Encrypt": "no"}
        return {
            "Encrypt": "yes",
            "TrustServerCertificate": "no" if policy.verify_certificate else "yes",
        }

    def build_url(self, target: Target, secret: str, policy: TrustPolicy) -> URL:
        params = {"driver": self.ODBC_DRIVER}
        params.update(self.trust_params(policy))
        return build_url(
            "mssql+pyodbc",
            target.host,
            target.port or DEFAULT_PORT,
            target.user,
            secret,
            target.name,
            params,
        )

    def connect_arguments(self, target: Target, policy: TrustPolicy, deadline: Deadline) -> Dict[str, Any]:
        # pyodbc maps this onto SQL_ATTR_LOGIN_TIMEOUT
        return {"timeout": deadline.whole_seconds()}

    def apply_deadline(self, dbapi_connection, deadline: Deadline) -> None:
        if not deadline.unbounded:
            # pyodbc query timeout (SQL_ATTR_QUERY_TIMEOUT) for statements on this connection
            dbapi_connection.timeout = deadline.whole_seconds()
