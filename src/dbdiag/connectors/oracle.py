import logging
from typing import Any, Dict, Optional
from sqlalchemy.engine import URL
from .base import SQLAlchemyBackend
from ..deadline import Deadline
from ..domain.models import EngineKind, Target, TrustMode, TrustPolicy
from ..exceptions import StartupPreconditionError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 1521

# Global flag to track Oracle Client initialization state within this module
_ORACLE_CLIENT_INITIALIZED = False


def init_oracle_client(lib_dir: Optional[str] = None) -> None:
    """
    Switch python-oracledb to Thick mode. Must run once, before any
    connection is opened, so the CLI calls it at startup.
    """
    global _ORACLE_CLIENT_INITIALIZED
    if _ORACLE_CLIENT_INITIALIZED:
        return

    try:
        import oracledb
        oracledb.init_oracle_client(lib_dir=lib_dir)
    except ImportError as e:
        raise StartupPreconditionError("python-oracledb is not installed") from e
    except Exception as e:
        raise StartupPreconditionError(f"Failed to initialize Oracle Client: {e}") from e
    _ORACLE_CLIENT_INITIALIZED = True
    logger.info("Oracle Client initialized (thick mode, lib_dir=%s)", lib_dir)


class OracleBackend(SQLAlchemyBackend):
    """
    Oracle over python-oracledb.

    Unlike the URL-based engines the whole descriptor (address, service name,
    TLS) goes to the driver as keyword parameters. Certificate verification
    relies on a wallet directory, so verify-ca/verify-full need `wallet_path`.
    """
    kind = EngineKind.ORACLE
    # must be the first statement of the transaction
    READ_ONLY_SESSION_SQL = "SET TRANSACTION READ ONLY"

    @staticmethod
    def descriptor(target: Target, policy: TrustPolicy) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "host": target.host,
            "port": target.port or DEFAULT_PORT,
            "service_name": target.name,
            "protocol": "tcps" if policy.encrypted else "tcp",
        }
        if policy.mode == TrustMode.REQUIRE:
            params["ssl_server_dn_match"] = False
            params["ssl_context"] = policy.ssl_context()
        elif policy.verify_certificate:
            params["wallet_location"] = policy.wallet_path
            params["ssl_server_dn_match"] = policy.check_hostname
        return params

    def build_url(self, target: Target, secret: str, policy: TrustPolicy) -> URL:
        # address lives in connect_arguments; the URL only carries credentials
        return URL.create(
            "oracle+oracledb",
            username=target.user or None,
            password=secret or None,
        )

    def connect_arguments(self, target: Target, policy: TrustPolicy, deadline: Deadline) -> Dict[str, Any]:
        args = self.descriptor(target, policy)
        remaining = deadline.remaining()
        if remaining is not None:
            args["tcp_connect_timeout"] = max(remaining, 1.0)
        return args

    def apply_deadline(self, dbapi_connection, deadline: Deadline) -> None:
        if not deadline.unbounded:
            # milliseconds per round trip
            dbapi_connection.call_timeout = deadline.millis()
