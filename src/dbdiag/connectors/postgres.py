import ssl
from typing import Any, Dict, Optional
from sqlalchemy.engine import URL
from .base import SQLAlchemyBackend
from .dsn import build_url
from ..deadline import Deadline
from ..domain.models import EngineKind, Target, TrustMode, TrustPolicy

DEFAULT_PORT = 5432


def system_ca_bundle() -> Optional[str]:
    """Path of the OpenSSL default CA file, for libpq modes that cannot use sslrootcert=system."""
    paths = ssl.get_default_verify_paths()
    return paths.cafile or paths.openssl_cafile


class PostgresBackend(SQLAlchemyBackend):
    """
    PostgreSQL over psycopg2.
    libpq speaks the same sslmode vocabulary as TrustMode, so the policy maps
    straight onto sslmode/sslrootcert/sslcert/sslkey.
    """
    kind = EngineKind.POSTGRES
    READ_ONLY_SESSION_SQL = "SET SESSION CHARACTERISTICS AS TRANSACTION READ ONLY"

    @staticmethod
    def trust_params(policy: TrustPolicy) -> Dict[str, Optional[str]]:
        params = {"sslmode": policy.mode.value}
        if policy.verify_certificate:
            if policy.ca_file:
                params["sslrootcert"] = policy.ca_file
            elif policy.mode == TrustMode.VERIFY_FULL:
                # libpq >= 16: OS trust store, only accepted with verify-full
                params["sslrootcert"] = "system"
            else:
                params["sslrootcert"] = system_ca_bundle()
        if policy.has_client_identity:
            params["sslcert"] = policy.client_cert
            params["sslkey"] = policy.client_key
        return params

    def build_url(self, target: Target, secret: str, policy: TrustPolicy) -> URL:
        return build_url(
            "postgresql+psycopg2",
            target.host,
            target.port or DEFAULT_PORT,
            target.user,
            secret,
            target.name,
            self.trust_params(policy),
        )

    def connect_arguments(self, target: Target, policy: TrustPolicy, deadline: Deadline) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "connect_timeout": deadline.whole_seconds(),
            "application_name": "dbdiag",
        }
        if not deadline.unbounded:
            # server cancels any statement still running when the attempt's budget is spent
            args["options"] = f"-c statement_timeout={deadline.millis()}"
        return args
