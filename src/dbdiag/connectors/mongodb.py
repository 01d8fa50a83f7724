import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional, Union

import pymongo
from pymongo import MongoClient

from ..deadline import Deadline
from ..domain.models import EngineKind, Target, TrustPolicy
from ..exceptions import ConnectError, HealthCheckError, ProbeError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 27017


@contextmanager
def _bounded(deadline: Deadline):
    """Apply the remaining deadline to every operation in the block (client-side timeout)."""
    remaining = deadline.remaining()
    if remaining is None:
        yield
        return
    with pymongo.timeout(max(remaining, 0.001)):
        yield


def parse_command(query: str) -> Union[str, Dict[str, Any]]:
    """
    Health queries for MongoDB are database commands: either a JSON document
    such as '{"dbStats": 1}' or a bare command name such as 'ping'.
    """
    query = query.strip()
    if query.startswith("{"):
        try:
            command = json.loads(query)
        except json.JSONDecodeError as e:
            raise HealthCheckError(f"Health query is not a valid JSON command document: {e}") from e
        if not command:
            raise HealthCheckError("Health query command document is empty")
        return command
    if not query:
        raise HealthCheckError("Health query is empty")
    return query


class MongoDBBackend:
    """
    MongoDB over pymongo.

    connect() selects the server and runs `connectionStatus`, so bad
    credentials fail the connect step. probe() is the `ping` admin command.
    """
    kind = EngineKind.MONGODB

    def __init__(self):
        self.target_id: Optional[str] = None
        self._client: Optional[MongoClient] = None
        self._database: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    @staticmethod
    def client_options(target: Target, secret: str, policy: TrustPolicy, deadline: Deadline) -> Dict[str, Any]:
        timeout_ms = deadline.millis()
        options: Dict[str, Any] = {
            "host": target.host,
            "port": target.port or DEFAULT_PORT,
            "directConnection": True,
            "appname": "dbdiag",
            "serverSelectionTimeoutMS": timeout_ms,
            "connectTimeoutMS": timeout_ms,
            "socketTimeoutMS": timeout_ms,
            "tls": policy.encrypted,
        }
        if target.user:
            options["username"] = target.user
            options["password"] = secret
        if policy.encrypted:
            if not policy.verify_certificate:
                options["tlsAllowInvalidCertificates"] = True
                options["tlsAllowInvalidHostnames"] = True
            elif not policy.check_hostname:
                options["tlsAllowInvalidHostnames"] = True
            if policy.ca_file:
                options["tlsCAFile"] = policy.ca_file
            if policy.has_client_identity:
                # combined cert+key PEM, enforced by the trust policy
                options["tlsCertificateKeyFile"] = policy.client_cert
        return options

    def connect(self, target: Target, secret: str, policy: TrustPolicy, deadline: Deadline) -> None:
        if self._client is not None:
            raise ConnectError(f"{target.id}: backend is already connected")
        self.target_id = target.id
        self._database = target.name or "admin"
        deadline.check(ConnectError, "connect")

        try:
            self._client = MongoClient(**self.client_options(target, secret, policy, deadline))
            with _bounded(deadline):
                self._client[self._database].command("connectionStatus")
        except Exception as e:
            self.release()
            raise ConnectError(f"MongoDB connection failed: {type(e).__name__}: {e}") from e
        logger.debug("%s: connected (mongodb)", target.id)

    def probe(self, deadline: Deadline) -> None:
        if self._client is None:
            raise ProbeError("Probe requires a connected backend")
        deadline.check(ProbeError, "probe")
        try:
            with _bounded(deadline):
                self._client.admin.command("ping")
        except Exception as e:
            raise ProbeError(f"MongoDB ping failed: {type(e).__name__}: {e}") from e

    def verify(self, query: str, deadline: Deadline) -> None:
        if self._client is None:
            raise HealthCheckError("Health check requires a connected backend")
        deadline.check(HealthCheckError, "health check")
        command = parse_command(query)
        try:
            with _bounded(deadline):
                self._client[self._database].command(command)
        except Exception as e:
            raise HealthCheckError(f"MongoDB health command failed: {type(e).__name__}: {e}") from e

    def release(self) -> Optional[Exception]:
        if self._client is None:
            return None
        try:
            self._client.close()
        except Exception as e:
            logger.warning("%s: error while closing client: %s", self.target_id, e)
            return e
        finally:
            self._client = None
        return None
