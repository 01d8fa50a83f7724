import ssl
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class EngineKind(str, Enum):
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLSERVER = "sqlserver"
    ORACLE = "oracle"
    SQLITE = "sqlite"
    MONGODB = "mongodb"


class TrustMode(str, Enum):
    DISABLE = "disable"
    REQUIRE = "require"
    VERIFY_CA = "verify-ca"
    VERIFY_FULL = "verify-full"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    DECRYPTION_FAILED = "decryption_failed"
    INVALID_TRUST_MATERIAL = "invalid_trust_material"
    UNSUPPORTED_TRUST_MODE = "unsupported_trust_mode"
    UNSUPPORTED_KIND = "unsupported_kind"
    CONNECT_FAILED = "connect_failed"
    PROBE_FAILED = "probe_failed"
    HEALTH_CHECK_FAILED = "health_check_failed"


class Target(BaseModel):
    """
    One configured database endpoint to check.
    `type` and `tls_mode` stay raw strings: unsupported values are reported
    per target when the check runs, not rejected at load time.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    host: str = ""
    port: Optional[int] = None
    user: str = ""
    password: str = ""  # base64 of nonce || sealed-data
    name: str = ""
    health_query: Optional[str] = None
    tls_mode: Optional[str] = None
    root_cert_path: Optional[str] = None
    client_cert_path: Optional[str] = None
    client_key_path: Optional[str] = None
    wallet_path: Optional[str] = None


class TrustPolicy(BaseModel):
    """
    Resolved transport-trust decision for one connection attempt.
    Each backend translates it into its driver's native options.
    """
    model_config = ConfigDict(frozen=True)

    mode: TrustMode = TrustMode.DISABLE
    encrypted: bool = False
    verify_certificate: bool = False
    check_hostname: bool = False
    server_hostname: Optional[str] = None
    # None means the system default trust store
    ca_file: Optional[str] = None
    ca_data: Optional[str] = None
    client_cert: Optional[str] = None
    client_key: Optional[str] = None
    wallet_path: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "TrustPolicy":
        if self.verify_certificate and not self.encrypted:
            raise ValueError("certificate verification requires an encrypted channel")
        if self.check_hostname:
            if not self.verify_certificate:
                raise ValueError("hostname check requires certificate verification")
            if not self.server_hostname:
                raise ValueError("hostname check requires a server hostname")
        if bool(self.client_cert) != bool(self.client_key):
            raise ValueError("client certificate and key must be given together")
        return self

    @property
    def has_client_identity(self) -> bool:
        return bool(self.client_cert and self.client_key)

    def ssl_context(self) -> Optional[ssl.SSLContext]:
        """Build an SSLContext for drivers that accept one. None when TLS is off."""
        if not self.encrypted:
            return None

        # A supplied bundle replaces the system trust store
        ctx = ssl.create_default_context(cadata=self.ca_data)
        if not self.verify_certificate:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        else:
            ctx.check_hostname = self.check_hostname
            ctx.verify_mode = ssl.CERT_REQUIRED

        if self.has_client_identity:
            ctx.load_cert_chain(self.client_cert, self.client_key, password=lambda: b"")
        return ctx


class Outcome(BaseModel):
    """Terminal result of one target's check attempt"""
    target_id: str
    kind: OutcomeKind
    cause: Optional[str] = None
    latency_ms: Optional[float] = None
    release_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS


class RunReport(BaseModel):
    outcomes: Dict[str, Outcome] = Field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        return all(o.ok for o in self.outcomes.values())

    @property
    def failures(self) -> List[Outcome]:
        return [o for o in self.outcomes.values() if not o.ok]
