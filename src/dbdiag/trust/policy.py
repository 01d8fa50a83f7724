import logging
import ssl
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from cryptography import x509

from ..domain.models import EngineKind, TrustMode, TrustPolicy
from ..exceptions import InvalidTrustMaterialError, UnsupportedTrustModeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KindTrustRules:
    """Per-engine deviations from the generic trust-mode table."""
    trust_applies: bool = True
    wallet_required_for_verify: bool = False
    supports_root_cert: bool = True
    supports_client_identity: bool = True
    # client certificate and key must live in one PEM file
    combined_client_pem: bool = False
    # driver cannot skip the host name check once it validates certificates
    verify_ca_checks_hostname: bool = False


DEFAULT_RULES = KindTrustRules()

KIND_TRUST_OVERRIDES: Dict[EngineKind, KindTrustRules] = {
    # Trust anchors and client identity come from the wallet
    EngineKind.ORACLE: KindTrustRules(
        wallet_required_for_verify=True,
        supports_root_cert=False,
        supports_client_identity=False,
    ),
    EngineKind.SQLITE: KindTrustRules(trust_applies=False),
    # The ODBC driver validates against the OS trust store only
    EngineKind.SQLSERVER: KindTrustRules(
        supports_root_cert=False,
        supports_client_identity=False,
        verify_ca_checks_hostname=True,
    ),
    EngineKind.MONGODB: KindTrustRules(combined_client_pem=True),
}


def _no_password() -> bytes:
    # Never fall through to an interactive passphrase prompt
    return b""


def parse_trust_mode(mode: Optional[str]) -> TrustMode:
    """Unset means disable. Anything outside the known set fails closed."""
    if mode is None or mode == "":
        return TrustMode.DISABLE
    try:
        return TrustMode(mode)
    except ValueError:
        allowed = ", ".join(m.value for m in TrustMode)
        raise UnsupportedTrustModeError(
            f"Unsupported tls_mode '{mode}' (expected one of: {allowed})"
        ) from None


class TrustPolicyBuilder:
    """
    Derives a TrustPolicy from a target's declared tls_mode and trust material.

    | mode        | encrypted | verify cert | trust anchors            | hostname |
    |-------------|-----------|-------------|--------------------------|----------|
    | disable/""  | no        | no          | n/a                      | no       |
    | require     | yes       | no          | n/a                      | no       |
    | verify-ca   | yes       | yes         | system or root_cert_path | no       |
    | verify-full | yes       | yes         | system or root_cert_path | yes      |
    """

    def __init__(self, overrides: Optional[Dict[EngineKind, KindTrustRules]] = None):
        self.overrides = KIND_TRUST_OVERRIDES if overrides is None else overrides

    def rules_for(self, kind: Optional[Union[EngineKind, str]]) -> KindTrustRules:
        if kind is None:
            return DEFAULT_RULES
        try:
            kind = EngineKind(kind)
        except ValueError:
            return DEFAULT_RULES
        return self.overrides.get(kind, DEFAULT_RULES)

    def build(
        self,
        mode: Optional[str],
        hostname: str,
        root_cert_path: Optional[str] = None,
        client_cert_path: Optional[str] = None,
        client_key_path: Optional[str] = None,
        wallet_path: Optional[str] = None,
        kind: Optional[Union[EngineKind, str]] = None,
    ) -> TrustPolicy:
        trust_mode = parse_trust_mode(mode)
        rules = self.rules_for(kind)
        kind_name = getattr(kind, "value", kind)

        if bool(client_cert_path) != bool(client_key_path):
            raise InvalidTrustMaterialError(
                "Both client_cert_path and client_key_path must be provided for mutual TLS"
            )

        if not rules.trust_applies:
            if trust_mode != TrustMode.DISABLE:
                logger.debug("tls_mode '%s' has no effect for %s", trust_mode.value, kind_name)
            return TrustPolicy(mode=TrustMode.DISABLE)

        if trust_mode == TrustMode.DISABLE:
            return TrustPolicy(mode=TrustMode.DISABLE)

        client_cert, client_key = self._load_client_identity(rules, client_cert_path, client_key_path)

        if trust_mode == TrustMode.REQUIRE:
            return TrustPolicy(
                mode=trust_mode,
                encrypted=True,
                client_cert=client_cert,
                client_key=client_key,
            )

        if rules.wallet_required_for_verify and not wallet_path:
            raise InvalidTrustMaterialError(
                f"tls_mode '{trust_mode.value}' for {kind_name} requires a wallet_path"
            )

        ca_file, ca_data = self._load_root_cert(rules, root_cert_path)

        check_hostname = trust_mode == TrustMode.VERIFY_FULL
        if not check_hostname and rules.verify_ca_checks_hostname:
            logger.warning("%s always verifies the server host name; verify-ca behaves as verify-full", kind_name)
            check_hostname = True
        if check_hostname and not hostname:
            raise InvalidTrustMaterialError("tls_mode 'verify-full' requires a host to verify against")

        return TrustPolicy(
            mode=trust_mode,
            encrypted=True,
            verify_certificate=True,
            check_hostname=check_hostname,
            server_hostname=hostname if check_hostname else None,
            ca_file=ca_file,
            ca_data=ca_data,
            client_cert=client_cert,
            client_key=client_key,
            wallet_path=wallet_path,
        )

    def _load_root_cert(self, rules: KindTrustRules, path: Optional[str]):
        if not path:
            return None, None
        if not rules.supports_root_cert:
            raise InvalidTrustMaterialError(
                "root_cert_path is not supported for this engine; its driver uses the system trust store"
            )
        try:
            pem = Path(path).read_bytes()
        except OSError as e:
            raise InvalidTrustMaterialError(f"Failed to read root certificate {path}: {e}") from e
        try:
            x509.load_pem_x509_certificates(pem)
        except ValueError as e:
            raise InvalidTrustMaterialError(f"Failed to parse root certificate {path}: {e}") from e
        return path, pem.decode("ascii", errors="replace")

    def _load_client_identity(self, rules: KindTrustRules, cert_path: Optional[str], key_path: Optional[str]):
        if not cert_path:
            return None, None
        if not rules.supports_client_identity:
            raise InvalidTrustMaterialError(
                "Client certificates are not supported for this engine"
            )
        if rules.combined_client_pem and cert_path != key_path:
            raise InvalidTrustMaterialError(
                "This engine needs the client certificate and key in a single PEM file; "
                "point client_cert_path and client_key_path at the same file"
            )
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        try:
            ctx.load_cert_chain(cert_path, key_path, password=_no_password)
        except (OSError, ssl.SSLError) as e:
            raise InvalidTrustMaterialError(
                f"Failed to load client key pair ({cert_path}, {key_path}): {e}"
            ) from e
        return cert_path, key_path
