import ssl

import pytest

from dbdiag.domain.models import EngineKind, TrustMode, TrustPolicy
from dbdiag.exceptions import InvalidTrustMaterialError, UnsupportedTrustModeError
from dbdiag.trust import TrustPolicyBuilder, parse_trust_mode

HOST = "db.example.com"


@pytest.fixture
def builder():
    return TrustPolicyBuilder()


@pytest.mark.parametrize("mode", [None, "", "disable"])
def test_disabled_modes(builder, mode):
    policy = builder.build(mode, HOST)
    assert policy.mode == TrustMode.DISABLE
    assert not policy.encrypted
    assert not policy.verify_certificate
    assert policy.ssl_context() is None


def test_require_encrypts_without_validation(builder):
    policy = builder.build("require", HOST)
    assert policy.encrypted
    assert not policy.verify_certificate
    assert not policy.check_hostname
    ctx = policy.ssl_context()
    assert ctx.verify_mode == ssl.CERT_NONE
    assert ctx.check_hostname is False


def test_verify_ca_uses_system_store_and_skips_hostname(builder):
    policy = builder.build("verify-ca", HOST)
    assert policy.verify_certificate
    assert not policy.check_hostname
    assert policy.ca_file is None
    ctx = policy.ssl_context()
    assert ctx.verify_mode == ssl.CERT_REQUIRED
    assert ctx.check_hostname is False


def test_verify_full_checks_target_hostname(builder):
    policy = builder.build("verify-full", HOST)
    assert policy.check_hostname
    assert policy.server_hostname == HOST
    assert policy.ssl_context().check_hostname is True


def test_verify_full_without_host_is_invalid(builder):
    with pytest.raises(InvalidTrustMaterialError):
        builder.build("verify-full", "")


@pytest.mark.parametrize("mode", ["verify-ca", "verify-full"])
def test_root_cert_becomes_trust_anchor(builder, tls_material, mode):
    policy = builder.build(mode, HOST, root_cert_path=tls_material["ca"])
    assert policy.ca_file == tls_material["ca"]
    assert "BEGIN CERTIFICATE" in policy.ca_data
    stats = policy.ssl_context().cert_store_stats()
    assert stats["x509_ca"] == 1


@pytest.mark.parametrize("mode", ["Disable", "VERIFY-FULL", "prefer", "allow", "true", "verify_full"])
def test_unknown_modes_fail_closed(builder, mode):
    with pytest.raises(UnsupportedTrustModeError):
        builder.build(mode, HOST)


def test_trust_mode_totality():
    for mode in (None, "", "disable", "require", "verify-ca", "verify-full"):
        parse_trust_mode(mode)
    with pytest.raises(UnsupportedTrustModeError):
        parse_trust_mode("off")


def test_unreadable_root_cert_is_invalid(builder, tmp_path):
    with pytest.raises(InvalidTrustMaterialError, match="read root certificate"):
        builder.build("verify-ca", HOST, root_cert_path=str(tmp_path / "missing.pem"))


def test_unparseable_root_cert_is_invalid(builder, tls_material):
    with pytest.raises(InvalidTrustMaterialError, match="parse root certificate"):
        builder.build("verify-ca", HOST, root_cert_path=tls_material["garbage"])


@pytest.mark.parametrize("mode", ["disable", "require", "verify-ca", "verify-full"])
@pytest.mark.parametrize("which", ["cert", "key"])
def test_mtls_both_or_neither(builder, tls_material, mode, which):
    kwargs = {"client_cert_path": tls_material["client_cert"]} if which == "cert" else {
        "client_key_path": tls_material["client_key"]
    }
    with pytest.raises(InvalidTrustMaterialError, match="Both client_cert_path and client_key_path"):
        builder.build(mode, HOST, **kwargs)


def test_client_identity_is_loaded(builder, tls_material):
    policy = builder.build(
        "verify-full", HOST,
        root_cert_path=tls_material["ca"],
        client_cert_path=tls_material["client_cert"],
        client_key_path=tls_material["client_key"],
    )
    assert policy.has_client_identity
    assert isinstance(policy.ssl_context(), ssl.SSLContext)


def test_mismatched_client_key_is_invalid(builder, tls_material):
    with pytest.raises(InvalidTrustMaterialError, match="client key pair"):
        builder.build(
            "require", HOST,
            client_cert_path=tls_material["client_cert"],
            client_key_path=tls_material["other_key"],
        )


class TestKindOverrides:
    @pytest.mark.parametrize("mode", ["verify-ca", "verify-full"])
    def test_oracle_verification_requires_wallet(self, builder, mode):
        with pytest.raises(InvalidTrustMaterialError, match="wallet_path"):
            builder.build(mode, HOST, kind=EngineKind.ORACLE)

    def test_oracle_with_wallet(self, builder, tmp_path):
        policy = builder.build("verify-full", HOST, wallet_path=str(tmp_path), kind="oracle")
        assert policy.wallet_path == str(tmp_path)
        assert policy.check_hostname

    def test_oracle_require_needs_no_wallet(self, builder):
        assert builder.build("require", HOST, kind="oracle").encrypted

    def test_wallet_not_required_for_other_kinds(self, builder):
        assert builder.build("verify-ca", HOST, kind="postgres").verify_certificate

    @pytest.mark.parametrize("mode", ["require", "verify-ca", "verify-full"])
    def test_sqlite_ignores_trust_mode(self, builder, mode):
        policy = builder.build(mode, "", kind="sqlite")
        assert policy.mode == TrustMode.DISABLE
        assert not policy.encrypted

    def test_sqlite_still_rejects_unknown_mode(self, builder):
        with pytest.raises(UnsupportedTrustModeError):
            builder.build("bogus", "", kind="sqlite")

    def test_sqlserver_verify_ca_checks_hostname(self, builder):
        policy = builder.build("verify-ca", HOST, kind="sqlserver")
        assert policy.check_hostname
        assert policy.server_hostname == HOST

    def test_sqlserver_rejects_root_cert(self, builder, tls_material):
        with pytest.raises(InvalidTrustMaterialError, match="root_cert_path"):
            builder.build("verify-ca", HOST, root_cert_path=tls_material["ca"], kind="sqlserver")

    def test_sqlserver_rejects_client_identity(self, builder, tls_material):
        with pytest.raises(InvalidTrustMaterialError, match="not supported"):
            builder.build(
                "require", HOST, kind="sqlserver",
                client_cert_path=tls_material["client_cert"],
                client_key_path=tls_material["client_key"],
            )

    def test_mongodb_requires_combined_pem(self, builder, tls_material):
        with pytest.raises(InvalidTrustMaterialError, match="single PEM"):
            builder.build(
                "require", HOST, kind="mongodb",
                client_cert_path=tls_material["client_cert"],
                client_key_path=tls_material["client_key"],
            )

    def test_mongodb_combined_pem(self, builder, tls_material):
        policy = builder.build(
            "verify-ca", HOST, kind="mongodb",
            client_cert_path=tls_material["combined"],
            client_key_path=tls_material["combined"],
        )
        assert policy.client_cert == tls_material["combined"]

    def test_unknown_kind_uses_generic_rules(self, builder):
        assert builder.build("verify-ca", HOST, kind="cassandra").verify_certificate


class TestPolicyInvariants:
    def test_hostname_check_needs_hostname(self):
        with pytest.raises(ValueError):
            TrustPolicy(mode=TrustMode.VERIFY_FULL, encrypted=True, verify_certificate=True, check_hostname=True)

    def test_verification_needs_encryption(self):
        with pytest.raises(ValueError):
            TrustPolicy(mode=TrustMode.VERIFY_CA, verify_certificate=True)

    def test_partial_client_identity_rejected(self):
        with pytest.raises(ValueError):
            TrustPolicy(mode=TrustMode.REQUIRE, encrypted=True, client_cert="c.pem")
