"""Shared test fixtures."""

import datetime
import sqlite3
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from dbdiag.domain.models import Target
from dbdiag.vault import encrypt_to_text

KEY = b"0123456789abcdef0123456789abcdef"


@pytest.fixture
def key() -> bytes:
    return KEY


@pytest.fixture
def sqlite_db(tmp_path) -> Path:
    path = tmp_path / "inventory.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
    conn.execute("INSERT INTO users (name) VALUES ('alice')")
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def sqlite_target(sqlite_db) -> Target:
    return Target(id="local", type="sqlite", name=str(sqlite_db), health_query="SELECT count(*) FROM users")


@pytest.fixture
def make_target(key):
    """Build a Target with its password sealed under the test key."""
    def _make(target_id="db1", type="postgres", password="s3cret", **kwargs):
        kwargs.setdefault("host", "db.example.com")
        kwargs.setdefault("port", 5432)
        kwargs.setdefault("user", "monitor")
        kwargs.setdefault("name", "app")
        sealed = encrypt_to_text(password, key) if password else ""
        return Target(id=target_id, type=type, password=sealed, **kwargs)
    return _make


def _name(cn: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])


def _pem_key(k) -> bytes:
    return k.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def tls_material(tmp_path_factory):
    """CA, client certificate/key (separate and combined) and an unrelated key."""
    out = tmp_path_factory.mktemp("tls")
    now = datetime.datetime.now(datetime.timezone.utc)

    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_cert = (
        x509.CertificateBuilder()
        .subject_name(_name("dbdiag test CA"))
        .issuer_name(_name("dbdiag test CA"))
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(ca_key, hashes.SHA256())
    )

    client_key = ec.generate_private_key(ec.SECP256R1())
    client_cert = (
        x509.CertificateBuilder()
        .subject_name(_name("monitor"))
        .issuer_name(ca_cert.subject)
        .public_key(client_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(ca_key, hashes.SHA256())
    )
    other_key = ec.generate_private_key(ec.SECP256R1())

    paths = {
        "ca": out / "ca.pem",
        "client_cert": out / "client.crt",
        "client_key": out / "client.key",
        "combined": out / "client-combined.pem",
        "other_key": out / "other.key",
        "garbage": out / "garbage.pem",
    }
    cert_pem = client_cert.public_bytes(serialization.Encoding.PEM)
    paths["ca"].write_bytes(ca_cert.public_bytes(serialization.Encoding.PEM))
    paths["client_cert"].write_bytes(cert_pem)
    paths["client_key"].write_bytes(_pem_key(client_key))
    paths["combined"].write_bytes(cert_pem + _pem_key(client_key))
    paths["other_key"].write_bytes(_pem_key(other_key))
    paths["garbage"].write_text("this is not a certificate\n")
    return {name: str(p) for name, p in paths.items()}
