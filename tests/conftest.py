"""Shared fixtures: EC keys, self-signed certificates, and an in-memory secret tree."""

from __future__ import annotations

import base64
import datetime
from typing import Any, Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from vaultsign.errors import SecretNotAccessibleError
from vaultsign.keys import private_key_name


def build_certificate(public_key: Any, signing_key: Any, common_name: str = "user1@org1") -> bytes:
    name = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "org1"),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(signing_key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.PEM)


def private_pem(
    key: Any,
    private_format: serialization.PrivateFormat = serialization.PrivateFormat.PKCS8,
    encryption: serialization.KeySerializationEncryption | None = None,
) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        private_format,
        encryption or serialization.NoEncryption(),
    )


class TreeStore:
    """Secret store over nested dicts: dict nodes are directories, anything else a leaf.

    ``failures`` maps a path to the exception raised when it is listed or read.
    Directory names are listed with a trailing slash, as Vault does.
    """

    name = "tree"

    def __init__(self, tree: dict[str, Any], failures: dict[str, Exception] | None = None):
        self.tree = tree
        self.failures = failures or {}
        self.calls: list[tuple[str, str]] = []

    def _node(self, path: str) -> Any:
        node: Any = self.tree
        for segment in [part for part in path.split("/") if part]:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _fail(self, path: str) -> None:
        failure = self.failures.get(path)
        if failure is not None:
            raise failure

    def list(self, path: str) -> list[str] | None:
        self.calls.append(("list", path))
        self._fail(path)
        node = self._node(path)
        if not isinstance(node, dict):
            return None
        return [f"{key}/" if isinstance(value, dict) else key for key, value in node.items()]

    def read(self, path: str) -> bytes | str:
        self.calls.append(("read", path))
        self._fail(path)
        node = self._node(path)
        if node is None or isinstance(node, dict):
            raise SecretNotAccessibleError(f"no secret at {path}", path=path)
        return node


@pytest.fixture
def ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def certificate_factory() -> Callable[..., bytes]:
    return build_certificate


@pytest.fixture
def pem_factory() -> Callable[..., bytes]:
    return private_pem


@pytest.fixture
def store_factory() -> Callable[..., TreeStore]:
    return TreeStore


@pytest.fixture
def identity_material(ec_key: ec.EllipticCurvePrivateKey) -> dict[str, Any]:
    """Certificate and private key of one user, named the way the cache expects."""
    cert_pem = build_certificate(ec_key.public_key(), ec_key)
    key_pem = private_pem(ec_key)
    return {
        "private_key": ec_key,
        "cert_pem": cert_pem,
        "key_pem": key_pem,
        "key_name": private_key_name(ec_key.public_key()),
    }


@pytest.fixture
def secret_tree(identity_material: dict[str, Any]) -> dict[str, Any]:
    """Store layout of one organisation: identity material plus TLS material."""
    return {
        "org1": {
            "users": {
                "user1": {
                    "signcerts": {"cert.pem": base64.b64encode(identity_material["cert_pem"]).decode("ascii")},
                    "keystore": {identity_material["key_name"]: identity_material["key_pem"].decode("ascii")},
                },
            },
            "tls": {"ca.pem": base64.b64encode(b"tls-ca").decode("ascii")},
        },
    }
