from __future__ import annotations

import logging
from unittest import mock

import pytest
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature, encode_dss_signature

from vaultsign.cache import MemCache
from vaultsign.errors import (
    CertificateNotFoundError,
    InvalidSignatureError,
    MalformedCertificateError,
    MalformedInputError,
    NonCanonicalSignatureError,
    PasswordRequiredError,
    PrivateKeyNotFoundError,
)
from vaultsign.identity import (
    Identity,
    SigningIdentity,
    deserialize_identity,
    new_signing_identity,
    serialize_identity,
)
from vaultsign.keys import compute_ski, private_key_name
from vaultsign.signing import SigningManager, curve_order, half_order


@pytest.fixture
def loaded_cache(identity_material) -> MemCache:
    cache = MemCache()
    cache.set_crypto("cert.pem", identity_material["cert_pem"])
    cache.set_crypto(identity_material["key_name"], identity_material["key_pem"])
    return cache


@pytest.fixture
def signing_identity(loaded_cache) -> SigningIdentity:
    return new_signing_identity("Org1MSP", "cert.pem", loaded_cache, SigningManager())


def test_new_signing_identity_binds_certificate_and_key(signing_identity, identity_material) -> None:
    assert signing_identity.msp_id == "Org1MSP"
    assert signing_identity.enrollment_certificate() == identity_material["cert_pem"]
    key = signing_identity.private_key()
    assert key.can_sign
    assert key.private is False
    assert key.ski().hex() + "_sk" == identity_material["key_name"]


def test_new_signing_identity_logs_readiness(loaded_cache, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="vaultsign.identity"):
        new_signing_identity("Org1MSP", "cert.pem", loaded_cache, SigningManager())
    assert "signing identity ready for Org1MSP" in caplog.text


def test_sign_then_verify(signing_identity) -> None:
    signature = signing_identity.sign(b"proposal")
    _, s = decode_dss_signature(signature)
    assert s <= half_order(signing_identity.private_key().public_key)
    signing_identity.verify(b"proposal", signature)


def test_verify_rejects_tampered_message(signing_identity) -> None:
    signature = signing_identity.sign(b"proposal")
    with pytest.raises(InvalidSignatureError):
        signing_identity.verify(b"proposal!", signature)


def test_verify_rejects_high_s_signature(signing_identity) -> None:
    public_key = signing_identity.private_key().public_key
    r, s = decode_dss_signature(signing_identity.sign(b"proposal"))
    with pytest.raises(NonCanonicalSignatureError):
        signing_identity.verify(b"proposal", encode_dss_signature(r, curve_order(public_key) - s))


def test_identifier_uses_msp_id(signing_identity) -> None:
    identifier = signing_identity.identifier()
    assert identifier.id == "Org1MSP"
    assert identifier.msp_id == "Org1MSP"


def test_serialize_round_trips_through_wire_format(signing_identity, identity_material) -> None:
    raw = signing_identity.serialize()

    assert raw[0] == 0x0A
    decoded = deserialize_identity(raw)
    assert decoded.msp_id == "Org1MSP"
    assert decoded.id_bytes == identity_material["cert_pem"]


def test_serialize_known_bytes() -> None:
    assert serialize_identity("M", b"cert") == b"\x0a\x01M\x12\x04cert"
    assert serialize_identity("", b"") == b""
    long_value = b"x" * 300
    assert serialize_identity("M", long_value)[3:6] == b"\x12\xac\x02"


@pytest.mark.parametrize(
    "raw",
    [
        b"\x1a\x01x",
        b"\x0a\x05abc",
        b"\x0a",
        b"\x0a\x02\xff\xfe",
    ],
)
def test_deserialize_rejects_malformed_bytes(raw: bytes) -> None:
    with pytest.raises(MalformedInputError):
        deserialize_identity(raw)


def test_public_version_cannot_sign(signing_identity) -> None:
    public = signing_identity.public_version()

    assert isinstance(public, Identity)
    assert not isinstance(public, SigningIdentity)
    assert not hasattr(public, "sign")
    assert public.serialize() == signing_identity.serialize()
    public.verify(b"block", signing_identity.sign(b"block"))


def test_missing_certificate(loaded_cache) -> None:
    with pytest.raises(CertificateNotFoundError) as excinfo:
        new_signing_identity("Org1MSP", "other.pem", loaded_cache, SigningManager())
    assert excinfo.value.name == "other.pem"


def test_missing_private_key(identity_material) -> None:
    cache = MemCache()
    cache.set_crypto("cert.pem", identity_material["cert_pem"])

    with pytest.raises(PrivateKeyNotFoundError) as excinfo:
        new_signing_identity("Org1MSP", "cert.pem", cache, SigningManager())
    assert excinfo.value.name == identity_material["key_name"]


def test_undecodable_certificate() -> None:
    cache = MemCache()
    cache.set_crypto("cert.pem", b"-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n")
    with pytest.raises(MalformedCertificateError):
        new_signing_identity("Org1MSP", "cert.pem", cache, SigningManager())


def test_rsa_certificate_is_rejected(certificate_factory) -> None:
    rsa_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cache = MemCache()
    cache.set_crypto("cert.pem", certificate_factory(rsa_key.public_key(), rsa_key))

    with pytest.raises(MalformedCertificateError, match="ECDSA"):
        new_signing_identity("Org1MSP", "cert.pem", cache, SigningManager())


def test_encrypted_private_key_needs_password(ec_key, certificate_factory, pem_factory) -> None:
    cache = MemCache()
    cache.set_crypto("cert.pem", certificate_factory(ec_key.public_key(), ec_key))
    cache.set_crypto(
        private_key_name(ec_key.public_key()),
        pem_factory(
            ec_key,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.BestAvailableEncryption(b"pw"),
        ),
    )

    with pytest.raises(PasswordRequiredError):
        new_signing_identity("Org1MSP", "cert.pem", cache, SigningManager())

    identity = new_signing_identity("Org1MSP", "cert.pem", cache, SigningManager(), password=b"pw")
    identity.verify(b"msg", identity.sign(b"msg"))


def test_certificate_signed_by_another_key_still_uses_its_subject_key(certificate_factory, pem_factory) -> None:
    ca_key = ec.generate_private_key(ec.SECP256R1())
    user_key = ec.generate_private_key(ec.SECP256R1())
    cache = MemCache()
    cache.set_crypto("cert.pem", certificate_factory(user_key.public_key(), ca_key))
    cache.set_crypto(private_key_name(user_key.public_key()), pem_factory(user_key))

    identity = new_signing_identity("Org1MSP", "cert.pem", cache, SigningManager())

    assert identity.private_key().ski() == compute_ski(user_key.public_key())
    identity.verify(b"msg", identity.sign(b"msg"))


def test_certificate_with_unsupported_key_algorithm(loaded_cache, monkeypatch) -> None:
    certificate = mock.Mock(spec=x509.Certificate)
    certificate.public_key.side_effect = UnsupportedAlgorithm("unknown public key algorithm")
    monkeypatch.setattr("vaultsign.identity.load_certificate", lambda raw, name=None: certificate)

    with pytest.raises(MalformedCertificateError, match="unsupported key algorithm") as excinfo:
        new_signing_identity("Org1MSP", "cert.pem", loaded_cache, SigningManager())
    assert excinfo.value.name == "cert.pem"
