"""Signing identities resolved from the crypto cache.

A signing identity binds an MSP ID, an enrollment certificate and the EC key
pair behind it. The private key is found in the cache under
``<hex SKI of the certificate key>_sk``.
"""

from __future__ import annotations

import logging

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec

from vaultsign.cache import CryptoCache
from vaultsign.errors import (
    CertificateNotFoundError,
    InvalidSignatureError,
    MalformedCertificateError,
    MalformedInputError,
    NotFoundError,
    PrivateKeyNotFoundError,
)
from vaultsign.keys import CryptoKey, pem_to_private_key, private_key_name
from vaultsign.signing import SigningManager
from vaultsign.types import IdentityIdentifier, SerializedIdentity

logger = logging.getLogger(__name__)

# protobuf field tags (field << 3 | wire type 2) of the ledger's serialized identity
_MSPID_TAG = 0x0A
_ID_BYTES_TAG = 0x12


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _decode_varint(raw: bytes, offset: int) -> tuple[int, int]:
    value = 0
    shift = 0
    while True:
        if offset >= len(raw) or shift > 63:
            raise MalformedInputError("truncated varint in serialized identity")
        byte = raw[offset]
        offset += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7


def serialize_identity(msp_id: str, id_bytes: bytes) -> bytes:
    out = bytearray()
    for tag, value in ((_MSPID_TAG, msp_id.encode("utf-8")), (_ID_BYTES_TAG, id_bytes)):
        if value:
            out.append(tag)
            out += _encode_varint(len(value))
            out += value
    return bytes(out)


def deserialize_identity(raw: bytes) -> SerializedIdentity:
    fields = {_MSPID_TAG: b"", _ID_BYTES_TAG: b""}
    offset = 0
    while offset < len(raw):
        tag = raw[offset]
        if tag not in fields:
            raise MalformedInputError(f"unexpected field tag {tag:#x} in serialized identity")
        length, offset = _decode_varint(raw, offset + 1)
        if offset + length > len(raw):
            raise MalformedInputError("truncated field in serialized identity")
        fields[tag] = raw[offset:offset + length]
        offset += length
    try:
        msp_id = fields[_MSPID_TAG].decode("utf-8")
    except UnicodeDecodeError as error:
        raise MalformedInputError("serialized identity MSP ID is not UTF-8") from error
    return SerializedIdentity(msp_id=msp_id, id_bytes=fields[_ID_BYTES_TAG])


class Identity:
    """Public view of an identity: can verify, cannot sign."""

    def __init__(self, msp_id: str, certificate: bytes, key: CryptoKey, manager: SigningManager):
        self._msp_id = msp_id
        self._certificate = bytes(certificate)
        self._key = key
        self._manager = manager

    @property
    def msp_id(self) -> str:
        return self._msp_id

    def identifier(self) -> IdentityIdentifier:
        # no separate enrollment ID is tracked; both fields carry the MSP ID
        return IdentityIdentifier(id=self._msp_id, msp_id=self._msp_id)

    def verify(self, msg: bytes, sig: bytes) -> None:
        """Raise unless ``sig`` is a canonical signature over ``msg`` by this identity."""
        digest = self._manager.hash(msg)
        if not self._manager.verify(digest, sig, self._key.public_key):
            raise InvalidSignatureError()

    def serialize(self) -> bytes:
        return serialize_identity(self._msp_id, self._certificate)

    def enrollment_certificate(self) -> bytes:
        return self._certificate


class SigningIdentity(Identity):
    """Identity holding a private key; signs with the shared SigningManager."""

    def sign(self, msg: bytes) -> bytes:
        digest = self._manager.hash(msg)
        return self._manager.sign(digest, self._key.private_key, self._key.public_key)

    def public_version(self) -> Identity:
        return Identity(
            self._msp_id,
            self._certificate,
            CryptoKey(public_key=self._key.public_key),
            self._manager,
        )

    def private_key(self) -> CryptoKey:
        return self._key


def load_certificate(raw: bytes, name: str | None = None) -> x509.Certificate:
    try:
        certificate = x509.load_pem_x509_certificate(raw)
    except ValueError as error:
        raise MalformedCertificateError(f"cannot decode cert {name}: {error}", name=name) from error
    return certificate


def new_signing_identity(
    msp_id: str,
    cert_name: str,
    cache: CryptoCache,
    manager: SigningManager,
    password: bytes | None = None,
) -> SigningIdentity:
    """Build a signing identity from ``cert_name`` and its paired private key.

    Either the whole identity is returned or an error is raised; nothing is
    half-built.
    """
    try:
        cert = cache.get_crypto(cert_name)
    except NotFoundError as error:
        raise CertificateNotFoundError(
            f"failed to find certificate in memory, {error.message}",
            name=cert_name,
        ) from error

    try:
        public_key = load_certificate(cert, cert_name).public_key()
    except UnsupportedAlgorithm as error:
        raise MalformedCertificateError(
            f"unsupported key algorithm in cert {cert_name}: {error}",
            name=cert_name,
        ) from error
    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise MalformedCertificateError("invalid key type, expecting ECDSA Public Key", name=cert_name)

    key_name = private_key_name(public_key)
    try:
        raw_private_key = cache.get_crypto(key_name)
    except NotFoundError as error:
        raise PrivateKeyNotFoundError(
            f"failed to find private key in memory, {error.message}",
            name=key_name,
        ) from error

    private_key = pem_to_private_key(raw_private_key, password)
    key = CryptoKey(public_key=public_key, private_key=private_key)
    logger.info("signing identity ready for %s (ski %s)", msp_id, key.ski().hex())
    return SigningIdentity(msp_id, cert, key, manager)
