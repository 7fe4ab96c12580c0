"""EC keys, subject key identifiers, the key store, and private-key parsing."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Union

from asn1crypto import keys as asn1_keys
from asn1crypto import pem as asn1_pem
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from vaultsign.cache import ReadWriteLock
from vaultsign.errors import (
    InvalidKeyTypeError,
    InvalidPrivateKeyEncodingError,
    KeyNotFoundError,
    PasswordRequiredError,
    UnsupportedKeyTypeError,
    UnsupportedKeyWrappingError,
)

PRIVATE_KEY_SUFFIX = "_sk"

ENCRYPTED_PKCS8_LABEL = "ENCRYPTED PRIVATE KEY"


def compute_ski(public_key: ec.EllipticCurvePublicKey | None) -> bytes:
    """SHA-256 over the uncompressed point; empty when there is no key."""
    if public_key is None:
        return b""
    raw = public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    return hashlib.sha256(raw).digest()


def private_key_name(public_key: ec.EllipticCurvePublicKey) -> str:
    """Cache name under which the private half of ``public_key`` is stored."""
    return f"{compute_ski(public_key).hex()}{PRIVATE_KEY_SUFFIX}"


@dataclass(frozen=True)
class CryptoKey:
    """An EC public key, optionally paired with its private key.

    The private key is only ever handed to the signing path; ``private``
    reports False for every key this package produces.
    """

    public_key: ec.EllipticCurvePublicKey
    private_key: ec.EllipticCurvePrivateKey | None = field(default=None, repr=False, compare=False)

    def ski(self) -> bytes:
        return compute_ski(self.public_key)

    def to_bytes(self) -> bytes:
        """PKIX (SubjectPublicKeyInfo) DER of the public key."""
        return self.public_key.public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    @property
    def symmetric(self) -> bool:
        return False

    @property
    def private(self) -> bool:
        return False

    @property
    def can_sign(self) -> bool:
        return self.private_key is not None

    def public_version(self) -> CryptoKey:
        return self


# Material accepted by KeyStore.import_key.
KeyMaterial = Union[x509.Certificate, ec.EllipticCurvePublicKey, CryptoKey]


def generate_key() -> CryptoKey:
    private_key = ec.generate_private_key(ec.SECP256R1())
    return CryptoKey(public_key=private_key.public_key(), private_key=private_key)


def key_from_material(material: KeyMaterial) -> CryptoKey:
    if isinstance(material, CryptoKey):
        return material
    if isinstance(material, x509.Certificate):
        try:
            public_key = material.public_key()
        except UnsupportedAlgorithm as error:
            raise InvalidKeyTypeError(
                "invalid key type, it must be ECDSA Public Key",
                key_type="unsupported",
            ) from error
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise InvalidKeyTypeError(
                "invalid key type, it must be ECDSA Public Key",
                key_type=type(public_key).__name__,
            )
        return CryptoKey(public_key=public_key)
    if isinstance(material, ec.EllipticCurvePublicKey):
        return CryptoKey(public_key=material)
    raise InvalidKeyTypeError("unknown key type", key_type=type(material).__name__)


class KeyStore:
    """Keys indexed by hex SKI. Entries are added, replaced, never removed."""

    def __init__(self) -> None:
        self._keys: dict[str, CryptoKey] = {}
        self._lock = ReadWriteLock()

    def put(self, key: CryptoKey) -> CryptoKey:
        with self._lock.write():
            self._keys[key.ski().hex()] = key
        return key

    def get(self, ski: bytes) -> CryptoKey:
        with self._lock.read():
            key = self._keys.get(ski.hex())
        if key is None:
            raise KeyNotFoundError(f"no crypto for key {ski.hex()}", name=ski.hex())
        return key

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._keys)


# tried in this order; the named field is the first one after the version
_WRAPPINGS = (
    ("pkcs1", asn1_keys.RSAPrivateKey, "modulus"),
    ("pkcs8", asn1_keys.PrivateKeyInfo, "private_key_algorithm"),
    ("sec1", asn1_keys.ECPrivateKey, "private_key"),
)


def private_key_wrapping(der: bytes) -> str | None:
    """Name the ASN.1 structure ``der`` parses as: pkcs1, pkcs8, sec1 or None."""
    for wrapping, structure, field_name in _WRAPPINGS:
        try:
            parsed = structure.load(der, strict=True)
            parsed["version"].native
            parsed[field_name].native
        except (ValueError, TypeError, KeyError):
            continue
        return wrapping
    return None


def _require_ec(key: object, wrapping: str | None) -> ec.EllipticCurvePrivateKey:
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return key
    if wrapping == "pkcs8":
        raise UnsupportedKeyWrappingError(
            "found unknown private key type in PKCS#8 wrapping",
            key_type=type(key).__name__,
        )
    raise UnsupportedKeyTypeError(
        "invalid key type, expecting an ECDSA private key",
        key_type=type(key).__name__,
    )


def der_to_private_key(der: bytes) -> ec.EllipticCurvePrivateKey:
    """Parse a PKCS#1, PKCS#8 or SEC1 DER private key; only EC keys are accepted."""
    wrapping = private_key_wrapping(der)
    if wrapping is None:
        raise InvalidPrivateKeyEncodingError("invalid key type. The DER must contain an EC private key")
    try:
        key = serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as error:
        raise InvalidPrivateKeyEncodingError(
            f"invalid key type. The DER must contain an EC private key: {error}",
        ) from error
    return _require_ec(key, wrapping)


def pem_to_private_key(raw: bytes, password: bytes | None = None) -> ec.EllipticCurvePrivateKey:
    """Parse a PEM private key, decrypting it with ``password`` when it is encrypted."""
    try:
        label, headers, der = asn1_pem.unarmor(bytes(raw))
    except (ValueError, TypeError) as error:
        raise InvalidPrivateKeyEncodingError(
            f"failed decoding PEM, no private key block found: {error}",
        ) from error

    if label != ENCRYPTED_PKCS8_LABEL and "DEK-Info" not in headers:
        return der_to_private_key(der)

    try:
        key = serialization.load_pem_private_key(bytes(raw), password=password or None)
    except TypeError as error:
        raise PasswordRequiredError() from error
    except (ValueError, UnsupportedAlgorithm) as error:
        raise InvalidPrivateKeyEncodingError(f"failed PEM decryption: {error}") from error
    return _require_ec(key, "pkcs8" if label == ENCRYPTED_PKCS8_LABEL else None)
