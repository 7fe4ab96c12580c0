"""vaultsign: signing identities and a crypto suite backed by remote secret stores."""

from vaultsign.cache import CryptoCache, MemCache
from vaultsign.config import ManagerSettings
from vaultsign.errors import (
    CertificateNotFoundError,
    ConfigurationError,
    InvalidKeyTypeError,
    InvalidPrivateKeyEncodingError,
    InvalidSignatureError,
    KeyNotFoundError,
    MalformedCertificateError,
    MalformedInputError,
    MalformedSignatureError,
    NonCanonicalSignatureError,
    NotFoundError,
    PasswordRequiredError,
    PrivateKeyNotFoundError,
    SecretNotAccessibleError,
    SecretStoreError,
    UnsupportedKeyTypeError,
    UnsupportedKeyWrappingError,
    VaultSignError,
)
from vaultsign.identity import (
    Identity,
    SigningIdentity,
    deserialize_identity,
    new_signing_identity,
)
from vaultsign.ingest import SecretStore, cache_key_for, decode_payload, pull_crypto
from vaultsign.keys import CryptoKey, KeyStore, compute_ski, pem_to_private_key, private_key_name
from vaultsign.manager import CryptoManager
from vaultsign.signing import SigningManager
from vaultsign.stores import SecretManagerStore, VaultSecretStore
from vaultsign.suite import CryptoSuite
from vaultsign.types import IdentityIdentifier, IngestResult, SerializedIdentity

__all__ = [
    "CertificateNotFoundError",
    "ConfigurationError",
    "CryptoCache",
    "CryptoKey",
    "CryptoManager",
    "CryptoSuite",
    "Identity",
    "IdentityIdentifier",
    "IngestResult",
    "InvalidKeyTypeError",
    "InvalidPrivateKeyEncodingError",
    "InvalidSignatureError",
    "KeyNotFoundError",
    "KeyStore",
    "MalformedCertificateError",
    "MalformedInputError",
    "MalformedSignatureError",
    "ManagerSettings",
    "MemCache",
    "NonCanonicalSignatureError",
    "NotFoundError",
    "PasswordRequiredError",
    "PrivateKeyNotFoundError",
    "SecretManagerStore",
    "SecretNotAccessibleError",
    "SecretStore",
    "SecretStoreError",
    "SerializedIdentity",
    "SigningIdentity",
    "SigningManager",
    "UnsupportedKeyTypeError",
    "UnsupportedKeyWrappingError",
    "VaultSecretStore",
    "VaultSignError",
    "cache_key_for",
    "compute_ski",
    "decode_payload",
    "deserialize_identity",
    "new_signing_identity",
    "pem_to_private_key",
    "private_key_name",
    "pull_crypto",
]

__version__ = "0.1.0"
