"""
vaultsign exception hierarchy.

Every failure raised by the package derives from VaultSignError and carries a
machine-readable code plus a details mapping.
"""

from __future__ import annotations

from typing import Any


class VaultSignError(Exception):
    """Base exception for all vaultsign errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "VAULTSIGN_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(VaultSignError):
    """Raised on a cache or key store miss."""

    def __init__(self, message: str, name: str | None = None, code: str = "NOT_FOUND"):
        super().__init__(message, code=code, details={"name": name})
        self.name = name


class CertificateNotFoundError(NotFoundError):
    def __init__(self, message: str, name: str | None = None):
        super().__init__(message, name=name, code="CERTIFICATE_NOT_FOUND")


class PrivateKeyNotFoundError(NotFoundError):
    def __init__(self, message: str, name: str | None = None):
        super().__init__(message, name=name, code="PRIVATE_KEY_NOT_FOUND")


class KeyNotFoundError(NotFoundError):
    def __init__(self, message: str, name: str | None = None):
        super().__init__(message, name=name, code="KEY_NOT_FOUND")


class MalformedInputError(VaultSignError):
    """Raised when PEM, DER, base64 or signature bytes cannot be decoded."""

    def __init__(
        self,
        message: str,
        code: str = "MALFORMED_INPUT",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, details=details)


class MalformedCertificateError(MalformedInputError):
    def __init__(self, message: str, name: str | None = None):
        super().__init__(message, code="MALFORMED_CERTIFICATE", details={"name": name})
        self.name = name


class MalformedSignatureError(MalformedInputError):
    def __init__(self, message: str):
        super().__init__(message, code="MALFORMED_SIGNATURE")


class InvalidPrivateKeyEncodingError(MalformedInputError):
    def __init__(self, message: str):
        super().__init__(message, code="INVALID_PRIVATE_KEY_ENCODING")


class UnsupportedKeyTypeError(VaultSignError):
    """Raised when a key or key material is not an EC key this package handles."""

    def __init__(self, message: str, key_type: str | None = None, code: str = "UNSUPPORTED_KEY_TYPE"):
        super().__init__(message, code=code, details={"key_type": key_type})
        self.key_type = key_type


class InvalidKeyTypeError(UnsupportedKeyTypeError):
    """Raised by key import for material that is neither a certificate nor an EC public key."""

    def __init__(self, message: str, key_type: str | None = None):
        super().__init__(message, key_type=key_type, code="INVALID_KEY_TYPE")


class UnsupportedKeyWrappingError(UnsupportedKeyTypeError):
    """Raised when a PKCS#8 envelope wraps something other than an EC key."""

    def __init__(self, message: str, key_type: str | None = None):
        super().__init__(message, key_type=key_type, code="UNSUPPORTED_KEY_WRAPPING")


class NonCanonicalSignatureError(VaultSignError):
    """Raised when a signature's s component is in the upper half of the curve order."""

    def __init__(self, message: str, s: int | None = None, half_order: int | None = None):
        super().__init__(
            message,
            code="NON_CANONICAL_SIGNATURE",
            details={
                "s": hex(s) if s is not None else None,
                "half_order": hex(half_order) if half_order is not None else None,
            },
        )
        self.s = s
        self.half_order = half_order


class InvalidSignatureError(VaultSignError):
    def __init__(self, message: str = "invalid signature"):
        super().__init__(message, code="INVALID_SIGNATURE")


class PasswordRequiredError(VaultSignError):
    def __init__(self, message: str = "encrypted key, a password is required"):
        super().__init__(message, code="PASSWORD_REQUIRED")


class SecretStoreError(VaultSignError):
    """Raised when the secret store fails; aborts ingestion."""

    def __init__(self, message: str, path: str | None = None, code: str = "SECRET_STORE_ERROR"):
        super().__init__(message, code=code, details={"path": path})
        self.path = path


class SecretNotAccessibleError(SecretStoreError):
    """Raised for a single secret with no accessible version or denied access.

    Ingestion skips the secret and carries on.
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message, path=path, code="SECRET_NOT_ACCESSIBLE")


class ConfigurationError(VaultSignError):
    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message, code="CONFIGURATION_ERROR", details={"missing": missing or []})
        self.missing = missing or []
