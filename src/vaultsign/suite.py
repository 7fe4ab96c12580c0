"""Crypto suite adaptor consumed by the ledger SDK's provider layer."""

from __future__ import annotations

from typing import Any

from vaultsign.errors import UnsupportedKeyTypeError
from vaultsign.keys import CryptoKey, KeyMaterial, KeyStore, generate_key, key_from_material
from vaultsign.signing import SigningManager, signature_to_low_s


class CryptoSuite:
    """KeyGen/KeyImport/GetKey/Hash/Sign/Verify over a KeyStore it owns.

    Option arguments are accepted for interface compatibility and ignored:
    keys are always P-256 and hashing is always SHA-256.
    """

    def __init__(self, manager: SigningManager, key_store: KeyStore | None = None):
        self._manager = manager
        self._keys = key_store if key_store is not None else KeyStore()

    @property
    def key_store(self) -> KeyStore:
        return self._keys

    def key_gen(self, opts: Any = None) -> CryptoKey:
        return self._keys.put(generate_key())

    def key_import(self, raw: KeyMaterial, opts: Any = None) -> CryptoKey:
        return self._keys.put(key_from_material(raw))

    def get_key(self, ski: bytes) -> CryptoKey:
        return self._keys.get(ski)

    def hash(self, msg: bytes, opts: Any = None) -> bytes:
        return self._manager.hash(msg)

    def get_hash(self, opts: Any = None) -> Any:
        return self._manager.get_hash()

    def sign(self, key: Any, digest: bytes, opts: Any = None) -> bytes:
        crypto_key = _require_crypto_key(key)
        if crypto_key.private_key is None:
            raise UnsupportedKeyTypeError("key carries no private part, cannot sign", key_type="public")
        signature = self._manager.sign(digest, crypto_key.private_key, crypto_key.public_key)
        return signature_to_low_s(crypto_key.public_key, signature)

    def verify(self, key: Any, signature: bytes, digest: bytes, opts: Any = None) -> bool:
        crypto_key = _require_crypto_key(key)
        return self._manager.verify(digest, signature, crypto_key.public_key)


def _require_crypto_key(key: Any) -> CryptoKey:
    if not isinstance(key, CryptoKey):
        raise UnsupportedKeyTypeError("invalid key type", key_type=type(key).__name__)
    return key
