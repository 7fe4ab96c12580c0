"""Crypto manager: owns the cache, pulls secrets, builds the signing identity."""

from __future__ import annotations

import logging
import time

from vaultsign.cache import CryptoCache, MemCache
from vaultsign.config import BACKEND_VAULT, ManagerSettings
from vaultsign.identity import SigningIdentity, new_signing_identity
from vaultsign.ingest import SecretStore, pull_crypto
from vaultsign.retry import DEFAULT_ATTEMPTS
from vaultsign.signing import SigningManager
from vaultsign.stores import SecretManagerStore, VaultSecretStore
from vaultsign.types import IngestResult

logger = logging.getLogger(__name__)


class CryptoManager(SigningManager):
    """Signing manager bound to one secret store and one signing identity.

    Construction pulls every secret under ``root`` into a fresh in-memory
    cache, then resolves ``cert_name`` and its private key. Any failure is
    raised and leaves no manager behind.
    """

    def __init__(
        self,
        store: SecretStore,
        root: str,
        msp_id: str,
        cert_name: str,
        *,
        password: bytes | None = None,
    ):
        self._cache = MemCache()
        self._store = store

        started = time.monotonic()
        logger.info("pulling crypto materials from %s at %r", store.name, root)
        self._ingest = pull_crypto(store, root, self._cache)
        logger.info(
            "loading of crypto materials took %.2f seconds (%d cached, %d skipped)",
            time.monotonic() - started,
            self._ingest.cached,
            self._ingest.skipped,
        )

        self._signing_identity = new_signing_identity(
            msp_id,
            cert_name,
            self._cache,
            self,
            password=password,
        )

    @property
    def cache(self) -> CryptoCache:
        return self._cache

    @property
    def signing_identity(self) -> SigningIdentity:
        return self._signing_identity

    @property
    def ingest_result(self) -> IngestResult:
        return self._ingest

    @classmethod
    def from_vault(
        cls,
        msp_id: str,
        cert_name: str,
        address: str,
        token: str,
        path: str,
        *,
        password: bytes | None = None,
        attempts: int = DEFAULT_ATTEMPTS,
    ) -> CryptoManager:
        store = VaultSecretStore(address=address, token=token, attempts=attempts)
        return cls(store, path, msp_id, cert_name, password=password)

    @classmethod
    def from_secret_manager(
        cls,
        msp_id: str,
        cert_name: str,
        project: str,
        credentials_path: str | None = None,
        *,
        password: bytes | None = None,
        attempts: int = DEFAULT_ATTEMPTS,
    ) -> CryptoManager:
        store = SecretManagerStore(project, credentials_path=credentials_path, attempts=attempts)
        return cls(store, store.root, msp_id, cert_name, password=password)

    @classmethod
    def from_settings(cls, settings: ManagerSettings) -> CryptoManager:
        if settings.backend == BACKEND_VAULT:
            return cls.from_vault(
                settings.msp_id,
                settings.cert_name,
                settings.vault_address or "",
                settings.vault_token or "",
                settings.root,
                password=settings.key_password,
                attempts=settings.store_attempts,
            )
        return cls.from_secret_manager(
            settings.msp_id,
            settings.cert_name,
            settings.root,
            settings.credentials_path,
            password=settings.key_password,
            attempts=settings.store_attempts,
        )
