"""Secret-store adapters exposing the list/read traversal capability.

- VaultSecretStore: hierarchical key-value vault (hvac).
- SecretManagerStore: flat Google Cloud Secret Manager project whose secret
  ids encode a slash-separated logical path.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable, TypeVar

import hvac
from google.api_core import exceptions as gcp_exceptions
from google.cloud import secretmanager
from hvac import exceptions as vault_exceptions

from vaultsign.errors import SecretNotAccessibleError, SecretStoreError
from vaultsign.retry import DEFAULT_ATTEMPTS, retry_store_call

T = TypeVar("T")

logger = logging.getLogger(__name__)

_SECRET_NAME_ENCODING = (("@", "____"), ("/", "___"), (".", "__"))
_SECRET_NAME_DECODING = {encoded: raw for raw, encoded in _SECRET_NAME_ENCODING}
_ENCODED_TOKEN = re.compile("____|___|__")

_VAULT_TRANSIENT = (
    vault_exceptions.VaultDown,
    vault_exceptions.InternalServerError,
    vault_exceptions.BadGateway,
    vault_exceptions.RateLimitExceeded,
)
_VAULT_NOT_ACCESSIBLE = (
    vault_exceptions.Forbidden,
    vault_exceptions.InvalidPath,
)

_GCP_TRANSIENT = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.InternalServerError,
    gcp_exceptions.TooManyRequests,
)
_GCP_NOT_ACCESSIBLE = (
    gcp_exceptions.NotFound,
    gcp_exceptions.PermissionDenied,
)


def encode_secret_name(name: str) -> str:
    """Map a logical path onto the character set Secret Manager ids allow."""
    for raw, encoded in _SECRET_NAME_ENCODING:
        name = name.replace(raw, encoded)
    return name


def decode_secret_name(secret_id: str) -> str:
    return _ENCODED_TOKEN.sub(lambda match: _SECRET_NAME_DECODING[match.group(0)], secret_id)


class VaultSecretStore:
    """Vault KV tree. Each leaf holds its payload as a string under ``data``."""

    name = "vault"

    def __init__(
        self,
        client: Any = None,
        *,
        address: str | None = None,
        token: str | None = None,
        attempts: int = DEFAULT_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if client is None:
            client = hvac.Client(url=address, token=token)
        self._client = client
        self._attempts = attempts
        self._sleep = sleep

    def _call(self, path: str, operation: Callable[[], T]) -> T:
        try:
            return retry_store_call(
                operation,
                is_transient=lambda error: isinstance(error, _VAULT_TRANSIENT),
                attempts=self._attempts,
                description=f"vault call on {path}",
                sleep=self._sleep,
            )
        except _VAULT_NOT_ACCESSIBLE as error:
            raise SecretNotAccessibleError(f"vault denied or has no secret at {path}", path=path) from error
        except vault_exceptions.VaultError as error:
            raise SecretStoreError(f"vault request for {path} failed: {error}", path=path) from error

    def list(self, path: str) -> list[str] | None:
        response = self._call(path, lambda: self._client.list(path))
        if not response:
            return None
        keys = (response.get("data") or {}).get("keys") or []
        return [str(key) for key in keys]

    def read(self, path: str) -> str:
        response = self._call(path, lambda: self._client.read(path))
        data = (response or {}).get("data") or {}
        value = data.get("data")
        if value is None:
            raise SecretStoreError(f"path {path} is empty", path=path)
        if not isinstance(value, str):
            raise SecretStoreError(f"failed to cast value of key {path} to string", path=path)
        return value


class SecretManagerStore:
    """Google Cloud Secret Manager project seen as a one-level tree.

    The project id is the root; listing it yields every secret's decoded
    logical name and every other path is a leaf.
    """

    name = "secretmanager"

    def __init__(
        self,
        project: str,
        client: Any = None,
        *,
        credentials_path: str | None = None,
        attempts: int = DEFAULT_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not project:
            raise ValueError("Secret Manager project is required")
        if client is None:
            if credentials_path:
                client = secretmanager.SecretManagerServiceClient.from_service_account_file(credentials_path)
            else:
                client = secretmanager.SecretManagerServiceClient()
        self.project = project
        self._client = client
        self._attempts = attempts
        self._sleep = sleep
        self._secret_ids: dict[str, str] = {}

    @property
    def root(self) -> str:
        return self.project

    def _call(self, path: str, operation: Callable[[], T], *, skippable: bool = True) -> T:
        try:
            return retry_store_call(
                operation,
                is_transient=lambda error: isinstance(error, _GCP_TRANSIENT),
                attempts=self._attempts,
                description=f"secret manager call on {path}",
                sleep=self._sleep,
            )
        except _GCP_NOT_ACCESSIBLE as error:
            if skippable:
                raise SecretNotAccessibleError(
                    f"secret {path} not found, has no versions or access was denied",
                    path=path,
                ) from error
            raise SecretStoreError(f"secret manager request for {path} failed: {error}", path=path) from error
        except gcp_exceptions.GoogleAPIError as error:
            raise SecretStoreError(f"secret manager request for {path} failed: {error}", path=path) from error

    def _relative(self, path: str) -> str:
        prefix = f"{self.project}/"
        stripped = path.strip("/")
        return stripped[len(prefix):] if stripped.startswith(prefix) else stripped

    def version_name(self, name: str) -> str:
        secret_id = self._secret_ids.get(name) or encode_secret_name(name)
        return f"projects/{self.project}/secrets/{secret_id}/versions/latest"

    def list(self, path: str) -> list[str] | None:
        if path.strip("/") != self.project:
            return None
        parent = f"projects/{self.project}"
        secrets = self._call(
            path,
            lambda: list(self._client.list_secrets(request={"parent": parent})),
            skippable=False,
        )
        names: list[str] = []
        for secret in secrets:
            secret_id = str(secret.name).rsplit("/", 1)[-1]
            logical = decode_secret_name(secret_id)
            self._secret_ids[logical] = secret_id
            names.append(logical)
        logger.debug("listed %d secrets in %s", len(names), parent)
        return names

    def read(self, path: str) -> bytes:
        name = self.version_name(self._relative(path))
        response = self._call(path, lambda: self._client.access_secret_version(request={"name": name}))
        return bytes(response.payload.data)
