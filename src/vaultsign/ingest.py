"""Pull crypto material out of a hierarchical secret store into a CryptoCache.

Both supported backends are reduced to two primitives: ``list(path)`` returns
the child names under a path (``None`` or empty for a leaf) and
``read(path)`` returns a leaf's payload. The walk below does not know which
backend it is talking to.

Cache naming:

- a leaf whose path has a ``tls`` directory above it is cached as
  ``<org>/tls/<leaf>``, where ``<org>`` is the segment right before ``tls``;
- every other leaf is cached under its final path segment.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Callable, Protocol, TypeVar, runtime_checkable

from vaultsign.cache import CryptoCache
from vaultsign.errors import SecretNotAccessibleError, SecretStoreError, VaultSignError
from vaultsign.types import IngestResult

T = TypeVar("T")

logger = logging.getLogger(__name__)

TLS_SEGMENT = "tls"


@runtime_checkable
class SecretStore(Protocol):
    """Traversal capability implemented by each backend adapter."""

    name: str

    def list(self, path: str) -> list[str] | None: ...

    def read(self, path: str) -> bytes | str: ...


def decode_payload(payload: bytes | str) -> bytes:
    """Base64-decode a payload, falling back to the raw bytes.

    Secrets are usually stored base64-encoded but some were written as plain
    PEM text; those must still land in the cache.
    """
    raw = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
    # base64 tools wrap lines, so line breaks inside the payload are not an error
    try:
        return base64.b64decode(b"".join(raw.split()), validate=True)
    except (binascii.Error, ValueError):
        logger.debug("payload is not base64, caching raw bytes")
        return raw


def split_path(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


def join_path(parent: str, child: str) -> str:
    child = child.strip("/")
    parent = parent.rstrip("/")
    if not parent:
        return child
    return f"{parent}/{child}"


def cache_key_for(path: str, leaf_name: str | None = None) -> str:
    segments = split_path(path)
    if not segments:
        raise SecretStoreError("cannot derive a cache key from an empty path", path=path)
    leaf_segments = split_path(leaf_name or "")
    leaf = leaf_segments[-1] if leaf_segments else segments[-1]

    # last "tls" directory that has an organisation segment before it
    for index in range(len(segments) - 2, 0, -1):
        if segments[index] == TLS_SEGMENT:
            return f"{segments[index - 1]}/{TLS_SEGMENT}/{leaf}"
    return leaf


def _store_call(path: str, operation: Callable[[], T]) -> T:
    try:
        return operation()
    except VaultSignError:
        raise
    except Exception as error:  # noqa: BLE001
        raise SecretStoreError(f"secret store failed at {path}: {error}", path=path) from error


def _cache_leaf(store: SecretStore, path: str, leaf_name: str, cache: CryptoCache) -> str:
    payload = _store_call(path, lambda: store.read(path))
    key = cache_key_for(path, leaf_name)
    cache.set_crypto(key, decode_payload(payload))
    logger.debug("cached %s from %s", key, path)
    return key


def pull_crypto(
    store: SecretStore,
    root: str,
    cache: CryptoCache,
    key_name: str = "",
) -> IngestResult:
    """Walk ``root`` in ``store`` and copy every leaf into ``cache``.

    With ``key_name`` set only that single secret under ``root`` is pulled and
    any error, including a missing secret, is raised.

    Otherwise secrets without an accessible version and secrets the caller may
    not read are skipped; any other store error aborts the walk.
    """
    if key_name:
        _cache_leaf(store, join_path(root, key_name), key_name, cache)
        return IngestResult(root=root, cached=1, skipped=0)

    cached = 0
    skipped = 0
    # explicit stack: the store tree has no depth limit
    stack: list[tuple[str, str]] = [(root, "")]
    while stack:
        path, name = stack.pop()
        try:
            children = _store_call(path, lambda: store.list(path))
            if children:
                for child in reversed(children):
                    stack.append((join_path(path, child), child.strip("/")))
                continue
            _cache_leaf(store, path, name, cache)
            cached += 1
        except SecretNotAccessibleError as error:
            logger.warning("skipping secret %s: %s", path, error.message)
            skipped += 1

    return IngestResult(root=root, cached=cached, skipped=skipped)
