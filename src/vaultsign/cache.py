"""In-memory crypto material cache keyed by logical name."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Protocol, runtime_checkable

from vaultsign.errors import NotFoundError


class ReadWriteLock:
    """Many concurrent readers, one exclusive writer.

    Waiting writers block new readers so a steady read load cannot starve them.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@runtime_checkable
class CryptoCache(Protocol):
    """Storage for certificates and keys pulled from a secret store."""

    def get_crypto(self, name: str) -> bytes: ...

    def set_crypto(self, name: str, value: bytes) -> None: ...


class MemCache:
    """Volatile CryptoCache. Last write wins, entries never expire."""

    def __init__(self) -> None:
        self._crypto: dict[str, bytes] = {}
        self._lock = ReadWriteLock()

    def get_crypto(self, name: str) -> bytes:
        with self._lock.read():
            value = self._crypto.get(name)
        if value is None:
            raise NotFoundError(f"no crypto for key {name}", name=name)
        return value

    def set_crypto(self, name: str, value: bytes) -> None:
        blob = bytes(value)
        with self._lock.write():
            self._crypto[name] = blob

    def names(self) -> list[str]:
        with self._lock.read():
            return sorted(self._crypto)

    def snapshot(self) -> dict[str, bytes]:
        with self._lock.read():
            return dict(self._crypto)

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._crypto

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._crypto)
