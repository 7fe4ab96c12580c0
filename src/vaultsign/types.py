"""Shared datatypes for vaultsign."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IdentityIdentifier:
    id: str
    msp_id: str


@dataclass(frozen=True)
class SerializedIdentity:
    msp_id: str
    id_bytes: bytes


@dataclass(frozen=True)
class IngestResult:
    root: str
    cached: int
    skipped: int
