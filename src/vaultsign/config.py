"""Manager settings resolved from explicit values, then the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from vaultsign.errors import ConfigurationError
from vaultsign.retry import DEFAULT_ATTEMPTS

BACKEND_VAULT = "vault"
BACKEND_SECRET_MANAGER = "secretmanager"
BACKENDS = (BACKEND_VAULT, BACKEND_SECRET_MANAGER)

# first variable set wins
ENV_VARS = {
    "backend": ("VAULTSIGN_BACKEND",),
    "msp_id": ("VAULTSIGN_MSP_ID",),
    "cert_name": ("VAULTSIGN_CERT_NAME",),
    "key_password": ("VAULTSIGN_KEY_PASSWORD",),
    "vault_address": ("VAULTSIGN_VAULT_ADDRESS", "VAULT_ADDR"),
    "vault_token": ("VAULTSIGN_VAULT_TOKEN", "VAULT_TOKEN"),
    "vault_path": ("VAULTSIGN_VAULT_PATH",),
    "project": ("VAULTSIGN_PROJECT",),
    "credentials_path": ("VAULTSIGN_CREDENTIALS", "GOOGLE_APPLICATION_CREDENTIALS"),
    "store_attempts": ("VAULTSIGN_STORE_ATTEMPTS",),
}

_REQUIRED = {
    BACKEND_VAULT: ("msp_id", "cert_name", "vault_address", "vault_token", "vault_path"),
    BACKEND_SECRET_MANAGER: ("msp_id", "cert_name", "project"),
}


@dataclass(frozen=True)
class ManagerSettings:
    backend: str
    msp_id: str
    cert_name: str
    key_password: bytes | None = None
    vault_address: str | None = None
    vault_token: str | None = None
    vault_path: str | None = None
    project: str | None = None
    credentials_path: str | None = None
    store_attempts: int = DEFAULT_ATTEMPTS

    @property
    def root(self) -> str:
        if self.backend == BACKEND_VAULT:
            return self.vault_path or ""
        return self.project or ""

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **explicit: str | int | None,
    ) -> ManagerSettings:
        """Resolve settings: explicit keyword values first, then environment.

        Raises ConfigurationError when the backend is unknown or a value the
        backend needs is missing.
        """
        env = os.environ if environ is None else environ
        unknown = set(explicit) - set(ENV_VARS)
        if unknown:
            raise TypeError(f"unknown settings: {', '.join(sorted(unknown))}")

        values: dict[str, str | int | None] = {}
        for field_name, variables in ENV_VARS.items():
            value = explicit.get(field_name)
            if value is None:
                value = next((env[var] for var in variables if env.get(var)), None)
            values[field_name] = value

        backend = str(values["backend"] or BACKEND_VAULT).strip().lower()
        if backend not in BACKENDS:
            raise ConfigurationError(f"unsupported backend {backend!r}; expected vault|secretmanager")

        missing = [name for name in _REQUIRED[backend] if not values.get(name)]
        if missing:
            raise ConfigurationError(
                f"missing settings for {backend} backend: {', '.join(missing)}",
                missing=missing,
            )

        attempts_raw = values["store_attempts"]
        try:
            attempts = int(attempts_raw) if attempts_raw is not None else DEFAULT_ATTEMPTS
        except ValueError as error:
            raise ConfigurationError("VAULTSIGN_STORE_ATTEMPTS must be an integer") from error

        password = values["key_password"]
        return cls(
            backend=backend,
            msp_id=str(values["msp_id"]),
            cert_name=str(values["cert_name"]),
            key_password=str(password).encode("utf-8") if password else None,
            vault_address=_optional(values["vault_address"]),
            vault_token=_optional(values["vault_token"]),
            vault_path=_optional(values["vault_path"]),
            project=_optional(values["project"]),
            credentials_path=_optional(values["credentials_path"]),
            store_attempts=max(1, attempts),
        )


def _optional(value: str | int | None) -> str | None:
    return str(value) if value is not None else None
