"""
Vault Configuration — KDF cost, cipher backend and vault location.

Reads optional overrides from environment variables:
    PPA_VAULT_PATH = <path to the vault file>
    PPA_VAULT_CIPHER = aesgcm | chacha20
    PPA_VAULT_TIME_COST = <Argon2 iterations>
    PPA_VAULT_MEMORY_COST = <Argon2 memory in KiB>
    PPA_VAULT_PARALLELISM = <Argon2 lanes>
    PPA_VAULT_MAX_TIME_COST, PPA_VAULT_MAX_MEMORY_COST,
    PPA_VAULT_MAX_PARALLELISM = <largest cost accepted from a header>

The KDF parameters and cipher are only consulted when a vault is
created or re-keyed; existing vaults carry their own in the header.
The header parameters are not trusted until the file authenticates,
so a header asking for more than the configured maximums is rejected
before any key derivation runs.

Security Note:
    Never log passwords or key material. Only log paths and parameters.
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("ppa.vault")

SALT_LENGTH = 16
KEY_LENGTH = 32  # AES-256 / ChaCha20

CIPHER_BACKENDS = ("aesgcm", "chacha20")


def default_vault_path() -> Path:
    """Return the default vault location, ``~/.ppa.bin``."""
    return Path.home() / ".ppa.bin"


@dataclass(frozen=True)
class KdfParams:
    """Argon2id cost parameters, stored in every vault header."""
    time_cost: int
    memory_cost: int  # KiB
    parallelism: int

    def within(self, limits: "KdfParams") -> bool:
        """True if these parameters are valid for Argon2 and no costlier than ``limits``."""
        return (
            1 <= self.time_cost <= limits.time_cost
            and 1 <= self.parallelism <= limits.parallelism
            and 8 * self.parallelism <= self.memory_cost <= limits.memory_cost
        )


DEFAULT_KDF_LIMITS = KdfParams(
    time_cost=16,
    memory_cost=1024 * 1024,  # 1 GiB
    parallelism=16,
)


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    vault_path: Path = Field(default_factory=default_vault_path)
    cipher_backend: str = Field(default="aesgcm")
    time_cost: int = Field(default=3, ge=1, le=2**32 - 1)
    memory_cost: int = Field(default=64 * 1024, ge=8, le=2**32 - 1)
    parallelism: int = Field(default=4, ge=1, le=2**16 - 1)
    max_time_cost: int = Field(default=DEFAULT_KDF_LIMITS.time_cost, ge=1, le=2**32 - 1)
    max_memory_cost: int = Field(default=DEFAULT_KDF_LIMITS.memory_cost, ge=8, le=2**32 - 1)
    max_parallelism: int = Field(default=DEFAULT_KDF_LIMITS.parallelism, ge=1, le=2**16 - 1)
    lock_stale_check: bool = True

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in CIPHER_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @model_validator(mode="after")
    def validate_memory_cost(self) -> "VaultConfig":
        """Argon2 needs at least 8 KiB per lane."""
        if self.memory_cost < 8 * self.parallelism:
            raise ValueError(
                f"memory_cost must be at least 8 * parallelism "
                f"({8 * self.parallelism} KiB), got {self.memory_cost}"
            )
        return self

    @model_validator(mode="after")
    def validate_kdf_limits(self) -> "VaultConfig":
        """A vault created with this config must be openable with it."""
        if not self.kdf_params().within(self.kdf_limits()):
            raise ValueError(
                f"KDF parameters {self.kdf_params()} exceed the configured "
                f"maximums {self.kdf_limits()}"
            )
        return self

    def kdf_params(self) -> KdfParams:
        return KdfParams(
            time_cost=self.time_cost,
            memory_cost=self.memory_cost,
            parallelism=self.parallelism,
        )

    def kdf_limits(self) -> KdfParams:
        """Largest KDF cost accepted from a vault header."""
        return KdfParams(
            time_cost=self.max_time_cost,
            memory_cost=self.max_memory_cost,
            parallelism=self.max_parallelism,
        )

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig from environment overrides.

        Returns:
            Populated VaultConfig instance; unset variables keep defaults.
        """
        values: dict = {}
        path = os.environ.get("PPA_VAULT_PATH")
        if path:
            values["vault_path"] = Path(path).expanduser()
        cipher = os.environ.get("PPA_VAULT_CIPHER")
        if cipher:
            values["cipher_backend"] = cipher
        for name, field in (
            ("PPA_VAULT_TIME_COST", "time_cost"),
            ("PPA_VAULT_MEMORY_COST", "memory_cost"),
            ("PPA_VAULT_PARALLELISM", "parallelism"),
            ("PPA_VAULT_MAX_TIME_COST", "max_time_cost"),
            ("PPA_VAULT_MAX_MEMORY_COST", "max_memory_cost"),
            ("PPA_VAULT_MAX_PARALLELISM", "max_parallelism"),
        ):
            raw = os.environ.get(name)
            if raw is not None:
                values[field] = int(raw)
        config = cls(**values)
        logger.debug(
            "Vault config: path=%s cipher=%s kdf=%s",
            config.vault_path, config.cipher_backend, config.kdf_params(),
        )
        return config
