"""
Vault Configuration — Key-derivation cost profiles and validated settings.

Reads optional overrides from environment variables:
    LOCKBOX_PBKDF2_FAST_ITERATIONS = <integer>  (default 100000)
    LOCKBOX_PBKDF2_SLOW_ITERATIONS = <integer>  (default 600000)
    LOCKBOX_SESSION_TTL = <seconds>             (default 3600, 0 disables)
    LOCKBOX_KDF_WORKERS = <integer>             (default 4)

Security Note:
    Iteration counts are operator settings. They are never taken from
    request input.
"""
import os
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("lockbox.vault")

FAST_ITERATIONS = 100_000
SLOW_ITERATIONS = 600_000
SALT_LENGTH = 32  # 256-bit salt
MIN_ITERATIONS = 1_000

_ENV_PREFIX = "LOCKBOX_"


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    """Read an integer environment variable, falling back to ``default``.

    Raises:
        ValueError: If the variable is set but is not a valid integer.
    """
    raw = os.environ.get(f"{_ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(
            f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}"
        ) from None


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    fast_iterations: int = Field(default=FAST_ITERATIONS, ge=MIN_ITERATIONS)
    slow_iterations: int = Field(default=SLOW_ITERATIONS, ge=MIN_ITERATIONS)
    session_ttl: Optional[int] = Field(default=3600, ge=0)
    kdf_workers: int = Field(default=4, ge=1, le=64)

    model_config = {"frozen": True}

    @field_validator("session_ttl")
    @classmethod
    def normalize_ttl(cls, v: Optional[int]) -> Optional[int]:
        """A TTL of 0 means sessions never expire on their own."""
        return v or None

    @model_validator(mode="after")
    def validate_profiles(self) -> "VaultConfig":
        """The slow profile must never be cheaper than the fast one."""
        if self.slow_iterations < self.fast_iterations:
            raise ValueError(
                f"slow_iterations ({self.slow_iterations}) must be >= "
                f"fast_iterations ({self.fast_iterations})"
            )
        return self

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        config = cls(
            fast_iterations=_env_int("PBKDF2_FAST_ITERATIONS", FAST_ITERATIONS),
            slow_iterations=_env_int("PBKDF2_SLOW_ITERATIONS", SLOW_ITERATIONS),
            session_ttl=_env_int("SESSION_TTL", 3600),
            kdf_workers=_env_int("KDF_WORKERS", 4),
        )
        logger.debug(
            "Vault config loaded: fast=%d slow=%d ttl=%s workers=%d",
            config.fast_iterations, config.slow_iterations,
            config.session_ttl, config.kdf_workers,
        )
        return config


_default_config: Optional[VaultConfig] = None


def get_config() -> VaultConfig:
    """Return the process-wide default config, loading it from env once."""
    global _default_config
    if _default_config is None:
        _default_config = VaultConfig.from_env()
    return _default_config


def set_config(config: Optional[VaultConfig]) -> None:
    """Replace the process-wide default config (``None`` resets to env)."""
    global _default_config
    _default_config = config
