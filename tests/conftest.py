"""Shared fixtures for the vault test-suite."""
import pytest

from lockbox.vault import crypto
from lockbox.vault.config import VaultConfig, set_config
from lockbox.vault.envelope import register


@pytest.fixture
def config():
    """Low-cost KDF profile so PBKDF2 tests stay fast."""
    return VaultConfig(fast_iterations=1_000, slow_iterations=2_000)


@pytest.fixture(autouse=True)
def default_config(config):
    """Install the low-cost config as the process default for each test."""
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def key():
    """A random 256-bit key."""
    return crypto.generate_dek()


@pytest.fixture
def registration(config):
    """A registered master password."""
    return register("CorrectHorse123!", config)
