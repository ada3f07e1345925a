"""Lockbox.

Zero-knowledge vault core: master-password credentials, envelope
encryption of the per-user data key, and client-side record encryption.
"""
from .version import __version__

__all__ = ["__version__"]
