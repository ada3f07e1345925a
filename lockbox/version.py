"""Lockbox Meta information.
   Lockbox is the cryptographic core of a zero-knowledge password vault.
"""
__title__ = 'lockbox'
__description__ = (
   'Lockbox derives master-password credentials and wraps per-user '
   'data-encryption keys for a zero-knowledge password vault.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 Lockbox Developers'
__author__ = 'Lockbox Developers'
__author_email__ = 'dev@lockbox.local'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/lockbox-vault/lockbox'
