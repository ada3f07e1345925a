"""
Vault Key Rotation — Atomic master password change.

Re-wraps a user's data-encryption key under a new master password and
persists the new salt, verifier and wrapped key in one transaction,
together with revoking every session of that user. A partial write (new
verifier saved, old wrapped key kept) would lock the user out for good,
so any failure rolls the whole transaction back.

The UPDATE is guarded by the verifier that was read, so a concurrent
password change makes this one fail instead of overwriting it.

Security Note:
    The DEK exists in memory only while it is being re-wrapped.
    Never log passwords, verifiers or wrapped keys.
"""
import logging
from typing import Any, Optional

from .config import VaultConfig
from .credential import Credential
from .envelope import change_password_async
from .errors import AuthenticationFailure, IntegrityFault

logger = logging.getLogger("lockbox.vault")

# SQL statements
_SELECT_CREDENTIAL = """
SELECT salt, master_password_hash, encryption_key_encrypted
FROM auth.users
WHERE id = $1
"""

_UPDATE_CREDENTIAL = """
UPDATE auth.users
SET salt = $1, master_password_hash = $2, encryption_key_encrypted = $3,
    updated_at = NOW()
WHERE id = $4 AND master_password_hash = $5
"""

_DELETE_SESSIONS = """
DELETE FROM auth.sessions
WHERE user_id = $1
"""

_INSERT_AUDIT = """
INSERT INTO auth.audit_log (user_id, action)
VALUES ($1, $2)
"""


def _affected_rows(status: Any) -> int:
    """Parse an asyncpg command status such as ``'UPDATE 1'``."""
    try:
        return int(str(status).rsplit(" ", 1)[-1])
    except ValueError:
        return 0


async def load_credential(db_pool: Any, user_id: Any) -> Optional[Credential]:
    """Fetch a user's stored credential, or None if the user is unknown.

    Args:
        db_pool: asyncpg-compatible connection pool.
        user_id: User whose credential to load.
    """
    async with db_pool.acquire() as conn:
        row = await conn.fetchrow(_SELECT_CREDENTIAL, user_id)
    if row is None:
        return None
    return Credential.from_record(row)


async def change_master_password(
    db_pool: Any,
    user_id: Any,
    current_password: str,
    new_password: str,
    config: Optional[VaultConfig] = None,
) -> Credential:
    """Change a user's master password, keeping the same DEK.

    Args:
        db_pool: asyncpg-compatible connection pool.
        user_id: User whose password changes.
        current_password: Password to verify and unwrap with.
        new_password: Password to re-wrap under.
        config: Optional config; defaults to the process config.

    Returns:
        The new, persisted Credential.

    Raises:
        AuthenticationFailure: Unknown user or wrong current password.
        KeyUnwrapError: The stored wrapped key is corrupt.
        IntegrityFault: The transactional update failed and was rolled back.
    """
    credential = await load_credential(db_pool, user_id)
    if credential is None:
        raise AuthenticationFailure()

    new_credential = await change_password_async(
        current_password, new_password, credential, config=config,
    )
    record = new_credential.to_record()

    async with db_pool.acquire() as conn:
        tx = conn.transaction()
        await tx.start()
        try:
            status = await conn.execute(
                _UPDATE_CREDENTIAL,
                record["salt"],
                record["master_password_hash"],
                record["encryption_key_encrypted"],
                user_id,
                credential.verifier_hash,
            )
            if _affected_rows(status) != 1:
                raise IntegrityFault(
                    "credential changed concurrently; password not updated"
                )
            await conn.execute(_DELETE_SESSIONS, user_id)
            await conn.execute(_INSERT_AUDIT, user_id, "PASSWORD_CHANGED")
            await tx.commit()
        except IntegrityFault:
            await tx.rollback()
            logger.error(
                "Password change for user=%s lost a concurrent update", user_id,
            )
            raise
        except Exception as err:
            await tx.rollback()
            logger.error(
                "Password change for user=%s rolled back: %s",
                user_id, type(err).__name__,
            )
            raise IntegrityFault("credential update rolled back") from err

    logger.info("Master password changed for user=%s", user_id)
    return new_credential
