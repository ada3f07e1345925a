"""
VaultSession — Client-side holder of the data-encryption key for one login.

Provides the public API used by the vault client:
- ``create(dek)`` / ``from_login(result)`` — open a session after login/registration
- ``encrypt(text)`` / ``decrypt(field)`` — single field encryption
- ``encrypt_item(item)`` / ``decrypt_item(record)`` — typed vault records
- ``decrypt_records(records)`` — per-record results for a vault listing
- ``clear()`` — scrub the key at logout

Exactly one DEK is held per session. Once cleared (explicitly, on context
exit, or when the TTL elapses) every operation raises ``SessionExpired``.

Security Note:
    Never log plaintext, ciphertext or the key. The key is kept in a
    bytearray and zeroed on clear; copies made by the crypto backend
    cannot be scrubbed, so this is best-effort.
"""
import time
import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel

from . import crypto
from .config import VaultConfig, get_config
from .envelope import LoginResult, Registration
from .errors import (
    DecryptionError,
    FormatError,
    SessionExpired,
    ValidationError,
    VaultError,
)
from .items import (
    CardItem,
    EncryptedRecord,
    IdentityItem,
    NoteItem,
    PasswordItem,
    VaultItem,
    dump_payload,
    load_item,
)

logger = logging.getLogger("lockbox.vault")

AnyItem = Union[PasswordItem, NoteItem, CardItem, IdentityItem]


class DecryptedRecord(BaseModel):
    """Outcome of decrypting one stored record: an item or an error."""

    record_id: Optional[str] = None
    type: str
    item: Optional[VaultItem] = None
    error: Optional[VaultError] = None

    model_config = {"arbitrary_types_allowed": True}

    @property
    def ok(self) -> bool:
        return self.error is None


class VaultSession:
    """Owned, expiring context for the DEK of one logged-in user."""

    def __init__(
        self,
        dek: bytes,
        user_id: Any = None,
        session_id: Optional[str] = None,
        ttl: Optional[int] = None,
    ):
        if not isinstance(dek, (bytes, bytearray)) or len(dek) != crypto.KEY_LENGTH:
            raise ValidationError(
                f"DEK must be exactly {crypto.KEY_LENGTH} bytes"
            )
        self._key: Optional[bytearray] = bytearray(dek)
        self._user_id = user_id
        self._session_id = session_id or uuid.uuid4().hex
        self._ttl = ttl or None
        self._started = time.monotonic()
        self._logon_time = datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return (
            f'<Vault-Session [id:{self._session_id}, user:{self._user_id}, '
            f'active:{self.active}]>'
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        dek: bytes,
        user_id: Any = None,
        config: Optional[VaultConfig] = None,
    ) -> "VaultSession":
        """Open a session with the configured TTL."""
        config = config or get_config()
        session = cls(dek, user_id=user_id, ttl=config.session_ttl)
        logger.debug("Vault session opened: user=%s", user_id)
        return session

    @classmethod
    def from_login(
        cls,
        result: Union[LoginResult, Registration],
        user_id: Any = None,
        config: Optional[VaultConfig] = None,
    ) -> "VaultSession":
        """Open a session from a login or registration result."""
        return cls.create(result.dek, user_id=user_id, config=config)

    def clear(self) -> None:
        """Scrub the key. Idempotent."""
        if self._key is not None:
            for i in range(len(self._key)):
                self._key[i] = 0
            self._key = None
            logger.debug("Vault session cleared: user=%s", self._user_id)

    def __enter__(self) -> "VaultSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.clear()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def user_id(self) -> Any:
        return self._user_id

    @property
    def logon_time(self) -> datetime:
        return self._logon_time

    @property
    def expired(self) -> bool:
        if self._ttl is None:
            return False
        return time.monotonic() - self._started >= self._ttl

    @property
    def active(self) -> bool:
        return self._key is not None and not self.expired

    def _require_key(self) -> bytearray:
        if self._key is not None and self.expired:
            logger.info("Vault session expired: user=%s", self._user_id)
            self.clear()
        if self._key is None:
            raise SessionExpired("vault session is closed")
        return self._key

    # ------------------------------------------------------------------
    # Field encryption
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a text field with the session key."""
        return crypto.encrypt(plaintext, self._require_key())

    def decrypt(self, field: str) -> str:
        """Decrypt a text field with the session key.

        Raises:
            FormatError: Malformed field.
            DecryptionError: Wrong key or corrupted ciphertext.
            SessionExpired: Session cleared or expired.
        """
        return crypto.decrypt(field, self._require_key())

    # ------------------------------------------------------------------
    # Vault records
    # ------------------------------------------------------------------

    def encrypt_item(self, item: AnyItem, record_id: Optional[str] = None) -> EncryptedRecord:
        """Encrypt a typed vault item into a storable record."""
        key = self._require_key()
        return EncryptedRecord(
            id=record_id,
            type=item.type,
            title_encrypted=crypto.encrypt(item.title, key),
            data_encrypted=crypto.encrypt_bytes(dump_payload(item), key),
            notes_encrypted=(
                crypto.encrypt(item.notes, key)
                if item.notes is not None else None
            ),
        )

    def decrypt_item(self, record: EncryptedRecord) -> AnyItem:
        """Decrypt a stored record back into its typed item.

        Raises:
            FormatError: A field is malformed.
            DecryptionError: Wrong key, corrupted data, or a payload that
                does not match the record type.
        """
        key = self._require_key()
        title = crypto.decrypt(record.title_encrypted, key)
        payload = crypto.decrypt_bytes(record.data_encrypted, key)
        notes = (
            crypto.decrypt(record.notes_encrypted, key)
            if record.notes_encrypted is not None else None
        )
        try:
            return load_item(record.type, title, payload, notes)
        except ValueError as err:
            raise DecryptionError(
                f"decrypted payload is not a valid {record.type} item"
            ) from err

    def decrypt_records(
        self, records: Iterable[EncryptedRecord]
    ) -> list[DecryptedRecord]:
        """Decrypt a listing record by record.

        A record that fails to decrypt is returned with its error set;
        the rest of the listing is unaffected.
        """
        results: list[DecryptedRecord] = []
        for record in records:
            try:
                item = self.decrypt_item(record)
            except (FormatError, DecryptionError) as err:
                logger.warning(
                    "Vault record id=%s failed to decrypt: %s",
                    record.id, type(err).__name__,
                )
                results.append(
                    DecryptedRecord(record_id=record.id, type=record.type, error=err)
                )
            else:
                results.append(
                    DecryptedRecord(record_id=record.id, type=record.type, item=item)
                )
        return results
