"""
Vault Items — One payload shape per vault item type.

Each item is serialized with orjson and encrypted as a whole ``data``
blob; ``title`` and ``notes`` are encrypted as separate fields so a
listing can show titles without decrypting every payload.
"""
from typing import Annotated, Literal, Optional, Union, get_args

import orjson
from pydantic import BaseModel, Field, TypeAdapter


class _ItemBase(BaseModel):
    title: str
    notes: Optional[str] = None

    model_config = {"extra": "forbid"}

    def payload(self) -> dict:
        """Type-specific fields that go into the encrypted data blob."""
        return self.model_dump(exclude={"type", "title", "notes"})


class PasswordItem(_ItemBase):
    type: Literal["password"] = "password"
    username: str = ""
    password: str = ""
    url: Optional[str] = None


class NoteItem(_ItemBase):
    type: Literal["note"] = "note"
    content: str = ""


class CardItem(_ItemBase):
    type: Literal["card"] = "card"
    card_holder_name: str = ""
    card_number: str = ""
    card_brand: str = ""
    expiry_month: str = ""
    expiry_year: str = ""
    cvv: str = ""
    card_pin: str = ""
    bank_name: str = ""


class IdentityItem(_ItemBase):
    type: Literal["identity"] = "identity"
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""


VaultItem = Annotated[
    Union[PasswordItem, NoteItem, CardItem, IdentityItem],
    Field(discriminator="type"),
]

ItemType = Literal["password", "note", "card", "identity"]
ITEM_TYPES: tuple[str, ...] = get_args(ItemType)

_item_adapter: TypeAdapter = TypeAdapter(VaultItem)


class EncryptedRecord(BaseModel):
    """A vault record as the server stores it: type tag plus opaque fields."""

    id: Optional[str] = None
    type: ItemType
    title_encrypted: str
    data_encrypted: str
    notes_encrypted: Optional[str] = None


def dump_payload(item: _ItemBase) -> bytes:
    """Serialize an item's type-specific payload."""
    return orjson.dumps(item.payload())


def load_item(
    item_type: str, title: str, payload: bytes, notes: Optional[str] = None
) -> Union[PasswordItem, NoteItem, CardItem, IdentityItem]:
    """Rebuild a typed item from its decrypted parts."""
    data = orjson.loads(payload)
    if not isinstance(data, dict):
        raise ValueError("item payload must be a JSON object")
    data.update(type=item_type, title=title, notes=notes)
    return _item_adapter.validate_python(data)
