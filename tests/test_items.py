"""Tests for vault item variants and their serialized payloads."""
import orjson
import pytest
from pydantic import ValidationError as PydanticValidationError

from lockbox.vault.items import (
    ITEM_TYPES,
    ItemType,
    CardItem,
    EncryptedRecord,
    IdentityItem,
    NoteItem,
    PasswordItem,
    dump_payload,
    load_item,
)


class TestPayloads:
    """Each item type serializes only its own fields."""

    def test_password_payload(self):
        item = PasswordItem(title="Mail", username="bob", password="pw", notes="n")
        assert orjson.loads(dump_payload(item)) == {
            "username": "bob", "password": "pw", "url": None,
        }

    def test_note_payload(self):
        item = NoteItem(title="Note", content="remember the milk")
        assert orjson.loads(dump_payload(item)) == {"content": "remember the milk"}

    def test_identity_payload_keys(self):
        payload = orjson.loads(dump_payload(IdentityItem(title="Me", full_name="Alice")))
        assert set(payload) == {"full_name", "email", "phone", "address"}

    @pytest.mark.parametrize("item", [
        PasswordItem(title="a", username="u", password="p"),
        NoteItem(title="b", content="c", notes="extra"),
        CardItem(title="c", card_number="4111", cvv="999"),
        IdentityItem(title="d", email="d@example.com"),
    ])
    def test_load_item(self, item):
        assert load_item(item.type, item.title, dump_payload(item), item.notes) == item

    def test_type_tags(self):
        assert ITEM_TYPES == ("password", "note", "card", "identity")
        assert EncryptedRecord.model_fields["type"].annotation == ItemType
        assert {cls.model_fields["type"].default
                for cls in (PasswordItem, NoteItem, CardItem, IdentityItem)} == set(ITEM_TYPES)


class TestValidation:

    def test_unknown_type(self):
        with pytest.raises(PydanticValidationError):
            load_item("wallet", "t", b"{}")

    def test_extra_field_rejected(self):
        with pytest.raises(PydanticValidationError):
            load_item("note", "t", b'{"content": "x", "cvv": "1"}')

    def test_payload_not_object(self):
        with pytest.raises(ValueError):
            load_item("note", "t", b"[1, 2]")

    def test_record_type_checked(self):
        with pytest.raises(PydanticValidationError):
            EncryptedRecord(type="wallet", title_encrypted="a", data_encrypted="b")

    @pytest.mark.parametrize("item_type", ITEM_TYPES)
    def test_record_accepts_every_item_type(self, item_type):
        record = EncryptedRecord(type=item_type, title_encrypted="a", data_encrypted="b")
        assert record.type == item_type
