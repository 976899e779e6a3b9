"""
Tests for key file models.

Tests cover:
- On-disk JSON shape (camelCase, hex, version, optional recoveryWrap)
- Field validation
- Reading the older multi-key and single-key shapes
"""
import orjson
import pytest

from navigator_keyvault.exceptions import RecordFormatError
from navigator_keyvault.vault.models import VaultRecord, WrappedKeyRecord


def make_wrap(version: int = 1, fill: int = 1) -> WrappedKeyRecord:
    return WrappedKeyRecord(
        ciphertext=bytes([fill]) * 32,
        salt=bytes([fill + 1]) * 16,
        iv=bytes([fill + 2]) * 12,
        tag=bytes([fill + 3]) * 16,
        version=version,
    )


def wrap_dict(wrap: WrappedKeyRecord) -> dict:
    return {
        "ciphertext": wrap.ciphertext.hex(),
        "salt": wrap.salt.hex(),
        "iv": wrap.iv.hex(),
        "tag": wrap.tag.hex(),
        "version": wrap.version,
    }


class TestWrappedKeyRecord:
    """Tests for WrappedKeyRecord validation and encoding."""

    def test_hex_decoding(self):
        wrap = make_wrap()
        parsed = WrappedKeyRecord.model_validate(wrap_dict(wrap))
        assert parsed == wrap
        assert isinstance(parsed.iv, bytes)

    def test_dump_is_hex(self):
        assert make_wrap().model_dump() == wrap_dict(make_wrap())

    def test_default_version(self):
        data = wrap_dict(make_wrap())
        del data["version"]
        assert WrappedKeyRecord.model_validate(data).version == 1

    @pytest.mark.parametrize("field,value", [
        ("iv", "00" * 11),
        ("iv", "00" * 13),
        ("tag", "00" * 15),
        ("salt", "00" * 15),
        ("ciphertext", ""),
        ("salt", "not-hex"),
        ("version", 0),
        ("version", 2),
    ])
    def test_invalid_fields(self, field, value):
        data = wrap_dict(make_wrap())
        data[field] = value
        with pytest.raises(ValueError):
            WrappedKeyRecord.model_validate(data)

    def test_frozen(self):
        wrap = make_wrap()
        with pytest.raises(ValueError):
            wrap.version = 2


class TestVaultRecord:
    """Tests for VaultRecord serialization."""

    def test_json_shape_with_recovery(self):
        record = VaultRecord(
            identity="alice",
            primary_wrap=make_wrap(fill=1),
            recovery_wrap=make_wrap(fill=9),
        )
        data = orjson.loads(record.to_json())
        assert list(data) == ["identity", "primaryWrap", "recoveryWrap"]
        assert data["identity"] == "alice"
        assert data["primaryWrap"] == wrap_dict(make_wrap(fill=1))
        assert data["recoveryWrap"] == wrap_dict(make_wrap(fill=9))

    def test_json_shape_without_recovery(self):
        record = VaultRecord(identity="alice", primary_wrap=make_wrap())
        data = orjson.loads(record.to_json())
        assert "recoveryWrap" not in data
        assert record.has_recovery is False
        assert record.split_keys is False

    def test_single_tenant_identity_is_null(self):
        record = VaultRecord(primary_wrap=make_wrap())
        data = orjson.loads(record.to_json())
        assert data["identity"] is None

    def test_json_round_trip(self):
        record = VaultRecord(
            identity="alice",
            primary_wrap=make_wrap(fill=1),
            recovery_wrap=make_wrap(fill=9),
        )
        assert VaultRecord.from_json(record.to_json()) == record
        assert VaultRecord.from_json(record.to_json()).split_keys is False
    def test_trailing_newline(self):
        assert VaultRecord(primary_wrap=make_wrap()).to_json().endswith(b"\n")

    def test_invalid_json(self):
        with pytest.raises(RecordFormatError):
            VaultRecord.from_json(b"{not json")

    def test_not_an_object(self):
        with pytest.raises(RecordFormatError):
            VaultRecord.from_json(b"[1, 2, 3]")

    def test_unknown_shape(self):
        with pytest.raises(RecordFormatError):
            VaultRecord.from_json(b'{"something": "else"}')

    def test_invalid_wrap(self):
        data = {"identity": "alice", "primaryWrap": {"ciphertext": "zz"}}
        with pytest.raises(RecordFormatError):
            VaultRecord.from_json(orjson.dumps(data))


class TestLegacyShapes:
    """Tests for reading older key file shapes."""

    def legacy_wrap(self, wrap: WrappedKeyRecord) -> dict:
        return {
            "encryptedKey": wrap.ciphertext.hex(),
            "salt": wrap.salt.hex(),
            "iv": wrap.iv.hex(),
            "tag": wrap.tag.hex(),
        }

    def test_multi_key_shape(self):
        data = {
            "username": "alice",
            "passwordKey": self.legacy_wrap(make_wrap(fill=1)),
            "recoveryKey": self.legacy_wrap(make_wrap(fill=9)),
        }
        record = VaultRecord.from_json(orjson.dumps(data))
        assert record.identity == "alice"
        assert record.primary_wrap == make_wrap(fill=1)
        assert record.recovery_wrap == make_wrap(fill=9)
        assert record.primary_wrap.version == 1
        assert record.split_keys is True
        assert "split_keys" not in orjson.loads(record.to_json())

    def test_multi_key_shape_without_recovery(self):
        data = {
            "username": "alice",
            "passwordKey": self.legacy_wrap(make_wrap()),
        }
        record = VaultRecord.from_json(orjson.dumps(data))
        assert record.recovery_wrap is None
        assert record.split_keys is False

    def test_single_key_shape(self):
        data = {**self.legacy_wrap(make_wrap()), "version": 1}
        record = VaultRecord.from_json(orjson.dumps(data))
        assert record.identity is None
        assert record.primary_wrap == make_wrap()
        assert record.has_recovery is False
        assert record.split_keys is False

    def test_migrated_record_writes_current_shape(self):
        data = {**self.legacy_wrap(make_wrap()), "version": 1}
        record = VaultRecord.from_json(orjson.dumps(data))
        written = orjson.loads(record.to_json())
        assert "primaryWrap" in written
        assert "encryptedKey" not in written

    def test_invalid_legacy_wrap(self):
        data = {"username": "alice", "passwordKey": "not-a-dict"}
        with pytest.raises(RecordFormatError):
            VaultRecord.from_json(orjson.dumps(data))
