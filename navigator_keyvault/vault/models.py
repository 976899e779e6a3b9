"""
Key File Models — Wrapped key and vault record schemas.

On disk (JSON, binary fields hex-encoded):

    {"identity": "alice",
     "primaryWrap": {"ciphertext", "salt", "iv", "tag", "version"},
     "recoveryWrap": {...}}            # optional

Two older shapes are accepted on read and migrated in memory:

- multi-key: {"username", "passwordKey": {...}, "recoveryKey": {...}}
  where each wrap uses "encryptedKey" and carries no version.
- single-key: {"encryptedKey", "salt", "iv", "tag", "version"}
"""
import logging
from typing import Any, Optional

import orjson
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
)

from ..exceptions import RecordFormatError
from .config import CURRENT_KEY_VERSION, KDF_PARAMETERS
from .crypto import IV_SIZE, SALT_SIZE, TAG_SIZE

logger = logging.getLogger("navigator.keyvault")

# Version assumed for wraps written before the version field existed.
LEGACY_KEY_VERSION = 1


class WrappedKeyRecord(BaseModel):
    """A DEK encrypted under one derived key, with what is needed to undo it."""

    ciphertext: bytes = Field(min_length=1)
    salt: bytes = Field(min_length=SALT_SIZE)
    iv: bytes = Field(min_length=IV_SIZE, max_length=IV_SIZE)
    tag: bytes = Field(min_length=TAG_SIZE, max_length=TAG_SIZE)
    version: int = Field(default=CURRENT_KEY_VERSION, ge=1)

    model_config = {"frozen": True}

    @field_validator("ciphertext", "salt", "iv", "tag", mode="before")
    @classmethod
    def decode_hex(cls, v: Any) -> Any:
        """Accept hex strings as stored in the key file."""
        if isinstance(v, str):
            try:
                return bytes.fromhex(v)
            except ValueError:
                raise ValueError("must be a hex-encoded string") from None
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        """Reject versions without a known Argon2id parameter set."""
        if v not in KDF_PARAMETERS:
            raise ValueError(f"unknown key version {v}")
        return v

    @field_serializer("ciphertext", "salt", "iv", "tag")
    def encode_hex(self, v: bytes) -> str:
        return v.hex()

    @classmethod
    def from_legacy(cls, data: dict) -> "WrappedKeyRecord":
        """Build from a wrap that names its ciphertext ``encryptedKey``."""
        return cls(
            ciphertext=data.get("encryptedKey"),
            salt=data.get("salt"),
            iv=data.get("iv"),
            tag=data.get("tag"),
            version=data.get("version", LEGACY_KEY_VERSION),
        )


class VaultRecord(BaseModel):
    """One key file: the primary wrap and an optional recovery wrap of one DEK."""

    identity: Optional[str] = None
    primary_wrap: WrappedKeyRecord = Field(alias="primaryWrap")
    recovery_wrap: Optional[WrappedKeyRecord] = Field(
        default=None, alias="recoveryWrap"
    )
    # Set for multi-key records whose two wraps protect different keys.
    split_keys: bool = Field(default=False, exclude=True)

    model_config = {"frozen": True, "populate_by_name": True}

    @property
    def has_recovery(self) -> bool:
        return self.recovery_wrap is not None

    def to_json(self) -> bytes:
        """Serialize to the on-disk JSON representation."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        if "identity" not in data:
            data = {"identity": None, **data}
        return orjson.dumps(data, option=orjson.OPT_INDENT_2) + b"\n"

    @classmethod
    def from_dict(cls, data: Any) -> "VaultRecord":
        """Parse a decoded key file, migrating legacy shapes.

        Raises:
            RecordFormatError: If data matches no known schema.
        """
        if not isinstance(data, dict):
            raise RecordFormatError("Key file must contain a JSON object")
        try:
            if "primaryWrap" in data:
                return cls.model_validate(data)
            if "passwordKey" in data:
                logger.debug(
                    "Migrating multi-key record for identity=%s",
                    data.get("username"),
                )
                recovery = data.get("recoveryKey")
                return cls(
                    identity=data.get("username"),
                    primary_wrap=WrappedKeyRecord.from_legacy(data["passwordKey"]),
                    recovery_wrap=(
                        WrappedKeyRecord.from_legacy(recovery) if recovery else None
                    ),
                    split_keys=bool(recovery),
                )
            if "encryptedKey" in data:
                logger.debug("Migrating single-key record")
                return cls(primary_wrap=WrappedKeyRecord.from_legacy(data))
        except (ValidationError, AttributeError, TypeError) as err:
            raise RecordFormatError(f"Invalid key file: {err}") from err
        raise RecordFormatError("Key file matches no known schema")

    @classmethod
    def from_json(cls, raw: bytes) -> "VaultRecord":
        """Parse key file bytes.

        Raises:
            RecordFormatError: If the content is not valid JSON or schema.
        """
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as err:
            raise RecordFormatError(f"Key file is not valid JSON: {err}") from err
        return cls.from_dict(data)
