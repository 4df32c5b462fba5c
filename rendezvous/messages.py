#!/usr/bin/env python3
"""
Messages - Location and Update Codec

Wire shapes exchanged through the feed store:

    Location  {"keyPair": {"publicKey", "privateKey", "address"}, "previous"?}
    Update    {"publicKey", "data"}

Both are compact JSON with camelCase keys.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .errors import DecodeFailure, ValidationFailure
from .keys import KeyPair, strip_hex_prefix


def _load_object(payload: bytes, kind: str) -> Dict[str, Any]:
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeFailure(f"{kind} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise DecodeFailure(f"{kind} must be a JSON object, got {type(data).__name__}")
    return data


def _dump(data: Dict[str, Any]) -> str:
    return json.dumps(data, separators=(",", ":"))


@dataclass(frozen=True)
class Location:
    """Advertisement of the current round's ephemeral identity."""
    key_pair: KeyPair
    previous: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"keyPair": self.key_pair.to_dict()}
        if self.previous is not None:
            data["previous"] = self.previous
        return data

    def to_json(self) -> str:
        return _dump(self.to_dict())

    def encode(self) -> bytes:
        return self.to_json().encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Location':
        key_pair = data.get("keyPair")
        if not isinstance(key_pair, dict):
            raise DecodeFailure("Location has no keyPair object")
        fields = ("publicKey", "privateKey", "address")
        if not all(isinstance(key_pair.get(name), str) for name in fields):
            raise DecodeFailure(f"Location keyPair needs string fields {', '.join(fields)}")

        previous = data.get("previous")
        if previous is not None and not isinstance(previous, str):
            raise DecodeFailure("Location previous must be a string")

        return cls(key_pair=KeyPair.from_dict(key_pair), previous=previous)


@dataclass(frozen=True)
class Update:
    """A responder's reply, published under the ephemeral address."""
    public_key: str
    data: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "publicKey": self.public_key,
            "data": self.data,
        }

    def to_json(self) -> str:
        return _dump(self.to_dict())

    def encode(self) -> bytes:
        return self.to_json().encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Update':
        return cls(
            public_key=data.get("publicKey", ""),
            data=data.get("data", ""),
        )


@dataclass(frozen=True)
class UpdateWithHash(Update):
    """An Update together with the content hash it was retrieved under."""
    hash: str = ""

    @classmethod
    def attach(cls, update: Update, content_hash: str) -> 'UpdateWithHash':
        return cls(public_key=update.public_key, data=update.data, hash=content_hash)


def decode_location(payload: bytes) -> Location:
    """Parse a Location, raising DecodeFailure if it is malformed."""
    return Location.from_dict(_load_object(payload, "Location"))


def decode_update(payload: bytes) -> Update:
    """Parse an Update; any JSON object is accepted here."""
    return Update.from_dict(_load_object(payload, "Update"))


# ---------------------------------------------------------------------------
# Acceptance predicates
# ---------------------------------------------------------------------------

UpdateValidator = Callable[[Update], bool]


def accept_any(update: Update) -> bool:
    """Accept every decoded update."""
    return True


def _is_hex(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    digits = strip_hex_prefix(value)
    if not digits or len(digits) % 2:
        return False
    try:
        bytes.fromhex(digits)
    except ValueError:
        return False
    return True


def require_well_formed(update: Update) -> bool:
    """Accept only an uncompressed public key and a non-empty hex payload."""
    if not _is_hex(update.public_key) or not _is_hex(update.data):
        return False
    key = bytes.fromhex(strip_hex_prefix(update.public_key))
    return len(key) == 65 and key[0] == 0x04


def validate_update(update: Update, validator: UpdateValidator = accept_any) -> Update:
    """Return `update` if the validator accepts it, else raise ValidationFailure."""
    if not validator(update):
        raise ValidationFailure(f"update from {update.public_key or '<no key>'} rejected")
    return update


VALIDATORS: Dict[str, UpdateValidator] = {
    "accept_any": accept_any,
    "well_formed": require_well_formed,
}


# ---------------------------------------------------------------------------
# Poll results
# ---------------------------------------------------------------------------

class PollStatus(Enum):
    """What the advertiser found at an ephemeral address."""
    READY = "ready"          # Update decoded and accepted
    NOT_READY = "not_ready"  # Nothing published, store unreachable, or cancelled
    MALFORMED = "malformed"  # Something published that does not decode
    REJECTED = "rejected"    # Decoded but refused by the validator


@dataclass(frozen=True)
class PollOutcome:
    """Result of polling one ephemeral address."""
    status: PollStatus
    update: Optional[UpdateWithHash] = None
    reason: str = ""

    @property
    def ready(self) -> bool:
        return self.status is PollStatus.READY

    @classmethod
    def accepted(cls, update: UpdateWithHash) -> 'PollOutcome':
        return cls(status=PollStatus.READY, update=update)

    @classmethod
    def not_ready(cls, reason: str = "") -> 'PollOutcome':
        return cls(status=PollStatus.NOT_READY, reason=reason)

    def __str__(self) -> str:
        if self.ready:
            return f"ready: {self.update.hash}"
        return f"{self.status.value}: {self.reason}" if self.reason else self.status.value
