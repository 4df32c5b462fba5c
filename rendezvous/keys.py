#!/usr/bin/env python3
"""
Rendezvous Keys - secp256k1 Identity & Feed Address

secp256k1 keypair that works for:
- Signing feed updates
- Owning a feed (the address is derived from the public key)

Same address format as Swarm feeds and Ethereum accounts:
last 20 bytes of keccak256(uncompressed public key without the 0x04 prefix).
"""

import os
import re
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from dataclasses import dataclass

from Crypto.Hash import keccak
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives import serialization

from .errors import InvalidSeed

# Order of the secp256k1 base point; valid private scalars are 1 .. N-1
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

KEY_FILE_VERSION = "0.1.0"

HEX_PATTERN = re.compile(r"[0-9a-fA-F]+")


def strip_hex_prefix(value: str) -> str:
    """Drop a leading 0x, if any."""
    return value[2:] if value.startswith("0x") else value


def keccak256(data: bytes) -> bytes:
    """Keccak-256 (pre-standard SHA-3 padding, as used by Swarm)."""
    return keccak.new(digest_bits=256, data=data).digest()


def pub_key_to_address(public_key: str) -> str:
    """
    Derive a feed owner address from an uncompressed public key.

    Depends on the public key only.
    """
    key_bytes = bytes.fromhex(strip_hex_prefix(public_key))
    if len(key_bytes) != 65 or key_bytes[0] != 0x04:
        raise ValueError("public key must be a 65-byte uncompressed point")
    return "0x" + keccak256(key_bytes[1:])[-20:].hex()


def _parse_seed(seed: str) -> int:
    normalized = strip_hex_prefix(seed.strip())
    if not HEX_PATTERN.fullmatch(normalized):
        raise InvalidSeed(f"seed is not a hex string: {seed!r}")
    value = int(normalized, 16)

    if not 0 < value < SECP256K1_ORDER:
        raise InvalidSeed("seed is out of range for secp256k1")
    return value


@dataclass(frozen=True)
class KeyPair:
    """
    secp256k1 keypair for a feed identity.

    All fields are 0x-prefixed hex strings.
    """
    public_key: str
    private_key: str
    address: str

    @property
    def private_key_bytes(self) -> bytes:
        return bytes.fromhex(strip_hex_prefix(self.private_key))

    @property
    def public_key_bytes(self) -> bytes:
        return bytes.fromhex(strip_hex_prefix(self.public_key))

    def to_dict(self) -> Dict[str, str]:
        """Wire form, as embedded in a Location."""
        return {
            "publicKey": self.public_key,
            "privateKey": self.private_key,
            "address": self.address,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'KeyPair':
        return cls(
            public_key=data["publicKey"],
            private_key=data["privateKey"],
            address=data["address"],
        )

    def save(self, path: Path):
        """
        Save keypair to file.

        WARNING: Private key is sensitive! The file is made owner-only.
        """
        data = {
            "version": KEY_FILE_VERSION,
            "algorithm": "secp256k1",
            **self.to_dict(),
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))
        os.chmod(path, 0o600)

    @classmethod
    def load(cls, path: Path) -> 'KeyPair':
        """Load keypair from file, re-deriving the public half."""
        try:
            data = json.loads(path.read_text())
            private_key = data["privateKey"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise InvalidSeed(f"unreadable key file {path}: {e}") from e
        if not isinstance(private_key, str):
            raise InvalidSeed(f"key file {path} has a non-string private key")

        key_pair = generate_key_pair(private_key)
        stored_address = data.get("address")
        if stored_address and str(stored_address).lower() != key_pair.address:
            raise InvalidSeed(f"key file {path} address does not match its private key")
        return key_pair

    @classmethod
    def load_or_generate(cls, path: Path) -> Tuple['KeyPair', bool]:
        """
        Load existing keys or generate new ones.

        Returns (keys, is_new).
        """
        if path.exists():
            return cls.load(path), False
        keys = generate_key_pair()
        keys.save(path)
        return keys, True


def generate_key_pair(seed: Optional[str] = None) -> KeyPair:
    """
    Build a KeyPair from a hex private key, or a fresh random one.

    Raises InvalidSeed if the seed is not a valid secp256k1 scalar.
    """
    if seed is None:
        private_key = ec.generate_private_key(ec.SECP256K1())
    else:
        private_key = ec.derive_private_key(_parse_seed(seed), ec.SECP256K1())

    scalar = private_key.private_numbers().private_value
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    public_key = "0x" + public_bytes.hex()

    return KeyPair(
        public_key=public_key,
        private_key="0x" + scalar.to_bytes(32, "big").hex(),
        address=pub_key_to_address(public_key),
    )


def get_default_key_path() -> Path:
    """Get default path for the advertiser's long-lived keys."""
    return Path.home() / ".config" / "feed-rendezvous" / "keys.json"


if __name__ == "__main__":
    # Demo: Generate a keypair and show its feed address
    print("Generating secp256k1 keypair...")
    keys = generate_key_pair()

    print(f"Public Key: {keys.public_key}")
    print(f"Address:    {keys.address}")
    print(f"Private Key: {keys.private_key[:20]}... (truncated)")
