#!/usr/bin/env python3
"""
Signature - Feed Update Signing and Verification

Feed writes are authorized by a recoverable secp256k1 signature over the
32-byte update digest. The store recovers the signer's public key from the
signature and accepts the write only if its address matches the feed owner.
"""

from typing import Callable

from coincurve import PrivateKey, PublicKey

from .errors import InvalidSeed, SigningError
from .keys import pub_key_to_address, strip_hex_prefix

SIGNATURE_LENGTH = 65
DIGEST_LENGTH = 32

# Signs a feed update digest; returns r || s || v
Signer = Callable[[bytes], bytes]


def _private_key(private_key: str) -> PrivateKey:
    try:
        return PrivateKey(bytes.fromhex(strip_hex_prefix(private_key)))
    except ValueError as e:
        raise InvalidSeed(f"invalid private key: {e}") from e


def sign(digest: bytes, private_key: str) -> bytes:
    """
    Sign a 32-byte digest.

    Returns the 65-byte r || s || v form with v in {0, 1}.
    """
    if len(digest) != DIGEST_LENGTH:
        raise SigningError(f"digest must be {DIGEST_LENGTH} bytes, got {len(digest)}")
    return _private_key(private_key).sign_recoverable(digest, hasher=None)


def make_signer(private_key: str) -> Signer:
    """Bind a private key into a Signer for a feed store client."""
    key = _private_key(private_key)

    def sign_bytes(digest: bytes) -> bytes:
        if len(digest) != DIGEST_LENGTH:
            raise SigningError(f"digest must be {DIGEST_LENGTH} bytes, got {len(digest)}")
        return key.sign_recoverable(digest, hasher=None)

    return sign_bytes


def recover_address(digest: bytes, signature: bytes) -> str:
    """Return the address of the key that produced the signature."""
    if len(signature) != SIGNATURE_LENGTH:
        raise SigningError(f"signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}")
    try:
        public_key = PublicKey.from_signature_and_message(signature, digest, hasher=None)
    except ValueError as e:
        raise SigningError(f"cannot recover public key: {e}") from e
    return pub_key_to_address("0x" + public_key.format(compressed=False).hex())


def verify_signature(digest: bytes, signature: bytes, address: str) -> bool:
    """Check that the signature was made by the owner of address."""
    try:
        return recover_address(digest, signature) == address.lower()
    except SigningError:
        return False
