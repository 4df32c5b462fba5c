"""
Tests for feed update signing.
"""

import hashlib

import pytest

from rendezvous.errors import InvalidSeed, SigningError
from rendezvous.keys import generate_key_pair
from rendezvous.signature import (
    make_signer,
    recover_address,
    sign,
    verify_signature,
)

DIGEST = hashlib.sha256(b"feed update").digest()


class TestSign:
    def test_recoverable_form(self):
        keys = generate_key_pair()
        signature = sign(DIGEST, keys.private_key)
        assert len(signature) == 65
        assert signature[64] in (0, 1)

    def test_recovers_signer_address(self):
        keys = generate_key_pair()
        signature = sign(DIGEST, keys.private_key)
        assert recover_address(DIGEST, signature) == keys.address

    def test_make_signer_matches_sign(self):
        keys = generate_key_pair()
        signer = make_signer(keys.private_key)
        assert recover_address(DIGEST, signer(DIGEST)) == keys.address

    def test_digest_length_checked(self):
        keys = generate_key_pair()
        with pytest.raises(SigningError):
            sign(b"short", keys.private_key)
        with pytest.raises(SigningError):
            make_signer(keys.private_key)(b"short")

    def test_bad_private_key(self):
        with pytest.raises(InvalidSeed):
            sign(DIGEST, "0x" + "00" * 32)


class TestVerify:
    def test_binds_to_signing_address(self):
        signer_keys = generate_key_pair()
        other = generate_key_pair()
        signature = sign(DIGEST, signer_keys.private_key)

        assert verify_signature(DIGEST, signature, signer_keys.address)
        assert not verify_signature(DIGEST, signature, other.address)

    def test_other_digest_fails(self):
        keys = generate_key_pair()
        signature = sign(DIGEST, keys.private_key)
        other_digest = hashlib.sha256(b"something else").digest()
        assert not verify_signature(other_digest, signature, keys.address)

    def test_wrong_length_signature(self):
        keys = generate_key_pair()
        assert not verify_signature(DIGEST, b"\x00" * 64, keys.address)
        with pytest.raises(SigningError):
            recover_address(DIGEST, b"\x00" * 10)
