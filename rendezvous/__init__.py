"""
Feed Rendezvous Library

Two-party introduction over a Swarm feed store.
secp256k1 keys for feed ownership, hash-chained rounds.
"""

from .keys import (
    KeyPair,
    generate_key_pair,
    pub_key_to_address,
    strip_hex_prefix,
    get_default_key_path,
)
from .signature import (
    sign,
    make_signer,
    recover_address,
    verify_signature,
)
from .messages import (
    Location,
    Update,
    UpdateWithHash,
    PollOutcome,
    PollStatus,
    decode_location,
    decode_update,
    accept_any,
    require_well_formed,
)
from .feeds import FeedStoreClient, FeedMetadata, feed_update_digest
from .retry import RetryPolicy, CancellationToken
from .handshake import (
    Advertiser,
    Responder,
    CompletedRound,
    Reply,
    verify_chain,
)
from .config import RendezvousConfig, load_config
from .errors import (
    RendezvousError,
    TransientIO,
    FeedStoreError,
    FeedNotFound,
    DecodeFailure,
    ValidationFailure,
    InvalidSeed,
    SigningError,
    RetryExhausted,
    ConfigError,
)

__version__ = "0.1.0"
__all__ = [
    "KeyPair",
    "generate_key_pair",
    "pub_key_to_address",
    "strip_hex_prefix",
    "get_default_key_path",
    "sign",
    "make_signer",
    "recover_address",
    "verify_signature",
    "Location",
    "Update",
    "UpdateWithHash",
    "PollOutcome",
    "PollStatus",
    "decode_location",
    "decode_update",
    "accept_any",
    "require_well_formed",
    "FeedStoreClient",
    "FeedMetadata",
    "feed_update_digest",
    "RetryPolicy",
    "CancellationToken",
    "Advertiser",
    "Responder",
    "CompletedRound",
    "Reply",
    "verify_chain",
    "RendezvousConfig",
    "load_config",
    "RendezvousError",
    "TransientIO",
    "FeedStoreError",
    "FeedNotFound",
    "DecodeFailure",
    "ValidationFailure",
    "InvalidSeed",
    "SigningError",
    "RetryExhausted",
    "ConfigError",
]
