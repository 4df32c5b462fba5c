"""
Feeds - Swarm Feed Store Client

Async client for the bzz-raw and bzz-feed endpoints of a Swarm gateway.

A feed is identified by (topic, user). Each update carries a signature over
the update digest made with the owner's key; the gateway accepts the update
only if the recovered address is the feed's user. Content written through
this client is uploaded as a raw blob first, then the feed is pointed at the
blob's 32-byte content hash.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .errors import FeedNotFound, FeedStoreError, SigningError
from .keys import keccak256, strip_hex_prefix
from .signature import Signer

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY = "http://localhost:8500"
DEFAULT_TIMEOUT = 10.0

ZERO_TOPIC = "0x" + "00" * 32

# Update layout: header(8) | topic(32) | user(20) | time(7) | level(1) | data
UPDATE_HEADER_LENGTH = 8
TOPIC_LENGTH = 32
USER_LENGTH = 20
TIME_LENGTH = 7

HASH_PATTERN = re.compile(r"^[0-9a-f]{64}$")

MAX_TIME = 1 << (8 * TIME_LENGTH)


def _bounded_int(value: Any, upper: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value < upper:
        raise ValueError(f"{name} out of range: {value}")
    return value


@dataclass(frozen=True)
class FeedMetadata:
    """Feed identity plus the epoch the next update must use."""
    topic: str
    user: str
    time: int
    level: int
    protocol_version: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FeedMetadata':
        """Parse the gateway's metadata reply; ValueError if the epoch does not fit an update."""
        return cls(
            topic=data["feed"]["topic"],
            user=data["feed"]["user"],
            time=_bounded_int(data["epoch"]["time"], MAX_TIME, "time"),
            level=_bounded_int(data["epoch"]["level"], 256, "level"),
            protocol_version=_bounded_int(data.get("protocolVersion", 0), 256, "protocolVersion"),
        )


def _fixed_hex(value: str, length: int, name: str) -> bytes:
    raw = bytes.fromhex(strip_hex_prefix(value))
    if len(raw) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(raw)}")
    return raw


def feed_update_digest(meta: FeedMetadata, data: bytes) -> bytes:
    """Digest a feed update is signed over."""
    header = bytes([meta.protocol_version]) + bytes(UPDATE_HEADER_LENGTH - 1)
    topic = _fixed_hex(meta.topic, TOPIC_LENGTH, "topic")
    user = _fixed_hex(meta.user, USER_LENGTH, "user")
    time = meta.time.to_bytes(8, "little")[:TIME_LENGTH]
    level = bytes([meta.level])
    return keccak256(header + topic + user + time + level + data)


class FeedStoreClient:
    """
    Reads and writes feeds on a Swarm gateway.

    Usage:
        async with FeedStoreClient(gateway, signer=make_signer(key)) as feeds:
            content_hash = await feeds.set_feed_content(address, payload)
            payload = await feeds.get_feed_content(address)
    """

    def __init__(
        self,
        gateway: str = DEFAULT_GATEWAY,
        signer: Optional[Signer] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.gateway = gateway.rstrip("/")
        self.signer = signer
        self._client = client or httpx.AsyncClient(base_url=self.gateway, timeout=timeout)

    def with_signer(self, signer: Signer) -> 'FeedStoreClient':
        """A client sharing this one's connection pool but signing with `signer`."""
        return FeedStoreClient(self.gateway, signer=signer, client=self._client)

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> 'FeedStoreClient':
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
    ) -> httpx.Response:
        headers = {}
        if content is not None:
            headers["Content-Type"] = "application/octet-stream"

        try:
            response = await self._client.request(
                method, path, params=params, content=content, headers=headers
            )
        except httpx.HTTPError as e:
            raise FeedStoreError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            raise FeedNotFound(f"{method} {path}: not found", 404, response.text)
        if response.status_code >= 400:
            raise FeedStoreError(
                f"{method} {path}: gateway returned {response.status_code} ({response.text})",
                response.status_code, response.text,
            )
        return response

    # -- content ------------------------------------------------------------

    async def upload(self, data: bytes) -> str:
        """Store a raw blob and return its content hash."""
        response = await self._request("POST", "/bzz-raw:/", content=data)
        content_hash = strip_hex_prefix(response.text.strip())
        if not HASH_PATTERN.match(content_hash):
            raise FeedStoreError(f"gateway returned a bad content hash: {content_hash!r}")
        logger.debug("uploaded %d bytes as %s", len(data), content_hash)
        return content_hash

    async def download(self, content_hash: str) -> bytes:
        """Fetch a raw blob by content hash."""
        response = await self._request("GET", f"/bzz-raw:/{strip_hex_prefix(content_hash)}")
        return response.content

    # -- feeds --------------------------------------------------------------

    async def get_feed_metadata(self, user: str, topic: str = ZERO_TOPIC) -> FeedMetadata:
        response = await self._request(
            "GET", "/bzz-feed:/", params={"user": user, "topic": topic, "meta": "1"}
        )
        try:
            return FeedMetadata.from_dict(response.json())
        except (ValueError, KeyError, TypeError) as e:
            raise FeedStoreError(f"bad feed metadata for {user}: {e}") from e

    async def post_feed_update(self, meta: FeedMetadata, data: bytes):
        """Sign and publish one feed update."""
        if self.signer is None:
            raise SigningError("feed writes need a signer")

        try:
            digest = feed_update_digest(meta, data)
        except ValueError as e:
            raise SigningError(f"cannot digest update for {meta.user}: {e}") from e

        signature = self.signer(digest)
        params = {
            "topic": meta.topic,
            "user": meta.user,
            "level": str(meta.level),
            "time": str(meta.time),
            "protocolVersion": str(meta.protocol_version),
            "signature": "0x" + signature.hex(),
        }
        await self._request("POST", "/bzz-feed:/", params=params, content=data)

    async def set_feed_content_hash(self, user: str, content_hash: str, topic: str = ZERO_TOPIC):
        """Point a feed at an already uploaded blob."""
        meta = await self.get_feed_metadata(user, topic)
        await self.post_feed_update(meta, bytes.fromhex(strip_hex_prefix(content_hash)))

    async def set_feed_content(self, user: str, data: bytes, topic: str = ZERO_TOPIC) -> str:
        """Upload `data` and publish it under (topic, user); returns its content hash."""
        content_hash = await self.upload(data)
        await self.set_feed_content_hash(user, content_hash, topic)
        return content_hash

    async def set_raw_feed_content(self, user: str, data: bytes):
        """Upload `data` and publish it directly under the user's address."""
        await self.set_feed_content(user, data)

    async def get_raw_feed_content_hash(
        self,
        user: str,
        time: int = 0,
        level: int = 0,
        topic: str = ZERO_TOPIC,
    ) -> str:
        """
        Resolve the content hash a feed currently points at.

        Raises FeedNotFound while nothing has been published.
        """
        params = {"user": user, "topic": topic, "time": str(time), "level": str(level)}
        response = await self._request("GET", "/bzz-feed:/", params=params)
        if not response.content:
            raise FeedNotFound(f"feed {user} has no content", 404)
        return response.content.hex()

    async def get_feed_content(self, user: str, topic: str = ZERO_TOPIC) -> bytes:
        """Fetch the blob a feed currently points at."""
        content_hash = await self.get_raw_feed_content_hash(user, topic=topic)
        return await self.download(content_hash)
