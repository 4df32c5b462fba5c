"""
Test helper functions.

FakeSwarmGateway emulates the bzz-raw and bzz-feed endpoints behind an
httpx.MockTransport, and checks every feed write's signature against the
feed owner like a real gateway.
"""

import hashlib
import json
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from rendezvous.errors import SigningError
from rendezvous.feeds import FeedMetadata, FeedStoreClient, ZERO_TOPIC, feed_update_digest
from rendezvous.keys import strip_hex_prefix
from rendezvous.signature import recover_address


class FakeSwarmGateway:
    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.feeds: Dict[Tuple[str, str], List[bytes]] = {}
        self.writes: List[Tuple[str, str]] = []  # (feed user, recovered signer)
        self.requests: List[httpx.Request] = []
        self.failures = 0
        self.on_publish: Optional[Callable[[str, bytes], None]] = None
        self.intercept: Optional[Callable[[httpx.Request], Optional[httpx.Response]]] = None

    # -- test controls ------------------------------------------------------

    def fail_next(self, count: int = 1):
        """Answer the next `count` requests with 503."""
        self.failures += count

    def put_content(self, user: str, data: bytes) -> str:
        """Publish under `user` without a signature, bypassing checks."""
        content_hash = self._store_blob(data)
        self.feeds.setdefault((ZERO_TOPIC, user.lower()), []).append(bytes.fromhex(content_hash))
        return content_hash

    def feed_content(self, user: str) -> List[bytes]:
        """Every blob ever published under `user`, oldest first."""
        chunks = self.feeds.get((ZERO_TOPIC, user.lower()), [])
        return [self.blobs[chunk.hex()] for chunk in chunks]

    def client(self, signer=None) -> FeedStoreClient:
        http = httpx.AsyncClient(base_url="http://swarm.test", transport=httpx.MockTransport(self.handle))
        return FeedStoreClient("http://swarm.test", signer=signer, client=http)

    # -- transport ----------------------------------------------------------

    def _store_blob(self, data: bytes) -> str:
        content_hash = hashlib.sha256(data).hexdigest()
        self.blobs[content_hash] = data
        return content_hash

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.intercept is not None:
            response = self.intercept(request)
            if response is not None:
                return response
        if self.failures:
            self.failures -= 1
            return httpx.Response(503, text="gateway unavailable")

        path = request.url.path
        if path.startswith("/bzz-raw:/"):
            return self._handle_raw(request, path[len("/bzz-raw:/"):])
        if path.startswith("/bzz-feed:/"):
            return self._handle_feed(request)
        return httpx.Response(400, text=f"unknown path {path}")

    def _handle_raw(self, request: httpx.Request, content_hash: str) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, text=self._store_blob(request.content))
        blob = self.blobs.get(content_hash)
        if blob is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=blob)

    def _handle_feed(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        user = params["user"].lower()
        topic = params.get("topic", ZERO_TOPIC)
        updates = self.feeds.get((topic, user), [])

        if request.method == "GET" and params.get("meta") == "1":
            body = {
                "feed": {"topic": topic, "user": user},
                "epoch": {"time": len(updates) + 1, "level": 0},
                "protocolVersion": 0,
            }
            return httpx.Response(200, text=json.dumps(body))

        if request.method == "GET":
            if not updates:
                return httpx.Response(404, text="no updates")
            return httpx.Response(200, content=updates[-1])

        meta = FeedMetadata(
            topic=topic,
            user=user,
            time=int(params["time"]),
            level=int(params["level"]),
            protocol_version=int(params["protocolVersion"]),
        )
        signature = bytes.fromhex(strip_hex_prefix(params["signature"]))
        try:
            signer = recover_address(feed_update_digest(meta, request.content), signature)
        except SigningError:
            return httpx.Response(400, text="bad signature")
        if signer != user:
            return httpx.Response(403, text=f"signer {signer} does not own feed {user}")

        self.feeds.setdefault((topic, user), []).append(request.content)
        self.writes.append((user, signer))
        if self.on_publish is not None:
            self.on_publish(user, self.blobs.get(request.content.hex(), b""))
        return httpx.Response(200, text="")
