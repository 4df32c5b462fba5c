#!/usr/bin/env python3
"""
Handshake Protocol - Feed Rendezvous

Implements the ADVERTISE → POLL → CHAIN loop and its one-shot responder.

Each round the advertiser publishes a Location naming a fresh ephemeral
key pair (private half included) under its own long-lived address, then
polls the ephemeral address. A responder reads the Location, signs an
Update with the ephemeral key and writes it to the ephemeral address.
The hash of every accepted Update becomes the next Location's `previous`.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import (
    DecodeFailure,
    RendezvousError,
    RetryExhausted,
    TransientIO,
    ValidationFailure,
)
from .feeds import FeedStoreClient
from .keys import KeyPair, generate_key_pair
from .messages import (
    Location,
    PollOutcome,
    PollStatus,
    Update,
    UpdateValidator,
    UpdateWithHash,
    accept_any,
    decode_location,
    decode_update,
    validate_update,
)
from .retry import CancellationToken, RetryPolicy
from .signature import make_signer

logger = logging.getLogger(__name__)


def random_payload() -> str:
    """32 random bytes, hex encoded."""
    return "0x" + secrets.token_hex(32)


@dataclass(frozen=True)
class CompletedRound:
    """One accepted handshake in the advertiser's chain."""
    number: int
    location: Location
    location_hash: str
    update: UpdateWithHash


def verify_chain(rounds: Sequence[CompletedRound]) -> bool:
    """
    Check that rounds link back to genesis.

    The first round has no `previous`; every later round points at the
    update accepted in the round before it.
    """
    previous = None
    for completed in rounds:
        if completed.location.previous != previous:
            return False
        previous = completed.update.hash
    return True


class Advertiser:
    """
    Server role: advertises ephemeral identities forever.

    Usage:
        advertiser = Advertiser(feeds, identity)
        token = CancellationToken()
        await advertiser.run(token)   # until token.cancel()

        advertiser.rounds   # accepted handshakes, oldest first
    """

    def __init__(
        self,
        feeds: FeedStoreClient,
        identity: KeyPair,
        retry: Optional[RetryPolicy] = None,
        validator: UpdateValidator = accept_any,
    ):
        self.identity = identity
        self.feeds = feeds.with_signer(make_signer(identity.private_key))
        self.retry = retry or RetryPolicy()
        self.validator = validator
        self.previous: Optional[str] = None
        self.rounds: List[CompletedRound] = []
        self.attempts = 0

    @property
    def address(self) -> str:
        return self.identity.address

    async def publish_location(self, ephemeral: KeyPair) -> Tuple[Location, str]:
        """Publish a Location for `ephemeral` under our own address."""
        location = Location(key_pair=ephemeral, previous=self.previous)
        content_hash = await self.feeds.set_feed_content(self.address, location.encode())
        logger.info(
            "published location %s (ephemeral %s, previous %s)",
            content_hash, ephemeral.address, self.previous,
        )
        return location, content_hash

    async def wait_for_hash(self, address: str, token: CancellationToken) -> Optional[str]:
        """
        Poll until something is published at `address`.

        Returns None if the token is cancelled or the retry policy runs out.
        """
        attempt = 1
        while not token.cancelled:
            try:
                return await self.feeds.get_raw_feed_content_hash(address, time=0, level=0)
            except TransientIO as e:
                logger.debug("nothing at %s yet (attempt %d): %s", address, attempt, e)

            if not self.retry.allows(attempt + 1):
                return None
            if not await token.sleep(self.retry.delay(attempt)):
                return None
            attempt += 1
        return None

    async def poll_update(self, address: str, token: CancellationToken) -> PollOutcome:
        """Wait for an Update at `address` and classify what was found."""
        content_hash = await self.wait_for_hash(address, token)
        if content_hash is None:
            return PollOutcome.not_ready("cancelled" if token.cancelled else "retries exhausted")

        try:
            payload = await self.feeds.download(content_hash)
        except TransientIO as e:
            logger.warning("could not download %s: %s", content_hash, e)
            return PollOutcome.not_ready(str(e))

        try:
            update = validate_update(decode_update(payload), self.validator)
        except DecodeFailure as e:
            logger.warning("malformed update %s at %s: %s", content_hash, address, e)
            return PollOutcome(status=PollStatus.MALFORMED, reason=str(e))
        except ValidationFailure as e:
            logger.warning("rejected update %s at %s: %s", content_hash, address, e)
            return PollOutcome(status=PollStatus.REJECTED, reason=str(e))

        return PollOutcome.accepted(UpdateWithHash.attach(update, content_hash))

    async def run_round(self, token: CancellationToken) -> PollOutcome:
        """
        One advertise-and-poll cycle.

        Only a READY outcome advances `previous`; anything else leaves the
        chain where it was and the next round uses a new ephemeral identity.
        """
        self.attempts += 1
        ephemeral = generate_key_pair()
        location, location_hash = await self.publish_location(ephemeral)

        outcome = await self.poll_update(ephemeral.address, token)
        if not outcome.ready:
            logger.info("round %d ended without update (%s)", self.attempts, outcome)
            return outcome

        completed = CompletedRound(
            number=len(self.rounds) + 1,
            location=location,
            location_hash=location_hash,
            update=outcome.update,
        )
        self.rounds.append(completed)
        self.previous = outcome.update.hash
        logger.info(
            "accepted update %s from %s (round %d)",
            outcome.update.hash, outcome.update.public_key, completed.number,
        )
        return outcome

    async def run(self, token: CancellationToken):
        """Advertise until cancelled. No failure inside a round ends the loop."""
        logger.info("advertising at %s", self.address)
        while not token.cancelled:
            try:
                await self.run_round(token)
            except RendezvousError as e:
                logger.warning("round failed: %s", e)
                await token.sleep(self.retry.interval)
        logger.info("advertiser stopped after %d accepted rounds", len(self.rounds))


@dataclass(frozen=True)
class Reply:
    """What a responder published, and the Location it answered."""
    location: Location
    update: Update


class Responder:
    """
    Client role: answers an advertiser's current Location once.

    Usage:
        responder = Responder(feeds, advertiser_address)
        reply = await responder.respond()
    """

    def __init__(
        self,
        feeds: FeedStoreClient,
        advertiser_address: str,
        retry: Optional[RetryPolicy] = None,
        key_pair: Optional[KeyPair] = None,
        payload_factory: Callable[[], str] = random_payload,
    ):
        self.feeds = feeds
        self.advertiser_address = advertiser_address
        self.retry = retry or RetryPolicy()
        self.key_pair = key_pair or generate_key_pair()
        self.payload_factory = payload_factory

    async def fetch_location(self) -> Location:
        payload = await self.feeds.get_feed_content(self.advertiser_address)
        location = decode_location(payload)
        logger.info(
            "found location for %s: ephemeral %s, previous %s",
            self.advertiser_address, location.key_pair.address, location.previous,
        )
        return location

    async def respond_once(self) -> Reply:
        """Fetch, sign with the advertised ephemeral key, publish."""
        location = await self.fetch_location()
        update = Update(public_key=self.key_pair.public_key, data=self.payload_factory())

        ephemeral = location.key_pair
        writer = self.feeds.with_signer(make_signer(ephemeral.private_key))
        await writer.set_raw_feed_content(ephemeral.address, update.encode())
        logger.info("published update to %s", ephemeral.address)
        return Reply(location=location, update=update)

    async def respond(self, token: Optional[CancellationToken] = None) -> Optional[Reply]:
        """
        Retry respond_once until it succeeds.

        Returns None if cancelled. Raises RetryExhausted if a bounded retry
        policy runs out.
        """
        token = token or CancellationToken()
        attempt = 1
        while not token.cancelled:
            try:
                return await self.respond_once()
            except RendezvousError as e:
                logger.warning("handshake attempt %d failed: %s", attempt, e)
                last_error = e

            if not self.retry.allows(attempt + 1):
                raise RetryExhausted(
                    f"no reply published after {attempt} attempts", attempt, last_error
                )
            if not await token.sleep(self.retry.delay(attempt)):
                break
            attempt += 1
        return None
