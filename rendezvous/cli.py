"""
Command line entry point.

    feed-rendezvous server                 advertise forever
    feed-rendezvous client 0x<address>     answer an advertiser once
"""

import argparse
import asyncio
import logging
import re
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config import RendezvousConfig, load_config
from .errors import ConfigError, InvalidSeed, RetryExhausted
from .feeds import FeedStoreClient
from .handshake import Advertiser, Responder
from .keys import KeyPair
from .retry import CancellationToken

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feed-rendezvous",
        description="Rendezvous handshake over a Swarm feed store.",
    )
    parser.add_argument("mode", help="'server' to advertise; any other value answers an advertiser")
    parser.add_argument("address", nargs="?", help="advertiser address (responder only)")
    parser.add_argument("--config", type=Path, help="YAML config file")
    parser.add_argument("--gateway", help="Swarm gateway URL")
    parser.add_argument("--key-file", type=Path, help="advertiser key file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


async def serve(config: RendezvousConfig):
    identity, is_new = KeyPair.load_or_generate(config.key_file)
    if is_new:
        logger.info("generated new identity in %s", config.key_file)
    logger.info("advertiser address: %s", identity.address)

    token = CancellationToken()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, token.cancel)
        except NotImplementedError:
            # No loop signal handlers on Windows; Ctrl+C still interrupts asyncio.run
            break

    async with FeedStoreClient(config.gateway, timeout=config.timeout) as feeds:
        advertiser = Advertiser(feeds, identity, config.retry_policy(), config.validator())
        await advertiser.run(token)


async def respond(config: RendezvousConfig, address: str):
    async with FeedStoreClient(config.gateway, timeout=config.timeout) as feeds:
        responder = Responder(feeds, address, config.retry_policy())
        logger.info("responder public key: %s", responder.key_pair.public_key)
        reply = await responder.respond()
    if reply is not None:
        logger.info("answered location at %s with data %s", reply.location.key_pair.address, reply.update.data)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    is_server = args.mode == "server"
    if not is_server:
        if not args.address:
            parser.error("the responder needs the advertiser address")
        if not ADDRESS_PATTERN.match(args.address):
            parser.error(f"not a feed address: {args.address}")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
        if args.gateway:
            config.gateway = args.gateway
        if args.key_file:
            config.key_file = args.key_file.expanduser()

        if is_server:
            asyncio.run(serve(config))
        else:
            asyncio.run(respond(config, args.address.lower()))
    except (ConfigError, InvalidSeed, RetryExhausted, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0
