# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Command line interface for the Monero -> Solana oracle.

Usage:
    xmr-oracle init                         Create the on-chain oracle state
    xmr-oracle run                          Run the continuous sync loop
    xmr-oracle serve                        Sync loop plus HTTP status API
    xmr-oracle root <height>                Query the Merkle root of a block
    xmr-oracle state                        Show the oracle state
    xmr-oracle prove <height> <tx> <index>  Build and check an output proof
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from solders.pubkey import Pubkey

from xmr_oracle.config import Settings, load_authority_keypair
from xmr_oracle.destination import OracleClient, SolanaRpcClient
from xmr_oracle.engine import EngineState, OracleSyncEngine
from xmr_oracle.errors import (
    AlreadyInitializedError,
    ConfigurationError,
    OracleError,
    SourceUnreachableError,
)
from xmr_oracle.merkle import MerkleTree, MerkleTreeBuilder
from xmr_oracle.source import MoneroClient

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Components:
    """The three adapters plus the engine, wired from settings."""

    def __init__(self, settings: Settings, with_authority: bool = True):
        program_id = settings.program_id()
        authority = (
            load_authority_keypair(Path(settings.oracle_keypair_path)) if with_authority else None
        )

        self.source = MoneroClient(
            settings.monero_rpc_url,
            timeout=settings.rpc_timeout_seconds,
            max_concurrency=settings.source_max_concurrency,
        )
        self.solana = SolanaRpcClient(
            settings.solana_rpc_url,
            commitment=settings.solana_commitment,
            timeout=settings.rpc_timeout_seconds,
            confirm_timeout=settings.confirm_timeout_seconds,
        )
        self.destination = OracleClient(self.solana, program_id, authority)
        self.engine = OracleSyncEngine(
            self.source,
            self.destination,
            MerkleTreeBuilder(),
            start_height=settings.start_block_height,
            poll_interval=settings.poll_interval_seconds,
            retry_interval=settings.retry_interval_seconds,
            authority=bytes(authority.pubkey()) if authority else None,
        )

    async def aclose(self) -> None:
        await self.source.aclose()
        await self.solana.aclose()


async def cmd_init(settings: Settings, args: argparse.Namespace) -> int:
    components = Components(settings)
    try:
        await components.engine.initialize()
    except AlreadyInitializedError:
        logger.info("Oracle already initialized")
    finally:
        await components.aclose()
    return 0


async def cmd_run(settings: Settings, args: argparse.Namespace) -> int:
    components = Components(settings)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    logger.info(f"Monero RPC: {settings.monero_rpc_url}")
    logger.info(f"Solana RPC: {settings.solana_rpc_url}")
    logger.info(f"Oracle authority: {components.destination.authority_pubkey}")

    try:
        await components.engine.start(stop_event)
    finally:
        await components.aclose()
    return 0


async def cmd_serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    from xmr_oracle.api import create_app

    components = Components(settings)
    server = None

    def stop_server(exc: BaseException) -> None:
        if server is not None:
            server.should_exit = True

    app = create_app(components.engine, components.destination, on_fault=stop_server)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            log_level=settings.log_level.lower(),
        )
    )

    try:
        await server.serve()
    finally:
        await components.aclose()

    if components.engine.state == EngineState.FAULTED:
        logger.error(f"Sync loop faulted: {components.engine.last_error}")
        return 1
    return 0


async def cmd_root(settings: Settings, args: argparse.Namespace) -> int:
    components = Components(settings, with_authority=False)
    try:
        record = await components.destination.get_root(args.height)
    finally:
        await components.aclose()

    if record is None:
        print(f"No Merkle root found for block {args.height}")
        return 1

    posted_at = datetime.fromtimestamp(record.timestamp, tz=timezone.utc).isoformat()
    print("Merkle Root Found:")
    print(f"  Block Height: {record.block_height}")
    print(f"  Root Hash:    {record.root_hash.hex()}")
    print(f"  Timestamp:    {posted_at}")
    print(f"  Outputs:      {record.output_count}")
    return 0


async def cmd_state(settings: Settings, args: argparse.Namespace) -> int:
    components = Components(settings, with_authority=False)
    try:
        state = await components.destination.get_oracle_state()
    finally:
        await components.aclose()

    if state is None:
        print("Oracle not initialized")
        return 1

    print("Oracle State:")
    print(f"  Authority:          {Pubkey.from_bytes(state.authority)}")
    print(f"  Last Updated Block: {state.last_updated_block}")
    print(f"  Total Roots Posted: {state.total_roots_posted}")
    return 0


async def cmd_prove(settings: Settings, args: argparse.Namespace) -> int:
    components = Components(settings, with_authority=False)
    try:
        outputs = await components.source.outputs_for_block(args.height)
        target = await components.source.get_output(args.tx_hash, args.output_index)
        record = await components.destination.get_root(args.height)
    finally:
        await components.aclose()

    proof = MerkleTreeBuilder().get_proof_for_output(outputs, target)
    verified = MerkleTree.verify(proof)
    on_chain = record is not None and record.root_hash == proof.root

    print(json.dumps(
        {
            "block_height": args.height,
            "tx_hash": args.tx_hash,
            "output_index": args.output_index,
            "proof": proof.to_dict(),
            "verified": verified,
            "matches_on_chain_root": on_chain,
        },
        indent=2,
    ))
    return 0 if verified and on_chain else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xmr-oracle",
        description="Monero -> Solana Merkle root oracle",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        help="Read settings from this .env file (default: ./.env)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the on-chain oracle state (one-time)")
    subparsers.add_parser("run", help="Run the continuous sync loop")

    serve = subparsers.add_parser("serve", help="Run the sync loop with the HTTP status API")
    serve.add_argument("--host", help="Bind address (default: API_HOST)")
    serve.add_argument("--port", type=int, help="Bind port (default: API_PORT)")

    root = subparsers.add_parser("root", help="Query the Merkle root of a block")
    root.add_argument("height", type=int, help="Monero block height")

    subparsers.add_parser("state", help="Show the oracle state")

    prove = subparsers.add_parser("prove", help="Build an inclusion proof for an output")
    prove.add_argument("height", type=int, help="Monero block height")
    prove.add_argument("tx_hash", help="Transaction hash")
    prove.add_argument("output_index", type=int, help="Output index within the transaction")

    return parser


COMMANDS = {
    "init": cmd_init,
    "run": cmd_run,
    "serve": cmd_serve,
    "root": cmd_root,
    "state": cmd_state,
    "prove": cmd_prove,
}


def main(argv: Optional[list] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        if args.env_file:
            settings = Settings(_env_file=args.env_file)
        else:
            settings = Settings()
    except ValidationError as e:
        logging.basicConfig(format=LOG_FORMAT)
        logger.error(f"Fatal error: invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    try:
        exit_code = asyncio.run(COMMANDS[args.command](settings, args))
    except (ConfigurationError, SourceUnreachableError) as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)
    except OracleError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        exit_code = 130

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
