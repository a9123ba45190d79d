# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Oracle synchronization engine.

Walks the Monero chain one block at a time and posts each block's output
Merkle root to Solana, exactly once per height and in ascending order.

Lifecycle:
    UNINITIALIZED -> INITIALIZING -> READY -> (SYNCING <-> WAITING) -> STOPPED
    FAULTED is entered on configuration errors (missing oracle account,
    wrong authority) and ends the run.

Transient RPC failures never end the loop: the iteration is abandoned, the
cursor stays where it was, and the loop retries after a short backoff.
"""

import asyncio
import logging
from enum import Enum
from typing import List, Optional, Protocol

from xmr_oracle.errors import (
    AuthorityMismatchError,
    ConfigurationError,
    NotInitializedError,
    SourceUnreachableError,
)
from xmr_oracle.merkle import MerkleTreeBuilder
from xmr_oracle.models import Block, OracleState, Output, PostResult, RootRecord

logger = logging.getLogger(__name__)


class SourceLedger(Protocol):
    async def current_height(self) -> int: ...

    async def block_metadata(self, height: int) -> Block: ...

    async def outputs_for_block(self, height: int) -> List[Output]: ...

    async def is_reachable(self) -> bool: ...


class DestinationLedger(Protocol):
    async def initialize_oracle_state(self) -> str: ...

    async def post_root(self, record: RootRecord) -> PostResult: ...

    async def get_root(self, block_height: int) -> Optional[RootRecord]: ...

    async def get_oracle_state(self) -> Optional[OracleState]: ...


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    SYNCING = "syncing"
    WAITING = "waiting"
    STOPPED = "stopped"
    FAULTED = "faulted"


class OracleSyncEngine:
    """
    Drives block-by-block commitment of Monero onto Solana.

    The three collaborators are injected; the engine owns only the cursor
    (last processed height) and its lifecycle state.
    """

    def __init__(
        self,
        source: SourceLedger,
        destination: DestinationLedger,
        builder: Optional[MerkleTreeBuilder] = None,
        start_height: int = 0,
        poll_interval: float = 60.0,
        retry_interval: float = 10.0,
        authority: Optional[bytes] = None,
    ):
        """
        Initialize the engine.

        Args:
            source: Monero client
            destination: Solana oracle client
            builder: Merkle tree builder (a default one if omitted)
            start_height: Heights up to and including this are never processed
            poll_interval: Sleep in seconds once caught up with the chain tip
            retry_interval: Backoff in seconds after a failed iteration
            authority: Expected on-chain authority (32 bytes); checked at start
        """
        if retry_interval >= poll_interval:
            raise ValueError("retry_interval must be shorter than poll_interval")

        self.source = source
        self.destination = destination
        self.builder = builder or MerkleTreeBuilder()
        self.start_height = start_height
        self.poll_interval = poll_interval
        self.retry_interval = retry_interval
        self.authority = authority

        self.last_processed_height = start_height
        self._state = EngineState.UNINITIALIZED
        self._stop_event: Optional[asyncio.Event] = None
        self.last_error: Optional[str] = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in (EngineState.SYNCING, EngineState.WAITING)

    async def initialize(self) -> str:
        """
        Create the on-chain oracle state account.

        Returns:
            Transaction signature

        Raises:
            AlreadyInitializedError: If the account already exists. Callers
                treat this as informational.
        """
        logger.info("Initializing oracle...")
        previous = self._state
        self._state = EngineState.INITIALIZING
        try:
            signature = await self.destination.initialize_oracle_state()
        except ConfigurationError:
            self._state = EngineState.FAULTED
            raise
        except Exception:
            self._state = previous
            raise

        self._state = EngineState.READY
        logger.info("Oracle initialized successfully")
        return signature

    async def _preflight(self) -> None:
        """Check both chains and load the persisted cursor."""
        logger.info("Checking connections...")
        if not await self.source.is_reachable():
            raise SourceUnreachableError("Cannot reach Monero node")
        logger.info("Monero node reachable")

        oracle_state = await self.destination.get_oracle_state()
        if oracle_state is None:
            raise NotInitializedError("Oracle not initialized. Run the init command first.")

        if self.authority is not None and oracle_state.authority != self.authority:
            raise AuthorityMismatchError(
                f"Configured authority {self.authority.hex()} does not match "
                f"on-chain authority {oracle_state.authority.hex()}"
            )

        logger.info(
            f"Oracle state found: last updated block {oracle_state.last_updated_block}, "
            f"{oracle_state.total_roots_posted} roots posted"
        )
        self.last_processed_height = max(self.start_height, oracle_state.last_updated_block)

    async def process_block(self, height: int) -> Optional[RootRecord]:
        """
        Commit one block.

        A block without outputs is skipped and the cursor is left where it
        was. Otherwise the root is posted and the cursor advances to height,
        also when the root turned out to be posted already.

        Returns:
            The root record for the block, or None if it had no outputs
        """
        logger.info(f"Processing block {height}...")

        outputs = await self.source.outputs_for_block(height)
        if not outputs:
            logger.info(f"No outputs in block {height}, skipping")
            return None

        logger.info(f"Found {len(outputs)} outputs")

        tree = self.builder.build_from_outputs(outputs)
        root = tree.get_root()
        logger.info(f"Merkle root: {root.hex()[:16]}...")

        block = await self.source.block_metadata(height)
        record = RootRecord(
            block_height=height,
            root_hash=root,
            timestamp=block.timestamp,
            output_count=len(outputs),
        )
        await self.destination.post_root(record)

        self.last_processed_height = height
        return record

    async def _sync_once(self) -> int:
        """Process every height above the cursor up to the chain tip."""
        current_height = await self.source.current_height()
        logger.info(
            f"Current Monero height: {current_height}, last processed: {self.last_processed_height}"
        )

        for height in range(self.last_processed_height + 1, current_height + 1):
            await self.process_block(height)

        if self.last_processed_height >= current_height:
            logger.info("All blocks processed, waiting for new blocks...")
        return current_height

    async def _sleep(self, seconds: float, stop_event: asyncio.Event) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def start(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Run the sync loop until stop_event is set.

        Args:
            stop_event: Cancellation token, checked at the top of every
                iteration. A fresh one is created if omitted; stop() sets it.

        Raises:
            SourceUnreachableError: Monero node down at startup
            NotInitializedError: Oracle state account missing
            ConfigurationError: Any other configuration failure
            RpcError: Solana unreachable while reading the oracle state

        Every startup failure leaves the engine FAULTED.
        """
        if self.is_running:
            raise RuntimeError("Oracle sync engine is already running")

        stop_event = stop_event or asyncio.Event()
        self._stop_event = stop_event

        logger.info(
            f"Starting Monero->Solana oracle service "
            f"(poll interval {self.poll_interval}s, retry interval {self.retry_interval}s)"
        )

        try:
            await self._preflight()
        except Exception as e:
            self._state = EngineState.FAULTED
            self.last_error = str(e)
            logger.error(f"Startup checks failed: {e}")
            raise

        self._state = EngineState.READY
        logger.info(f"Resuming after block {self.last_processed_height}")

        while not stop_event.is_set():
            self._state = EngineState.SYNCING
            try:
                await self._sync_once()
                delay = self.poll_interval
                self.last_error = None
            except ConfigurationError as e:
                self._state = EngineState.FAULTED
                self.last_error = str(e)
                logger.error(f"Fatal configuration error: {e}")
                raise
            except Exception as e:
                self.last_error = str(e)
                logger.error(f"Error in main loop: {e}", exc_info=True)
                logger.info(f"Retrying in {self.retry_interval} seconds...")
                delay = self.retry_interval

            self._state = EngineState.WAITING
            await self._sleep(delay, stop_event)

        self._state = EngineState.STOPPED
        logger.info("Oracle service stopped")

    def stop(self) -> None:
        """Ask the running loop to exit after its current step."""
        logger.info("Stopping oracle service...")
        if self._stop_event is not None:
            self._stop_event.set()
