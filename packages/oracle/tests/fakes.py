# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""In-memory fakes of the Monero chain and the Solana oracle program."""

import asyncio
from typing import Dict, List, Optional

from xmr_oracle.errors import AlreadyInitializedError
from xmr_oracle.models import Block, OracleState, Output, PostResult, RootRecord

AUTHORITY = bytes(range(32))


def make_output(tx_index: int, output_index: int, block_height: int = 100) -> Output:
    """Deterministic dummy output."""
    tx_hash = f"{block_height:08x}{tx_index:056x}"
    return Output(
        tx_hash=tx_hash,
        output_index=output_index,
        amount="0",
        stealth_address=f"{tx_index:032x}{output_index:032x}",
        one_time_address=f"{output_index:032x}{tx_index:032x}",
        ecdh_amount=f"{tx_index + output_index:016x}",
        ecdh_mask="0",
        block_height=block_height,
    )


class FakeSource:
    """
    In-memory Monero chain.

    current_height() sets stop_event once it has been called max_polls
    times, so the engine finishes that iteration and then exits.
    """

    def __init__(
        self,
        tip: int,
        outputs: Optional[Dict[int, List[Output]]] = None,
        stop_event: Optional[asyncio.Event] = None,
        max_polls: int = 1,
        reachable: bool = True,
    ):
        self.tip = tip
        self.outputs = outputs if outputs is not None else {}
        self.stop_event = stop_event
        self.max_polls = max_polls
        self.reachable = reachable
        self.polls = 0
        self.output_requests: List[int] = []
        self.failures: Dict[int, Exception] = {}

    async def current_height(self) -> int:
        self.polls += 1
        if self.stop_event is not None and self.polls >= self.max_polls:
            self.stop_event.set()
        return self.tip

    async def block_metadata(self, height: int) -> Block:
        outputs = self.outputs.get(height, [])
        return Block(
            height=height,
            hash=f"{height:064x}",
            timestamp=1_700_000_000 + height,
            tx_hashes=tuple(dict.fromkeys(o.tx_hash for o in outputs)),
        )

    async def outputs_for_block(self, height: int) -> List[Output]:
        self.output_requests.append(height)
        if height in self.failures:
            raise self.failures.pop(height)
        return list(self.outputs.get(height, []))

    async def is_reachable(self) -> bool:
        return self.reachable


class FakeDestination:
    """In-memory oracle program with write-once root records."""

    def __init__(self, state: Optional[OracleState] = None):
        self.state = state
        self.roots: Dict[int, RootRecord] = {}
        self.posted: List[int] = []
        self.post_error: Optional[Exception] = None

    async def initialize_oracle_state(self) -> str:
        if self.state is not None:
            raise AlreadyInitializedError("Oracle already initialized")
        self.state = OracleState(authority=AUTHORITY, last_updated_block=0, total_roots_posted=0)
        return "init-signature"

    async def post_root(self, record: RootRecord) -> PostResult:
        if self.post_error is not None:
            raise self.post_error
        if record.block_height in self.roots:
            return PostResult(posted=False, block_height=record.block_height, address="fake")

        self.roots[record.block_height] = record
        self.posted.append(record.block_height)
        self.state = OracleState(
            authority=self.state.authority,
            last_updated_block=record.block_height,
            total_roots_posted=self.state.total_roots_posted + 1,
        )
        return PostResult(
            posted=True,
            block_height=record.block_height,
            address="fake",
            signature=f"sig-{record.block_height}",
        )

    async def get_root(self, block_height: int) -> Optional[RootRecord]:
        return self.roots.get(block_height)

    async def get_oracle_state(self) -> Optional[OracleState]:
        return self.state
