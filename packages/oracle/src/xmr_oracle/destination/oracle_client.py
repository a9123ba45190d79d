# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Client for the on-chain oracle program on Solana.

Creates the oracle state account, posts per-block Merkle roots and reads
both back. Root accounts are write-once; post_root() checks for an existing
account before sending, which also makes a retry after an unconfirmed send
safe.
"""

import logging
from typing import Optional, Tuple

from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.sysvar import RENT

from xmr_oracle.destination import layout
from xmr_oracle.destination.solana_rpc import SolanaRpcClient
from xmr_oracle.errors import AlreadyInitializedError, MissingCredentialsError
from xmr_oracle.models import OracleState, PostResult, RootRecord

logger = logging.getLogger(__name__)


class OracleClient:
    """
    Oracle program client bound to one authority keypair.

    Example:
        >>> client = OracleClient(rpc, program_id, authority)
        >>> await client.post_root(RootRecord(100, root, 1700000000, 12))
    """

    def __init__(
        self,
        rpc: SolanaRpcClient,
        program_id: Pubkey,
        authority: Optional[Keypair] = None,
    ):
        """
        Initialize oracle client.

        Args:
            rpc: Solana RPC client
            program_id: Deployed oracle program id
            authority: Oracle authority keypair (signs and pays). Only
                needed for writes; lookups work without it.
        """
        self.rpc = rpc
        self.authority = authority
        self.program_id = program_id

    @property
    def authority_pubkey(self) -> Pubkey:
        return self._signer().pubkey()

    def _signer(self) -> Keypair:
        if self.authority is None:
            raise MissingCredentialsError("An authority keypair is required to submit transactions")
        return self.authority

    def oracle_state_address(self) -> Tuple[Pubkey, int]:
        """Program-derived address of the oracle state account."""
        return Pubkey.find_program_address([layout.ORACLE_STATE_SEED], self.program_id)

    def merkle_root_address(self, block_height: int) -> Tuple[Pubkey, int]:
        """Program-derived address of the root account for block_height."""
        return Pubkey.find_program_address(
            [layout.MERKLE_ROOT_SEED, layout.height_seed(block_height)],
            self.program_id,
        )

    async def initialize_oracle_state(self) -> str:
        """
        Create the oracle state account (one-time setup).

        Returns:
            Transaction signature

        Raises:
            AlreadyInitializedError: If the account already exists
        """
        state_address, _ = self.oracle_state_address()

        if await self.rpc.get_account_data(state_address) is not None:
            raise AlreadyInitializedError(f"Oracle already initialized at {state_address}")

        instruction = Instruction(
            self.program_id,
            layout.encode_initialize(),
            [
                AccountMeta(self.authority_pubkey, is_signer=True, is_writable=True),
                AccountMeta(state_address, is_signer=False, is_writable=True),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
                AccountMeta(RENT, is_signer=False, is_writable=False),
            ],
        )
        signature = await self.rpc.submit([instruction], self._signer())

        logger.info(f"Oracle initialized. State account: {state_address}, tx {signature}")
        return signature

    async def post_root(self, record: RootRecord) -> PostResult:
        """
        Post the Merkle root of one block.

        If a root account for the height already exists, nothing is sent and
        the result has posted=False. The existing record is never
        overwritten, whatever its contents.
        """
        state_address, _ = self.oracle_state_address()
        root_address, _ = self.merkle_root_address(record.block_height)

        if await self.rpc.get_account_data(root_address) is not None:
            logger.warning(f"Merkle root for block {record.block_height} already posted")
            return PostResult(
                posted=False,
                block_height=record.block_height,
                address=str(root_address),
            )

        instruction = Instruction(
            self.program_id,
            layout.encode_post_merkle_root(record),
            [
                AccountMeta(self.authority_pubkey, is_signer=True, is_writable=True),
                AccountMeta(state_address, is_signer=False, is_writable=True),
                AccountMeta(root_address, is_signer=False, is_writable=True),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
                AccountMeta(RENT, is_signer=False, is_writable=False),
            ],
        )
        signature = await self.rpc.submit([instruction], self._signer())

        logger.info(
            f"Posted Merkle root for block {record.block_height}: "
            f"{record.root_hash.hex()} ({record.output_count} outputs), tx {signature}"
        )
        return PostResult(
            posted=True,
            block_height=record.block_height,
            address=str(root_address),
            signature=signature,
        )

    async def get_root(self, block_height: int) -> Optional[RootRecord]:
        """Root record for block_height, or None if not posted."""
        root_address, _ = self.merkle_root_address(block_height)
        data = await self.rpc.get_account_data(root_address)
        if data is None:
            return None
        return layout.decode_root_record(data)

    async def get_oracle_state(self) -> Optional[OracleState]:
        """Oracle state record, or None if not initialized."""
        state_address, _ = self.oracle_state_address()
        data = await self.rpc.get_account_data(state_address)
        if data is None:
            return None
        return layout.decode_oracle_state(data)
