# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Binary layouts of the oracle program's accounts and instructions.

All integers are little-endian.

Oracle state account (seed b"oracle_state"):
    discriminator[8] | authority[32] | last_updated_block u64 | total_roots_posted u64

Merkle root account (seeds b"merkle_root", u64_le(block_height)):
    discriminator[8] | block_height u64 | root_hash[32] | timestamp i64 | output_count u32

The deployed program is assumed to write Anchor-style discriminators,
sha256(b"account:<Name>")[:8]. Decoding checks them, so an account written
by a program with any other prefix is rejected rather than misread.

Instructions start with a one-byte tag: 0 = Initialize (no payload),
1 = PostMerkleRoot followed by the root account fields minus the
discriminator.
"""

import hashlib
import struct

from xmr_oracle.errors import RpcProtocolError
from xmr_oracle.models import OracleState, RootRecord

ORACLE_STATE_SEED = b"oracle_state"
MERKLE_ROOT_SEED = b"merkle_root"

ORACLE_STATE_DISCRIMINATOR = hashlib.sha256(b"account:OracleState").digest()[:8]
MERKLE_ROOT_DISCRIMINATOR = hashlib.sha256(b"account:MerkleRoot").digest()[:8]

INSTRUCTION_INITIALIZE = 0
INSTRUCTION_POST_MERKLE_ROOT = 1

ORACLE_STATE_LAYOUT = struct.Struct("<8s32sQQ")
ROOT_PAYLOAD_LAYOUT = struct.Struct("<Q32sqI")
ROOT_RECORD_LAYOUT = struct.Struct("<8sQ32sqI")

HEIGHT_SEED_LAYOUT = struct.Struct("<Q")


def height_seed(block_height: int) -> bytes:
    """8-byte little-endian height used in the root account address."""
    return HEIGHT_SEED_LAYOUT.pack(block_height)


def encode_initialize() -> bytes:
    return bytes([INSTRUCTION_INITIALIZE])


def encode_post_merkle_root(record: RootRecord) -> bytes:
    payload = ROOT_PAYLOAD_LAYOUT.pack(
        record.block_height,
        record.root_hash,
        record.timestamp,
        record.output_count,
    )
    return bytes([INSTRUCTION_POST_MERKLE_ROOT]) + payload


def decode_post_merkle_root(data: bytes) -> RootRecord:
    """Parse PostMerkleRoot instruction data back into a RootRecord."""
    if len(data) != 1 + ROOT_PAYLOAD_LAYOUT.size or data[0] != INSTRUCTION_POST_MERKLE_ROOT:
        raise ValueError("not a PostMerkleRoot instruction")
    block_height, root_hash, timestamp, output_count = ROOT_PAYLOAD_LAYOUT.unpack_from(data, 1)
    return RootRecord(
        block_height=block_height,
        root_hash=root_hash,
        timestamp=timestamp,
        output_count=output_count,
    )


def encode_oracle_state(state: OracleState) -> bytes:
    return ORACLE_STATE_LAYOUT.pack(
        ORACLE_STATE_DISCRIMINATOR,
        state.authority,
        state.last_updated_block,
        state.total_roots_posted,
    )


def decode_oracle_state(data: bytes) -> OracleState:
    """
    Parse oracle state account data.

    Trailing bytes (padding, bump) are ignored.

    Raises:
        RpcProtocolError: If the data is too short or of another account type
    """
    if len(data) < ORACLE_STATE_LAYOUT.size:
        raise RpcProtocolError(
            f"Oracle state account is {len(data)} bytes, expected at least {ORACLE_STATE_LAYOUT.size}"
        )
    discriminator, authority, last_updated_block, total_roots_posted = (
        ORACLE_STATE_LAYOUT.unpack_from(data)
    )
    if discriminator != ORACLE_STATE_DISCRIMINATOR:
        raise RpcProtocolError("Account is not an oracle state account")

    return OracleState(
        authority=authority,
        last_updated_block=last_updated_block,
        total_roots_posted=total_roots_posted,
    )


def encode_root_record(record: RootRecord) -> bytes:
    return ROOT_RECORD_LAYOUT.pack(
        MERKLE_ROOT_DISCRIMINATOR,
        record.block_height,
        record.root_hash,
        record.timestamp,
        record.output_count,
    )


def decode_root_record(data: bytes) -> RootRecord:
    """
    Parse Merkle root account data.

    Raises:
        RpcProtocolError: If the data is too short or of another account type
    """
    if len(data) < ROOT_RECORD_LAYOUT.size:
        raise RpcProtocolError(
            f"Merkle root account is {len(data)} bytes, expected at least {ROOT_RECORD_LAYOUT.size}"
        )
    discriminator, block_height, root_hash, timestamp, output_count = (
        ROOT_RECORD_LAYOUT.unpack_from(data)
    )
    if discriminator != MERKLE_ROOT_DISCRIMINATOR:
        raise RpcProtocolError("Account is not a Merkle root account")

    return RootRecord(
        block_height=block_height,
        root_hash=root_hash,
        timestamp=timestamp,
        output_count=output_count,
    )
