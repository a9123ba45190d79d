# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Data structures shared by the oracle components.

Chain data fetched from Monero (outputs, blocks, transactions), the Merkle
proof format, and the records persisted on Solana (root records and the
oracle state account).
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

HASH_SIZE = 32

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


def _check_digest(name: str, value: bytes) -> None:
    if not isinstance(value, (bytes, bytearray)) or len(value) != HASH_SIZE:
        raise ValueError(f"{name} must be {HASH_SIZE} bytes")


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
        raise ValueError(f"{name} must be an integer in [{low}, {high}], got {value!r}")


@dataclass(frozen=True)
class Output:
    """
    One transaction output on the Monero chain.

    Attributes:
        tx_hash: Hash of the owning transaction (64 hex chars)
        output_index: Position of the output within its transaction
        amount: Raw amount field of the vout (0 for RingCT outputs)
        stealth_address: One-time public key from the vout target
        one_time_address: RingCT output commitment (outPk)
        ecdh_amount: Encrypted amount from ecdhInfo
        ecdh_mask: Encrypted mask from ecdhInfo ("0" on post-Bulletproof2 txs)
        block_height: Height of the block containing the transaction
    """

    tx_hash: str
    output_index: int
    amount: str
    stealth_address: str
    one_time_address: str
    ecdh_amount: str
    ecdh_mask: str
    block_height: int

    def __post_init__(self):
        if not self.tx_hash:
            raise ValueError("tx_hash must not be empty")
        _check_range("output_index", self.output_index, 0, U32_MAX)
        _check_range("block_height", self.block_height, 0, U64_MAX)

    @property
    def key(self) -> Tuple[str, int]:
        """Identity of the output: (tx_hash, output_index)."""
        return (self.tx_hash, self.output_index)


@dataclass(frozen=True)
class Block:
    """Monero block header plus the hashes of its non-coinbase transactions."""

    height: int
    hash: str
    timestamp: int
    tx_hashes: Tuple[str, ...] = ()

    def __post_init__(self):
        _check_range("height", self.height, 0, U64_MAX)
        _check_range("timestamp", self.timestamp, I64_MIN, I64_MAX)


@dataclass
class Transaction:
    """A decoded Monero transaction and its outputs in vout order."""

    hash: str
    block_height: int
    timestamp: int
    outputs: List[Output] = field(default_factory=list)


@dataclass
class MerkleProof:
    """
    Inclusion proof for one leaf of a MerkleTree.

    Attributes:
        leaf: The 32-byte leaf being proven
        root: Root of the tree that produced the proof
        siblings: Sibling hash at each layer, leaf to root
        positions: Side ("left" or "right") the proven node occupied in its
            pair at each layer. Pairs are sorted before hashing, so these are
            not needed to recompute the root.
    """

    leaf: bytes
    root: bytes
    siblings: List[bytes]
    positions: List[str]

    def __post_init__(self):
        _check_digest("leaf", self.leaf)
        _check_digest("root", self.root)

        if len(self.siblings) != len(self.positions):
            raise ValueError(
                f"siblings and positions must have equal length, "
                f"got {len(self.siblings)} and {len(self.positions)}"
            )

        for i, sibling in enumerate(self.siblings):
            _check_digest(f"siblings[{i}]", sibling)

        for i, position in enumerate(self.positions):
            if position not in ("left", "right"):
                raise ValueError(f"positions[{i}] must be 'left' or 'right', got {position!r}")

    @property
    def depth(self) -> int:
        """Number of layers between the leaf and the root."""
        return len(self.siblings)

    def to_dict(self) -> Dict:
        """Hex-encoded representation for JSON output."""
        return {
            "leaf": self.leaf.hex(),
            "root": self.root.hex(),
            "proof": [
                {"hash": sibling.hex(), "position": position}
                for sibling, position in zip(self.siblings, self.positions)
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "MerkleProof":
        """Inverse of to_dict()."""
        steps = data.get("proof", [])
        return cls(
            leaf=bytes.fromhex(data["leaf"]),
            root=bytes.fromhex(data["root"]),
            siblings=[bytes.fromhex(step["hash"]) for step in steps],
            positions=[step["position"] for step in steps],
        )


@dataclass(frozen=True)
class RootRecord:
    """
    Merkle root of one Monero block as stored on Solana.

    Write-once: a second post for the same height is a no-op.
    """

    block_height: int
    root_hash: bytes
    timestamp: int
    output_count: int

    def __post_init__(self):
        _check_range("block_height", self.block_height, 0, U64_MAX)
        _check_digest("root_hash", self.root_hash)
        _check_range("timestamp", self.timestamp, I64_MIN, I64_MAX)
        _check_range("output_count", self.output_count, 0, U32_MAX)

    def to_dict(self) -> Dict:
        return {
            "block_height": self.block_height,
            "root_hash": self.root_hash.hex(),
            "timestamp": self.timestamp,
            "output_count": self.output_count,
        }


@dataclass(frozen=True)
class OracleState:
    """On-chain progress record of the oracle authority."""

    authority: bytes
    last_updated_block: int
    total_roots_posted: int

    def __post_init__(self):
        _check_digest("authority", self.authority)
        _check_range("last_updated_block", self.last_updated_block, 0, U64_MAX)
        _check_range("total_roots_posted", self.total_roots_posted, 0, U64_MAX)


@dataclass
class PostResult:
    """
    Outcome of posting a root record.

    posted is False when a record for the height already existed and no
    transaction was sent.
    """

    posted: bool
    block_height: int
    address: str
    signature: Optional[str] = None
