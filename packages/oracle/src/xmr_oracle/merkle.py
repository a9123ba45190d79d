# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Merkle tree commitment over a block's transaction outputs.

Pairs are sorted byte-wise before hashing, so combine(a, b) == combine(b, a).
A consequence is that proofs do not bind a leaf to its position: two equal
subtrees at different positions verify the same way. This matches the
on-chain verifier and must not be changed independently of it.
"""

import hashlib
import json
from typing import List, Sequence

from xmr_oracle.errors import EmptyInputError, IndexOutOfRangeError, OutputNotFoundError
from xmr_oracle.models import HASH_SIZE, MerkleProof, Output


def sha256(data: bytes) -> bytes:
    """SHA-256 digest of data."""
    return hashlib.sha256(data).digest()


def combine(left: bytes, right: bytes) -> bytes:
    """Parent hash of two nodes: H(min(a, b) || max(a, b))."""
    if left <= right:
        return sha256(left + right)
    return sha256(right + left)


def serialize_output(output: Output) -> bytes:
    """
    Canonical byte encoding of an output for leaf hashing.

    Compact JSON with a fixed key order. Amount mask and raw amount are not
    part of the commitment.
    """
    data = {
        "txHash": output.tx_hash,
        "outputIndex": output.output_index,
        "stealthAddress": output.stealth_address,
        "oneTimeAddress": output.one_time_address,
        "ecdhAmount": output.ecdh_amount,
    }
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def leaf_hash(output: Output) -> bytes:
    """32-byte leaf committing to one output."""
    return sha256(serialize_output(output))


class MerkleTree:
    """
    Binary hash tree over an ordered, non-empty list of 32-byte leaves.

    Built once in the constructor and never mutated afterwards. An odd-sized
    layer pairs its last node with itself.
    """

    def __init__(self, leaves: Sequence[bytes]):
        """
        Build the tree.

        Args:
            leaves: Ordered leaf digests (each 32 bytes)

        Raises:
            EmptyInputError: If leaves is empty
            ValueError: If a leaf is not 32 bytes
        """
        if not leaves:
            raise EmptyInputError("Cannot create Merkle tree with no leaves")

        for i, leaf in enumerate(leaves):
            if not isinstance(leaf, (bytes, bytearray)) or len(leaf) != HASH_SIZE:
                raise ValueError(f"leaf {i} must be {HASH_SIZE} bytes")

        self._leaves: List[bytes] = [bytes(leaf) for leaf in leaves]
        self._layers: List[List[bytes]] = self._build_layers(self._leaves)

    @staticmethod
    def _build_layers(leaves: List[bytes]) -> List[List[bytes]]:
        layers = [leaves]

        current_layer = leaves
        while len(current_layer) > 1:
            next_layer = []
            for i in range(0, len(current_layer), 2):
                left = current_layer[i]
                # Duplicate the last node of an odd layer
                right = current_layer[i + 1] if i + 1 < len(current_layer) else left
                next_layer.append(combine(left, right))
            layers.append(next_layer)
            current_layer = next_layer

        return layers

    @property
    def root(self) -> bytes:
        return self._layers[-1][0]

    def get_root(self) -> bytes:
        """Root digest of the tree."""
        return self.root

    @property
    def leaves(self) -> List[bytes]:
        return list(self._leaves)

    @property
    def depth(self) -> int:
        """Number of hashing layers above the leaves."""
        return len(self._layers) - 1

    def get_leaf_count(self) -> int:
        return len(self._leaves)

    def get_proof(self, index: int) -> MerkleProof:
        """
        Inclusion proof for the leaf at index.

        Args:
            index: Leaf position (0-indexed)

        Returns:
            MerkleProof with one sibling per layer, leaf to root

        Raises:
            IndexOutOfRangeError: If index is not a valid leaf position
        """
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._leaves):
            raise IndexOutOfRangeError(f"Invalid leaf index: {index}")

        siblings: List[bytes] = []
        positions: List[str] = []
        current_index = index

        for layer in self._layers[:-1]:
            is_right = current_index % 2 == 1
            sibling_index = current_index - 1 if is_right else current_index + 1

            if sibling_index < len(layer):
                siblings.append(layer[sibling_index])
            else:
                # Last node of an odd layer was paired with itself
                siblings.append(layer[current_index])
            positions.append("right" if is_right else "left")

            current_index //= 2

        return MerkleProof(
            leaf=self._leaves[index],
            root=self.root,
            siblings=siblings,
            positions=positions,
        )

    @staticmethod
    def verify(proof: MerkleProof) -> bool:
        """
        Check that proof.leaf folds up to proof.root.

        Positions are ignored: pairs are sorted before hashing.
        """
        current = proof.leaf
        for sibling in proof.siblings:
            current = combine(current, sibling)
        return current == proof.root

    def __len__(self) -> int:
        return len(self._leaves)

    def __repr__(self) -> str:
        return f"MerkleTree(leaves={len(self._leaves)}, root={self.root.hex()[:16]}...)"


class MerkleTreeBuilder:
    """Builds MerkleTrees from Monero outputs."""

    def build_from_outputs(self, outputs: Sequence[Output]) -> MerkleTree:
        """
        Hash each output into a leaf and build the tree.

        Leaf order follows outputs order, which must be block transaction
        order then output index.

        Raises:
            EmptyInputError: If outputs is empty
        """
        if not outputs:
            raise EmptyInputError("Cannot build Merkle tree from empty outputs")

        return MerkleTree([leaf_hash(output) for output in outputs])

    def get_proof_for_output(self, outputs: Sequence[Output], target: Output) -> MerkleProof:
        """
        Inclusion proof for target within the tree built from outputs.

        Outputs are matched on (tx_hash, output_index).

        Raises:
            OutputNotFoundError: If target is not in outputs
        """
        tree = self.build_from_outputs(outputs)

        for index, output in enumerate(outputs):
            if output.key == target.key:
                return tree.get_proof(index)

        raise OutputNotFoundError(
            f"Output {target.tx_hash}:{target.output_index} not found in list"
        )
