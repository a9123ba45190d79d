# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Monero -> Solana oracle.

Commits every Monero block's outputs into a SHA-256 Merkle root and posts
the root to a write-once account of the oracle program on Solana.
"""

__version__ = "0.1.0"
