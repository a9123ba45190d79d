# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Destination chain (Solana) access."""

from xmr_oracle.destination.oracle_client import OracleClient
from xmr_oracle.destination.solana_rpc import SolanaRpcClient

__all__ = ["OracleClient", "SolanaRpcClient"]
