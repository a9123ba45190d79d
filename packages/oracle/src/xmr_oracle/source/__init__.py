# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Source chain (Monero) access."""

from xmr_oracle.source.monero_client import MoneroClient

__all__ = ["MoneroClient"]
