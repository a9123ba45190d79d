# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""HTTP status API."""

from xmr_oracle.api.app import create_app

__all__ = ["create_app"]
