# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Pytest configuration and fixtures."""

import pytest

from fakes import AUTHORITY, FakeDestination
from xmr_oracle.models import OracleState


@pytest.fixture
def initialized_destination() -> FakeDestination:
    """Destination whose oracle state says block 100 was the last posted."""
    return FakeDestination(
        OracleState(authority=AUTHORITY, last_updated_block=100, total_roots_posted=7)
    )
