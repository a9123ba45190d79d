# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Entry point for running the oracle as a module.

Usage:
    python -m xmr_oracle run
    python -m xmr_oracle root 1948001
"""

from xmr_oracle.cli import main

if __name__ == "__main__":
    main()
