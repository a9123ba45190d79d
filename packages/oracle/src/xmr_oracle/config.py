# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Configuration management for the Monero -> Solana oracle."""

import json
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from xmr_oracle.errors import MissingCredentialsError


class Settings(BaseSettings):
    """Oracle settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Monero (source chain)
    monero_rpc_url: str = Field(
        default="https://stagenet.xmr.ditatompel.com", description="Monero daemon RPC URL"
    )
    source_max_concurrency: int = Field(
        default=8, ge=1, description="Parallel transaction fetches per block"
    )

    # Solana (destination chain)
    solana_rpc_url: str = Field(
        default="https://api.devnet.solana.com", description="Solana JSON-RPC URL"
    )
    solana_commitment: Literal["processed", "confirmed", "finalized"] = "confirmed"
    oracle_keypair_path: str = Field(
        default="../keypair/oracle.json", description="Solana JSON keypair of the oracle authority"
    )
    oracle_program_id: str = Field(default="", description="Oracle program id (base58)")
    confirm_timeout_seconds: float = Field(
        default=60.0, gt=0, description="How long to wait for a transaction to confirm"
    )

    # Sync loop
    start_block_height: int = Field(
        default=0, ge=0, description="Height to resume after when nothing is persisted"
    )
    poll_interval_seconds: float = Field(
        default=60.0, gt=0, description="Sleep between polls once caught up"
    )
    retry_interval_seconds: float = Field(
        default=10.0, gt=0, description="Backoff after a failed loop iteration"
    )
    rpc_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request RPC timeout")

    # Status API
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Logging
    log_level: str = "INFO"

    @model_validator(mode="after")
    def check_intervals(self) -> "Settings":
        """The error backoff must be shorter than the steady-state poll."""
        if self.retry_interval_seconds >= self.poll_interval_seconds:
            raise ValueError(
                f"retry_interval_seconds ({self.retry_interval_seconds}) must be "
                f"shorter than poll_interval_seconds ({self.poll_interval_seconds})"
            )
        return self

    def program_id(self) -> Pubkey:
        """
        Parse the configured program id.

        Raises:
            MissingCredentialsError: If unset or not a valid base58 key
        """
        if not self.oracle_program_id:
            raise MissingCredentialsError("ORACLE_PROGRAM_ID is not set")
        try:
            return Pubkey.from_string(self.oracle_program_id)
        except ValueError as e:
            raise MissingCredentialsError(
                f"ORACLE_PROGRAM_ID is not a valid public key: {self.oracle_program_id}"
            ) from e


def load_authority_keypair(path: Path) -> Keypair:
    """
    Load a Solana CLI keypair file (JSON array of 64 integers).

    Raises:
        MissingCredentialsError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.exists():
        raise MissingCredentialsError(f"Authority keypair not found at {path}")

    try:
        with open(path, "r") as f:
            secret = json.load(f)
        return Keypair.from_bytes(bytes(secret))
    except (ValueError, TypeError) as e:
        raise MissingCredentialsError(f"Invalid authority keypair at {path}: {e}") from e
