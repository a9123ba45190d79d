# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Tests for settings and keypair loading."""

import json

import pytest
from pydantic import ValidationError
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from xmr_oracle.config import Settings, load_authority_keypair
from xmr_oracle.errors import MissingCredentialsError


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.poll_interval_seconds == 60
    assert settings.retry_interval_seconds == 10
    assert settings.solana_commitment == "confirmed"
    assert settings.start_block_height == 0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MONERO_RPC_URL", "http://localhost:18081")
    monkeypatch.setenv("START_BLOCK_HEIGHT", "1948000")

    settings = Settings(_env_file=None)

    assert settings.monero_rpc_url == "http://localhost:18081"
    assert settings.start_block_height == 1948000


def test_env_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("POLL_INTERVAL_SECONDS=30\nRETRY_INTERVAL_SECONDS=5\n")

    settings = Settings(_env_file=env_file)

    assert settings.poll_interval_seconds == 30
    assert settings.retry_interval_seconds == 5


def test_retry_must_be_shorter_than_poll():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, poll_interval_seconds=10, retry_interval_seconds=10)


def test_invalid_commitment():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, solana_commitment="recent")


def test_program_id():
    program_id = Pubkey.new_unique()
    settings = Settings(_env_file=None, oracle_program_id=str(program_id))
    assert settings.program_id() == program_id


@pytest.mark.parametrize("value", ["", "not-a-key"])
def test_program_id_missing_or_invalid(value):
    settings = Settings(_env_file=None, oracle_program_id=value)
    with pytest.raises(MissingCredentialsError):
        settings.program_id()


def test_load_keypair(tmp_path):
    keypair = Keypair()
    path = tmp_path / "oracle.json"
    path.write_text(json.dumps(list(bytes(keypair))))

    loaded = load_authority_keypair(path)

    assert loaded.pubkey() == keypair.pubkey()


def test_load_missing_keypair(tmp_path):
    with pytest.raises(MissingCredentialsError):
        load_authority_keypair(tmp_path / "missing.json")


def test_load_malformed_keypair(tmp_path):
    path = tmp_path / "oracle.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(MissingCredentialsError):
        load_authority_keypair(path)
