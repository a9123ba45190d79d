# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Oracle status and root lookup endpoints."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Request, Response, status
from pydantic import BaseModel, Field
from solders.pubkey import Pubkey

from xmr_oracle.engine import EngineState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["status"])


class OracleStateResponse(BaseModel):
    authority: str
    last_updated_block: int
    total_roots_posted: int


class StatusResponse(BaseModel):
    engine_state: str
    last_processed_height: int
    last_error: Optional[str] = None
    oracle_state: Optional[OracleStateResponse] = None
    uptime: str


class RootResponse(BaseModel):
    block_height: int
    root_hash: str = Field(..., min_length=64, max_length=64)
    timestamp: int
    output_count: int


@router.get("/health")
async def health_check(request: Request, response: Response) -> dict:
    """Health check. 503 once the sync loop has faulted."""
    engine = request.app.state.engine
    if engine.state == EngineState.FAULTED:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "faulted", "error": engine.last_error}
    return {"status": "healthy"}


@router.get("/api/v1/status", response_model=StatusResponse)
async def get_status(request: Request) -> StatusResponse:
    """
    Sync engine state plus the persisted on-chain oracle state.

    The on-chain read is best effort: if Solana is unreachable the engine
    fields are still returned.
    """
    engine = request.app.state.engine
    destination = request.app.state.destination

    oracle_state = None
    try:
        persisted = await destination.get_oracle_state()
    except Exception as e:
        logger.warning(f"Could not read oracle state: {e}")
        persisted = None

    if persisted is not None:
        oracle_state = OracleStateResponse(
            authority=str(Pubkey.from_bytes(persisted.authority)),
            last_updated_block=persisted.last_updated_block,
            total_roots_posted=persisted.total_roots_posted,
        )

    uptime_seconds = (datetime.now(timezone.utc) - request.app.state.started_at).total_seconds()

    return StatusResponse(
        engine_state=engine.state.value,
        last_processed_height=engine.last_processed_height,
        last_error=engine.last_error,
        oracle_state=oracle_state,
        uptime=str(timedelta(seconds=int(uptime_seconds))),
    )


@router.get("/api/v1/roots/{block_height}", response_model=RootResponse)
async def get_root(
    request: Request,
    block_height: int = Path(..., ge=0, description="Monero block height"),
) -> RootResponse:
    """Merkle root posted for a Monero block."""
    record = await request.app.state.destination.get_root(block_height)

    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No Merkle root found for block {block_height}",
        )

    return RootResponse(
        block_height=record.block_height,
        root_hash=record.root_hash.hex(),
        timestamp=record.timestamp,
        output_count=record.output_count,
    )
