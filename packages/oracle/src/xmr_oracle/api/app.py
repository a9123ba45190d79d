# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""FastAPI application exposing oracle status next to the sync loop."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI

from xmr_oracle import __version__
from xmr_oracle.api import status
from xmr_oracle.engine import DestinationLedger, OracleSyncEngine

logger = logging.getLogger(__name__)


def create_app(
    engine: OracleSyncEngine,
    destination: DestinationLedger,
    run_sync: bool = True,
    on_fault: Optional[Callable[[BaseException], None]] = None,
) -> FastAPI:
    """
    Build the status API.

    Args:
        engine: Sync engine whose state is reported
        destination: Oracle client used for on-chain lookups
        run_sync: Run the engine loop for the lifetime of the app
        on_fault: Called with the exception if the sync loop dies while the
            app is still running (the CLI uses it to stop the server)
    """

    def sync_finished(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.critical(f"Sync loop stopped with fatal error: {exc}")
        if on_fault is not None:
            on_fault(exc)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = asyncio.Event()
        sync_task = None

        if run_sync:
            logger.info("Starting sync loop in background")
            sync_task = asyncio.create_task(engine.start(stop_event))
            sync_task.add_done_callback(sync_finished)

        yield

        if sync_task is not None:
            logger.info("Shutting down sync loop")
            stop_event.set()
            # Errors are reported by sync_finished
            await asyncio.wait([sync_task])

    app = FastAPI(
        title="Monero->Solana Oracle",
        description="Status of the Monero Merkle-root oracle",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.destination = destination
    app.state.started_at = datetime.now(timezone.utc)

    app.include_router(status.router)

    @app.get("/")
    async def root():
        return {
            "service": "Monero->Solana Oracle",
            "version": __version__,
            "engine_state": engine.state.value,
        }

    return app
