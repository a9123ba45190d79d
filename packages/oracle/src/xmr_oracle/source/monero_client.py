# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Monero daemon client.

Reads block heights, blocks and transaction outputs over the daemon's HTTP
RPC. Every response is decoded through the schemas in
xmr_oracle.source.schemas; anything malformed raises RpcProtocolError
instead of flowing into leaf hashing.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from xmr_oracle.errors import (
    IndexOutOfRangeError,
    RpcConnectionError,
    RpcProtocolError,
    TransactionNotFoundError,
)
from xmr_oracle.models import Block, Output, Transaction
from xmr_oracle.source.schemas import (
    BlockCountResult,
    GetBlockResult,
    GetTransactionsResult,
    JsonRpcResponse,
    TransactionEntry,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _decode(model: Type[ModelT], data: Any, context: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RpcProtocolError(f"Malformed {context} response: {e}") from e


def _outputs_from_entry(entry: TransactionEntry) -> List[Output]:
    """Map a decoded transaction's vouts to Outputs in vout order."""
    rct = entry.body.rct_signatures
    out_pk = rct.outPk if rct else []
    ecdh_info = rct.ecdhInfo if rct else []

    outputs = []
    for index, vout in enumerate(entry.body.vout):
        ecdh = ecdh_info[index] if index < len(ecdh_info) else None
        outputs.append(
            Output(
                tx_hash=entry.tx_hash,
                output_index=index,
                amount=str(vout.amount),
                stealth_address=vout.target.public_key,
                one_time_address=out_pk[index] if index < len(out_pk) else "",
                ecdh_amount=ecdh.amount if ecdh else "0",
                ecdh_mask=ecdh.mask if ecdh else "0",
                block_height=entry.block_height,
            )
        )
    return outputs


class MoneroClient:
    """
    Async client for a Monero daemon (monerod).

    Example:
        >>> client = MoneroClient("http://node.monerodevs.org:38089")
        >>> height = await client.current_height()
        >>> outputs = await client.outputs_for_block(height)
    """

    def __init__(
        self,
        rpc_url: str = "http://node.monerodevs.org:38089",
        timeout: float = 30.0,
        max_concurrency: int = 8,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Monero client.

        Args:
            rpc_url: Base URL of the daemon RPC
            timeout: Per-request timeout in seconds
            max_concurrency: Maximum parallel transaction fetches per block
            transport: Optional httpx transport (used by tests)
        """
        self.rpc_url = rpc_url
        self.max_concurrency = max_concurrency
        self._client = httpx.AsyncClient(
            base_url=rpc_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "MoneroClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        try:
            response = await self._client.post(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RpcProtocolError(
                f"Monero RPC {path} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise RpcConnectionError(f"Monero RPC request failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise RpcProtocolError(f"Monero RPC {path} returned invalid JSON") from e

    async def _rpc_call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a /json_rpc method and return its result object."""
        data = await self._post(
            "/json_rpc",
            {"jsonrpc": "2.0", "id": "0", "method": method, "params": params or {}},
        )
        envelope = _decode(JsonRpcResponse, data, method)

        if envelope.error is not None:
            raise RpcProtocolError(
                f"RPC Error: {envelope.error.message} (code {envelope.error.code})"
            )
        return envelope.result

    @staticmethod
    def _check_status(status: str, method: str) -> None:
        if status != "OK":
            raise RpcProtocolError(f"Monero RPC {method} returned status {status!r}")

    async def current_height(self) -> int:
        """Height of the chain tip (block count - 1)."""
        result = _decode(BlockCountResult, await self._rpc_call("get_block_count"), "get_block_count")
        self._check_status(result.status, "get_block_count")
        return result.count - 1

    async def block_metadata(self, height: int) -> Block:
        """
        Fetch a block header and its transaction hashes.

        Args:
            height: Block height

        Returns:
            Block with tx_hashes in block order (coinbase excluded)
        """
        result = _decode(
            GetBlockResult,
            await self._rpc_call("get_block", {"height": height}),
            "get_block",
        )
        self._check_status(result.status, "get_block")

        header = result.block_header
        if header.height != height:
            raise RpcProtocolError(f"Requested block {height}, daemon returned {header.height}")

        return Block(
            height=header.height,
            hash=header.hash,
            timestamp=header.timestamp,
            tx_hashes=tuple(result.body.tx_hashes),
        )

    async def get_transaction(self, tx_hash: str) -> Transaction:
        """
        Fetch and decode one transaction.

        Raises:
            TransactionNotFoundError: If the daemon does not know tx_hash
        """
        data = await self._post(
            "/get_transactions",
            {"txs_hashes": [tx_hash], "decode_as_json": True},
        )
        result = _decode(GetTransactionsResult, data, "get_transactions")
        self._check_status(result.status, "get_transactions")

        entry = next((tx for tx in result.txs if tx.tx_hash == tx_hash), None)
        if entry is None:
            raise TransactionNotFoundError(f"Transaction not found: {tx_hash}")

        return Transaction(
            hash=tx_hash,
            block_height=entry.block_height,
            timestamp=entry.block_timestamp,
            outputs=_outputs_from_entry(entry),
        )

    async def outputs_for_block(self, height: int) -> List[Output]:
        """
        All outputs of the block's transactions.

        Transactions are fetched concurrently; the result is ordered by
        transaction position in the block, then output index, so repeated
        calls for the same height yield the same leaf order.
        """
        block = await self.block_metadata(height)
        if not block.tx_hashes:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch(tx_hash: str) -> Transaction:
            async with semaphore:
                return await self.get_transaction(tx_hash)

        tasks = [asyncio.create_task(fetch(h)) for h in block.tx_hashes]
        try:
            transactions = await asyncio.gather(*tasks)
        except BaseException:
            # One fetch failed (or we were cancelled): drop the rest before re-raising
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        outputs: List[Output] = []
        for tx in transactions:
            outputs.extend(tx.outputs)

        logger.debug(f"Block {height}: {len(transactions)} transactions, {len(outputs)} outputs")
        return outputs

    async def get_output(self, tx_hash: str, output_index: int) -> Output:
        """
        Fetch a single output by transaction hash and index.

        Raises:
            IndexOutOfRangeError: If output_index is beyond the transaction's outputs
        """
        tx = await self.get_transaction(tx_hash)
        if not 0 <= output_index < len(tx.outputs):
            raise IndexOutOfRangeError(f"Output index {output_index} out of range for tx {tx_hash}")
        return tx.outputs[output_index]

    async def is_reachable(self) -> bool:
        """Liveness probe. Never raises."""
        try:
            await self.current_height()
            return True
        except Exception as e:
            logger.warning(f"Monero node at {self.rpc_url} unreachable: {e}")
            return False
