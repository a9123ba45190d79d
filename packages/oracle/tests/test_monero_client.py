# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Tests for the Monero daemon client using a mocked HTTP transport."""

import asyncio
import json

import httpx
import pytest

from xmr_oracle.errors import (
    IndexOutOfRangeError,
    RpcConnectionError,
    RpcProtocolError,
    TransactionNotFoundError,
)
from xmr_oracle.source import MoneroClient

BLOCK_HASH = "cd" * 32


def tx_hash(n: int) -> str:
    return f"{n:064x}"


def tx_json(n: int, outputs: int = 2, tagged: bool = False) -> str:
    vout = []
    for i in range(outputs):
        key = f"{n:02x}{i:02x}" + "aa" * 30
        target = {"tagged_key": {"key": key, "view_tag": "7f"}} if tagged else {"key": key}
        vout.append({"amount": 0, "target": target})
    return json.dumps({
        "version": 2,
        "vout": vout,
        "rct_signatures": {
            "type": 6,
            "outPk": [f"{n:02x}{i:02x}" + "bb" * 30 for i in range(outputs)],
            "ecdhInfo": [{"amount": f"{n:08x}{i:08x}"} for i in range(outputs)],
        },
    })


class FakeDaemon:
    """Minimal monerod answering get_block_count, get_block and /get_transactions."""

    def __init__(self, height=1948001, txs=None, delays=None, tagged=False):
        self.height = height
        self.txs = txs if txs is not None else {tx_hash(1): 2, tx_hash(2): 3}
        self.delays = delays or {}
        self.tagged = tagged
        self.requests = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append((request.url.path, body))

        if request.url.path == "/json_rpc":
            method = body["method"]
            if method == "get_block_count":
                return self.rpc_result({"count": self.height + 1, "status": "OK"})
            if method == "get_block":
                return self.rpc_result({
                    "block_header": {
                        "height": body["params"]["height"],
                        "hash": BLOCK_HASH,
                        "timestamp": 1_700_000_000,
                    },
                    "json": json.dumps({"tx_hashes": list(self.txs)}),
                    "status": "OK",
                })
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": "0",
                                             "error": {"code": -32601, "message": "Method not found"}})

        if request.url.path == "/get_transactions":
            requested = body["txs_hashes"][0]
            await asyncio.sleep(self.delays.get(requested, 0))
            if requested not in self.txs:
                return httpx.Response(200, json={"status": "OK", "missed_tx": [requested]})
            return httpx.Response(200, json={
                "status": "OK",
                "txs": [{
                    "tx_hash": requested,
                    "block_height": self.height,
                    "block_timestamp": 1_700_000_000,
                    "in_pool": False,
                    "as_json": tx_json(int(requested, 16), self.txs[requested], self.tagged),
                }],
            })

        return httpx.Response(404)

    @staticmethod
    def rpc_result(result):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": "0", "result": result})


def make_client(handler, **kwargs) -> MoneroClient:
    return MoneroClient("http://monerod.test", transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_current_height_is_count_minus_one():
    daemon = FakeDaemon(height=1948001)
    async with make_client(daemon) as client:
        assert await client.current_height() == 1948001

    path, body = daemon.requests[0]
    assert path == "/json_rpc"
    assert body["method"] == "get_block_count"
    assert body["jsonrpc"] == "2.0"


@pytest.mark.asyncio
async def test_block_metadata():
    async with make_client(FakeDaemon()) as client:
        block = await client.block_metadata(100)

    assert block.height == 100
    assert block.hash == BLOCK_HASH
    assert block.timestamp == 1_700_000_000
    assert block.tx_hashes == (tx_hash(1), tx_hash(2))


@pytest.mark.asyncio
async def test_outputs_for_block_mapping():
    async with make_client(FakeDaemon()) as client:
        outputs = await client.outputs_for_block(100)

    assert len(outputs) == 5
    first = outputs[0]
    assert first.tx_hash == tx_hash(1)
    assert first.output_index == 0
    assert first.amount == "0"
    assert first.stealth_address == "0100" + "aa" * 30
    assert first.one_time_address == "0100" + "bb" * 30
    assert first.ecdh_amount == "0000000100000000"
    assert first.ecdh_mask == "0"
    assert first.block_height == 1948001


@pytest.mark.asyncio
async def test_outputs_keep_block_order_under_concurrency():
    """The first transaction answers last; outputs still follow block order."""
    daemon = FakeDaemon(
        txs={tx_hash(1): 2, tx_hash(2): 1, tx_hash(3): 2},
        delays={tx_hash(1): 0.05, tx_hash(2): 0.02},
    )
    async with make_client(daemon, max_concurrency=3) as client:
        outputs = await client.outputs_for_block(100)

    assert [o.key for o in outputs] == [
        (tx_hash(1), 0),
        (tx_hash(1), 1),
        (tx_hash(2), 0),
        (tx_hash(3), 0),
        (tx_hash(3), 1),
    ]


@pytest.mark.asyncio
async def test_tagged_key_target():
    async with make_client(FakeDaemon(tagged=True)) as client:
        outputs = await client.outputs_for_block(100)

    assert outputs[0].stealth_address == "0100" + "aa" * 30


@pytest.mark.asyncio
async def test_empty_block_has_no_outputs():
    daemon = FakeDaemon(txs={})
    async with make_client(daemon) as client:
        assert await client.outputs_for_block(100) == []

    assert all(path == "/json_rpc" for path, _ in daemon.requests)


@pytest.mark.asyncio
async def test_get_output():
    async with make_client(FakeDaemon()) as client:
        output = await client.get_output(tx_hash(2), 2)
        assert output.key == (tx_hash(2), 2)

        with pytest.raises(IndexOutOfRangeError):
            await client.get_output(tx_hash(2), 3)


@pytest.mark.asyncio
async def test_transaction_not_found():
    async with make_client(FakeDaemon()) as client:
        with pytest.raises(TransactionNotFoundError):
            await client.get_transaction(tx_hash(99))


@pytest.mark.asyncio
async def test_rpc_error_envelope():
    def handler(request):
        return httpx.Response(200, json={
            "jsonrpc": "2.0", "id": "0",
            "error": {"code": -2, "message": "Requested block height too big"},
        })

    async with make_client(handler) as client:
        with pytest.raises(RpcProtocolError, match="RPC Error: Requested block height too big"):
            await client.block_metadata(10**9)


@pytest.mark.asyncio
async def test_http_error_status():
    async with make_client(lambda request: httpx.Response(500)) as client:
        with pytest.raises(RpcProtocolError, match="HTTP 500"):
            await client.current_height()


@pytest.mark.asyncio
async def test_invalid_json():
    async with make_client(lambda request: httpx.Response(200, content=b"<html>")) as client:
        with pytest.raises(RpcProtocolError):
            await client.current_height()


@pytest.mark.asyncio
async def test_malformed_result():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": "0", "result": {"status": "OK"}})

    async with make_client(handler) as client:
        with pytest.raises(RpcProtocolError, match="Malformed"):
            await client.current_height()


@pytest.mark.asyncio
async def test_non_ok_status():
    def handler(request):
        return FakeDaemon.rpc_result({"count": 10, "status": "BUSY"})

    async with make_client(handler) as client:
        with pytest.raises(RpcProtocolError, match="BUSY"):
            await client.current_height()


@pytest.mark.asyncio
async def test_block_height_mismatch():
    def handler(request):
        return FakeDaemon.rpc_result({
            "block_header": {"height": 5, "hash": BLOCK_HASH, "timestamp": 0},
            "json": "{}",
            "status": "OK",
        })

    async with make_client(handler) as client:
        with pytest.raises(RpcProtocolError):
            await client.block_metadata(6)


@pytest.mark.asyncio
async def test_vout_without_key_rejected():
    def handler(request):
        return httpx.Response(200, json={
            "status": "OK",
            "txs": [{
                "tx_hash": tx_hash(1),
                "block_height": 1,
                "as_json": json.dumps({"vout": [{"amount": 0, "target": {}}]}),
            }],
        })

    async with make_client(handler) as client:
        with pytest.raises(RpcProtocolError):
            await client.get_transaction(tx_hash(1))


@pytest.mark.asyncio
async def test_missing_rct_fields_default():
    def handler(request):
        return httpx.Response(200, json={
            "status": "OK",
            "txs": [{
                "tx_hash": tx_hash(1),
                "block_height": 1,
                "as_json": json.dumps({"vout": [{"amount": 5, "target": {"key": "ab" * 32}}]}),
            }],
        })

    async with make_client(handler) as client:
        tx = await client.get_transaction(tx_hash(1))

    output = tx.outputs[0]
    assert output.amount == "5"
    assert output.one_time_address == ""
    assert output.ecdh_amount == "0"


@pytest.mark.asyncio
async def test_connection_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler) as client:
        with pytest.raises(RpcConnectionError):
            await client.current_height()
        assert await client.is_reachable() is False


@pytest.mark.asyncio
async def test_is_reachable():
    async with make_client(FakeDaemon()) as client:
        assert await client.is_reachable() is True


@pytest.mark.asyncio
async def test_failed_fetch_cancels_remaining_fetches():
    daemon = FakeDaemon(
        txs={tx_hash(1): 1, tx_hash(2): 1, tx_hash(3): 1},
        delays={tx_hash(2): 0.1, tx_hash(3): 0.1},
    )
    completed = []

    async def handler(request):
        if request.url.path == "/get_transactions":
            requested = json.loads(request.content)["txs_hashes"][0]
            if requested == tx_hash(1):
                return httpx.Response(500)
            response = await daemon(request)
            completed.append(requested)
            return response
        return await daemon(request)

    async with make_client(handler) as client:
        with pytest.raises(RpcProtocolError):
            await client.outputs_for_block(100)
        await asyncio.sleep(0.2)

    assert completed == []
