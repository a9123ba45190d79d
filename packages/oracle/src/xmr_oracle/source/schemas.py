# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Pydantic schemas for Monero daemon RPC responses."""

import json
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RpcModel(BaseModel):
    """Base model: unknown fields from the daemon are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class JsonRpcErrorBody(RpcModel):
    code: int = 0
    message: str = ""


class JsonRpcResponse(RpcModel):
    """JSON-RPC 2.0 envelope."""

    result: Optional[Any] = None
    error: Optional[JsonRpcErrorBody] = None

    @model_validator(mode="after")
    def check_result_or_error(self) -> "JsonRpcResponse":
        if self.result is None and self.error is None:
            raise ValueError("response has neither result nor error")
        return self


class StatusResult(RpcModel):
    """Daemon results carry a status string, "OK" on success."""

    status: str = "OK"


class BlockCountResult(StatusResult):
    count: int = Field(..., ge=1)


class BlockHeader(RpcModel):
    height: int = Field(..., ge=0)
    hash: str = Field(..., min_length=64, max_length=64)
    timestamp: int


class BlockBody(RpcModel):
    """Embedded JSON block body (the "json" field of get_block)."""

    tx_hashes: List[str] = Field(default_factory=list)


class GetBlockResult(StatusResult):
    block_header: BlockHeader
    body: BlockBody = Field(..., alias="json")

    @field_validator("body", mode="before")
    @classmethod
    def parse_body(cls, v: Any) -> Any:
        """The daemon returns the block body as a JSON string."""
        if isinstance(v, str):
            return json.loads(v)
        return v


class TaggedKey(RpcModel):
    key: str
    view_tag: Optional[str] = None


class VoutTarget(RpcModel):
    """Output target: "key" before v15, "tagged_key" after view tags."""

    key: Optional[str] = None
    tagged_key: Optional[TaggedKey] = None

    @model_validator(mode="after")
    def check_key(self) -> "VoutTarget":
        if self.key is None and self.tagged_key is None:
            raise ValueError("vout target has no key")
        return self

    @property
    def public_key(self) -> str:
        if self.key is not None:
            return self.key
        return self.tagged_key.key


class Vout(RpcModel):
    amount: int = 0
    target: VoutTarget


class EcdhInfo(RpcModel):
    amount: str = "0"
    mask: str = "0"


class RctSignatures(RpcModel):
    type: int = 0
    outPk: List[str] = Field(default_factory=list)
    ecdhInfo: List[EcdhInfo] = Field(default_factory=list)


class TransactionBody(RpcModel):
    """Decoded transaction JSON (the "as_json" field of get_transactions)."""

    vout: List[Vout]
    rct_signatures: Optional[RctSignatures] = None


class TransactionEntry(RpcModel):
    tx_hash: str
    block_height: int = Field(..., ge=0)
    block_timestamp: int = 0
    in_pool: bool = False
    body: TransactionBody = Field(..., alias="as_json")

    @field_validator("body", mode="before")
    @classmethod
    def parse_body(cls, v: Any) -> Any:
        if isinstance(v, str):
            return json.loads(v)
        return v


class GetTransactionsResult(StatusResult):
    txs: List[TransactionEntry] = Field(default_factory=list)
    missed_tx: List[str] = Field(default_factory=list)
