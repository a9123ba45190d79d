# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Minimal Solana JSON-RPC client.

Covers the handful of calls the oracle needs: reading account data,
building/signing/sending a transaction and waiting for confirmation.
Transactions are built and signed with solders; transport is httpx.
"""

import asyncio
import base64
import logging
import time
from typing import Any, List, Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from xmr_oracle.errors import (
    ConfirmationTimeoutError,
    RpcConnectionError,
    RpcProtocolError,
    TransactionFailedError,
)

logger = logging.getLogger(__name__)

COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")


class _RpcModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _RpcErrorBody(_RpcModel):
    code: int = 0
    message: str = ""


class _RpcEnvelope(_RpcModel):
    result: Any = None
    error: Optional[_RpcErrorBody] = None


class AccountInfo(_RpcModel):
    data: List[str] = Field(..., min_length=2)
    owner: str
    lamports: int = 0
    executable: bool = False


class _AccountInfoResult(_RpcModel):
    value: Optional[AccountInfo] = None


class _BlockhashValue(_RpcModel):
    blockhash: str
    lastValidBlockHeight: int = 0


class _BlockhashResult(_RpcModel):
    value: _BlockhashValue


class SignatureStatus(_RpcModel):
    slot: int = 0
    confirmations: Optional[int] = None
    err: Any = None
    confirmationStatus: Optional[str] = None


class _SignatureStatusesResult(_RpcModel):
    value: List[Optional[SignatureStatus]]


class SolanaRpcClient:
    """
    Async Solana JSON-RPC client.

    Example:
        >>> rpc = SolanaRpcClient("https://api.devnet.solana.com")
        >>> data = await rpc.get_account_data(address)
        >>> signature = await rpc.submit([instruction], authority)
    """

    def __init__(
        self,
        rpc_url: str = "https://api.devnet.solana.com",
        commitment: str = "confirmed",
        timeout: float = 30.0,
        confirm_timeout: float = 60.0,
        confirm_poll_interval: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Solana RPC client.

        Args:
            rpc_url: JSON-RPC endpoint
            commitment: Commitment level for reads and confirmation
            timeout: Per-request timeout in seconds
            confirm_timeout: How long submit() waits for confirmation
            confirm_poll_interval: Delay between signature status polls
            transport: Optional httpx transport (used by tests)
        """
        if commitment not in COMMITMENT_LEVELS:
            raise ValueError(f"commitment must be one of {COMMITMENT_LEVELS}, got {commitment!r}")

        self.rpc_url = rpc_url
        self.commitment = commitment
        self.confirm_timeout = confirm_timeout
        self.confirm_poll_interval = confirm_poll_interval
        self._request_id = 0
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: Optional[list] = None) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RpcProtocolError(
                f"Solana RPC {method} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise RpcConnectionError(f"Solana RPC request failed: {e}") from e

        try:
            envelope = _RpcEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RpcProtocolError(f"Malformed Solana RPC {method} response") from e

        if envelope.error is not None:
            raise RpcProtocolError(
                f"Solana RPC {method} failed: {envelope.error.message} (code {envelope.error.code})"
            )
        if envelope.result is None:
            raise RpcProtocolError(f"Solana RPC {method} returned no result")
        return envelope.result

    @staticmethod
    def _decode(model, data: Any, method: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RpcProtocolError(f"Malformed Solana RPC {method} result: {e}") from e

    async def get_account_info(self, address: Pubkey) -> Optional[AccountInfo]:
        """Account info, or None if the account does not exist."""
        result = await self._call(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": self.commitment}],
        )
        return self._decode(_AccountInfoResult, result, "getAccountInfo").value

    async def get_account_data(self, address: Pubkey) -> Optional[bytes]:
        """Raw account data, or None if the account does not exist."""
        info = await self.get_account_info(address)
        if info is None:
            return None

        encoded, encoding = info.data[0], info.data[1]
        if encoding != "base64":
            raise RpcProtocolError(f"Unexpected account data encoding {encoding!r}")
        try:
            return base64.b64decode(encoded, validate=True)
        except ValueError as e:
            raise RpcProtocolError(f"Invalid base64 account data for {address}") from e

    async def get_latest_blockhash(self) -> Hash:
        result = await self._call("getLatestBlockhash", [{"commitment": self.commitment}])
        value = self._decode(_BlockhashResult, result, "getLatestBlockhash").value
        try:
            return Hash.from_string(value.blockhash)
        except ValueError as e:
            raise RpcProtocolError(f"Invalid blockhash {value.blockhash!r}") from e

    async def send_transaction(self, transaction: Transaction) -> str:
        """Send a signed transaction; returns its signature (base58)."""
        encoded = base64.b64encode(bytes(transaction)).decode("ascii")
        result = await self._call(
            "sendTransaction",
            [encoded, {"encoding": "base64", "preflightCommitment": self.commitment}],
        )
        if not isinstance(result, str):
            raise RpcProtocolError(f"sendTransaction returned {type(result).__name__}, expected signature")
        return result

    async def get_signature_status(self, signature: str) -> Optional[SignatureStatus]:
        result = await self._call("getSignatureStatuses", [[signature]])
        statuses = self._decode(_SignatureStatusesResult, result, "getSignatureStatuses").value
        return statuses[0] if statuses else None

    def _is_committed(self, status: SignatureStatus) -> bool:
        if status.confirmationStatus is None:
            # Rooted transactions report no status string
            return status.confirmations is None
        wanted = COMMITMENT_LEVELS.index(self.commitment)
        return (
            status.confirmationStatus in COMMITMENT_LEVELS
            and COMMITMENT_LEVELS.index(status.confirmationStatus) >= wanted
        )

    async def confirm_transaction(self, signature: str) -> SignatureStatus:
        """
        Wait until signature reaches the configured commitment.

        Raises:
            TransactionFailedError: If the transaction landed with an error
            ConfirmationTimeoutError: If it was not confirmed in time
        """
        deadline = time.monotonic() + self.confirm_timeout

        while True:
            status = await self.get_signature_status(signature)
            if status is not None:
                if status.err is not None:
                    raise TransactionFailedError(f"Transaction {signature} failed: {status.err}")
                if self._is_committed(status):
                    return status

            if time.monotonic() >= deadline:
                raise ConfirmationTimeoutError(
                    f"Transaction {signature} not confirmed after {self.confirm_timeout}s"
                )
            await asyncio.sleep(self.confirm_poll_interval)

    async def submit(self, instructions: Sequence[Instruction], signer: Keypair) -> str:
        """
        Build, sign, send and confirm a transaction paid for by signer.

        Returns:
            Transaction signature (base58)
        """
        blockhash = await self.get_latest_blockhash()
        transaction = Transaction.new_signed_with_payer(
            list(instructions),
            signer.pubkey(),
            [signer],
            blockhash,
        )
        signature = await self.send_transaction(transaction)
        logger.debug(f"Sent transaction {signature}, waiting for {self.commitment}")
        await self.confirm_transaction(signature)
        return signature
