# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Exception hierarchy for the Monero -> Solana oracle.

Errors fall into three groups:

- Merkle errors: bad input to the tree builder. Always fatal to the call.
- RPC errors: transient failures talking to either chain. The sync loop
  logs them and retries after a backoff.
- Configuration errors: missing credentials or an uninitialized oracle
  account. These stop the service so an operator has to intervene.
"""


class OracleError(Exception):
    """Base class for all oracle errors."""


# Merkle tree

class MerkleError(OracleError):
    """Invalid input to the Merkle tree."""


class EmptyInputError(MerkleError):
    """A Merkle tree was requested over zero leaves."""


class IndexOutOfRangeError(MerkleError, IndexError):
    """A proof was requested for a leaf position that does not exist."""


class OutputNotFoundError(MerkleError):
    """The requested output is not part of the block's output set."""


# RPC

class RpcError(OracleError):
    """Failure talking to a chain node."""


class RpcProtocolError(RpcError):
    """The node answered with an error or a malformed response."""


class RpcConnectionError(RpcError):
    """The node could not be reached or the request timed out."""


class TransactionNotFoundError(RpcProtocolError):
    """The Monero daemon does not know the requested transaction."""


class TransactionFailedError(RpcProtocolError):
    """A Solana transaction landed but the program returned an error."""


class ConfirmationTimeoutError(RpcError):
    """
    A Solana transaction was sent but not confirmed in time.

    The outcome is unknown: the transaction may still land. Callers retry
    through the idempotency check rather than assuming failure.
    """


class SourceUnreachableError(OracleError):
    """The Monero node did not answer the startup liveness probe."""


class AlreadyInitializedError(OracleError):
    """The on-chain oracle state account already exists."""


# Configuration (fatal)

class ConfigurationError(OracleError):
    """Unrecoverable configuration problem; the service must stop."""


class NotInitializedError(ConfigurationError):
    """The on-chain oracle state account does not exist yet."""


class MissingCredentialsError(ConfigurationError):
    """The authority keypair or program id is missing or unreadable."""


class AuthorityMismatchError(ConfigurationError):
    """The configured keypair is not the authority recorded on-chain."""
