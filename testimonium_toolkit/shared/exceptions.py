"""
Exception hierarchy for the Testimonium Toolkit.

Exception Categories:
- RetryableException: Transient failures that may succeed if the caller
  runs the operation again (unreachable RPC, receipt not yet mined)
- NonRetryableException: Permanent failures that won't change on a second
  run (malformed data, proofs that do not match, reverted transactions)
- ConfigurationException: Startup/config errors that prevent operation

The toolkit itself never retries: every exception aborts the current
operation and is surfaced to the caller, who decides what to do with it.
Each exception carries a ``context`` dict (block hash, tx hash, chain id)
to make the failure diagnosable.
"""

from typing import Any, Dict, Optional


class RetryableException(Exception):
    """
    Base class for exceptions that may succeed on a later attempt.

    Use for transient failures like:
    - RPC endpoint unreachable
    - Transaction still pending
    - Receipt not observed in time
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from another attempt.

    Use for permanent failures like:
    - Invalid or malformed chain data
    - Proofs that do not hash to the expected root
    - Contract reverts and ABI mismatches
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - Required environment variables are missing
    - A chain id has no RPC URL or contract address configured
    - No private key is available for a write operation
    """

    pass


# =============================================================================
# REMOTE FAILURES
# =============================================================================


class RemoteUnavailableError(RetryableException):
    """Raised when a chain's RPC endpoint cannot be reached."""

    pass


class DecodeError(NonRetryableException):
    """
    Raised when data returned by a chain cannot be encoded or decoded.

    Covers truncated call data, unsupported transaction types and any other
    structure the toolkit does not understand.
    """

    pass


class MalformedHeaderError(DecodeError):
    """Raised when bytes do not decode to a 15-field block header."""

    pass


# =============================================================================
# EVENT REPLAY
# =============================================================================


class PendingTransactionError(RetryableException):
    """
    Raised when the transaction that submitted a header is still pending.

    Its inclusion cannot be trusted until it is mined.
    """

    pass


class SignatureMismatchError(NonRetryableException):
    """
    Raised when submission call data does not start with the expected selector.

    This means the assumptions about the contract ABI are outdated.
    """

    pass


class NoSubmissionFoundError(NonRetryableException):
    """Raised when no SubmitHeader event matches the requested block hash."""

    pass


# =============================================================================
# PROOFS
# =============================================================================


class TrieInconsistencyError(NonRetryableException):
    """
    Raised when a rebuilt trie does not match the block it was built from.

    Either the root differs from the header's stored root or no leaf exists
    at the computed path. Both mean the fetched block data is inconsistent.
    """

    pass


class InvalidProofError(NonRetryableException):
    """Raised when a Merkle proof does not re-walk to its root and value."""

    pass


class DatasetUnavailableError(NonRetryableException):
    """Raised when no ethash dataset metadata is available for a header."""

    pass


# =============================================================================
# TRANSACTIONS
# =============================================================================


class ReceiptTimeoutError(RetryableException):
    """Raised when no receipt is observed before the receipt timeout."""

    pass


class TransactionRevertedError(NonRetryableException):
    """Raised when a submitted transaction reverts."""

    def __init__(
        self,
        reason: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"Transaction reverted: {reason}", context)
        self.reason = reason


class EventNotFoundError(NonRetryableException):
    """
    Raised when a successful transaction did not emit the expected event.

    Signals an inconsistency between contract semantics and client
    expectations.
    """

    pass
