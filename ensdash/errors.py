"""
Error taxonomy.

The chain gateway and subgraph client raise these; the registrar, directory
and record editor catch them and hand results back as values.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AVAILABILITY = "availability"
    TX_REJECTED = "tx_rejected"
    TX_REVERTED = "tx_reverted"
    INDEX = "index"
    CHAIN_READ = "chain_read"


class RevertReason(str, Enum):
    PREMATURE_REVEAL = "premature_reveal"
    INSUFFICIENT_PAYMENT = "insufficient_payment"
    COMMITMENT_MISMATCH = "commitment_mismatch"
    NAME_UNAVAILABLE = "name_unavailable"
    DUPLICATE_COMMITMENT = "duplicate_commitment"
    UNKNOWN = "unknown"


class EnsDashError(Exception):
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EnsDashError):
    """Bad local input (label, address, confirmation text). No chain call was made."""

    kind = ErrorKind.VALIDATION


class AvailabilityError(EnsDashError):
    kind = ErrorKind.AVAILABILITY


class ChainReadError(EnsDashError):
    """A view/pure contract call failed (RPC down, wrong chain, bad args)."""

    kind = ErrorKind.CHAIN_READ


class TransactionRejected(EnsDashError):
    """The wallet refused to sign or the node refused to accept the transaction."""

    kind = ErrorKind.TX_REJECTED


class TransactionReverted(EnsDashError):
    """The chain executed and rejected the transaction (or its gas estimate)."""

    kind = ErrorKind.TX_REVERTED

    def __init__(
        self,
        message: str,
        revert_reason: RevertReason = RevertReason.UNKNOWN,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(message)
        self.revert_reason = revert_reason
        self.tx_hash = tx_hash


class SubgraphError(EnsDashError):
    """Subgraph unreachable or returned something we cannot read."""

    kind = ErrorKind.INDEX
