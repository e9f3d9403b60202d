"""
LAYLAA Error Taxonomy

Every failure the burn-to-proof pipeline can surface. Errors carry the token
type, amount and transaction hash involved whenever they are known so that a
caller can report exactly which burn or issuance went wrong.

    BurnProofError
    ├── InvalidAmount            amount <= 0
    ├── UnknownTokenType         symbol not in the catalog
    ├── InsufficientBalance      have < need (checked before submission)
    ├── BurnRejected             ledger result code other than success
    ├── InvalidTransactionHash   hash too short / not hex
    ├── LedgerUnavailable        transport or timeout from the ledger client
    ├── TransactionNotFound      ledger has no record of a hash
    ├── CatalogError             malformed catalog definition
    ├── ProofVerificationError   stored proof does not match its commitment
    └── ConfigError              invalid configuration value or file

PartialIssuanceFailure is not raised. It is recorded per token inside an
IssuanceReport.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional


class BurnProofError(Exception):
    """Base exception for the burn-to-proof pipeline."""

    code = "error"

    def __init__(
        self,
        message: str,
        token_type: Optional[str] = None,
        amount: Optional[Decimal] = None,
        transaction_hash: Optional[str] = None,
    ):
        self.message = message
        self.token_type = token_type
        self.amount = amount
        self.transaction_hash = transaction_hash
        super().__init__(message)

    def context(self) -> Dict[str, Any]:
        """Identifying details for logs and CLI output."""
        ctx: Dict[str, Any] = {"error_code": self.code}
        if self.token_type is not None:
            ctx["token_type"] = self.token_type
        if self.amount is not None:
            ctx["amount"] = str(self.amount)
        if self.transaction_hash is not None:
            ctx["transaction_hash"] = self.transaction_hash
        return ctx


class InvalidAmount(BurnProofError):
    """Requested amount is not strictly positive."""

    code = "invalid_amount"

    def __init__(self, amount: Any, token_type: Optional[str] = None):
        super().__init__(
            f"Amount must be greater than zero, got {amount}",
            token_type=token_type,
        )
        self.requested = amount


class UnknownTokenType(BurnProofError):
    """Symbol (or catalog index) is not registered in the catalog."""

    code = "unknown_token_type"

    def __init__(self, token_type: Any, known: Optional[tuple] = None):
        message = f"Unknown token type: {token_type}"
        if known:
            message += f". Must be one of: {', '.join(known)}"
        super().__init__(message, token_type=str(token_type))


class InsufficientBalance(BurnProofError):
    """Holder balance is lower than the requested burn amount."""

    code = "insufficient_balance"

    def __init__(self, token_type: str, have: Decimal, need: Decimal):
        self.have = have
        self.need = need
        super().__init__(
            f"Insufficient {token_type} balance. Have: {have}, Need: {need}",
            token_type=token_type,
            amount=need,
        )

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx["have"] = str(self.have)
        ctx["need"] = str(self.need)
        return ctx


class BurnRejected(BurnProofError):
    """The ledger settled the burn with a non-success result code."""

    code = "burn_rejected"

    def __init__(
        self,
        result_code: str,
        token_type: Optional[str] = None,
        amount: Optional[Decimal] = None,
        transaction_hash: Optional[str] = None,
    ):
        self.result_code = result_code
        super().__init__(
            f"Token burn failed: {result_code}",
            token_type=token_type,
            amount=amount,
            transaction_hash=transaction_hash,
        )

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx["result_code"] = self.result_code
        return ctx


class InvalidTransactionHash(BurnProofError):
    """Transaction hash cannot be used for media selection."""

    code = "invalid_transaction_hash"

    def __init__(self, tx_hash: Any, reason: str):
        super().__init__(
            f"Invalid transaction hash {tx_hash!r}: {reason}",
            transaction_hash=str(tx_hash),
        )


class LedgerUnavailable(BurnProofError):
    """Transport failure or timeout talking to the ledger."""

    code = "ledger_unavailable"

    def __init__(
        self,
        operation: str,
        reason: str,
        token_type: Optional[str] = None,
        amount: Optional[Decimal] = None,
        transaction_hash: Optional[str] = None,
    ):
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Ledger unavailable during {operation}: {reason}",
            token_type=token_type,
            amount=amount,
            transaction_hash=transaction_hash,
        )

    def with_context(
        self,
        token_type: Optional[str] = None,
        amount: Optional[Decimal] = None,
        transaction_hash: Optional[str] = None,
    ) -> "LedgerUnavailable":
        """Copy of this error enriched with burn/issuance details."""
        return LedgerUnavailable(
            self.operation,
            self.reason,
            token_type=token_type or self.token_type,
            amount=amount if amount is not None else self.amount,
            transaction_hash=transaction_hash or self.transaction_hash,
        )


class TransactionNotFound(BurnProofError):
    """The ledger has no record of the transaction hash."""

    code = "transaction_not_found"

    def __init__(self, transaction_hash: str):
        super().__init__(
            f"Transaction not found: {transaction_hash}",
            transaction_hash=transaction_hash,
        )


class CatalogError(BurnProofError):
    """Catalog definition is malformed."""

    code = "catalog_error"


class ProofVerificationError(BurnProofError):
    """A stored proof record failed schema or commitment checks."""

    code = "proof_verification_failed"


class ConfigError(BurnProofError):
    """Configuration error."""

    code = "config_error"


@dataclass(frozen=True)
class PartialIssuanceFailure:
    """
    Per-token issuance failure carried in an IssuanceReport.

    Not an exception: the orchestrator records it and moves on.
    """
    token_type: str
    stage: str  # "trust_line" or "issue"
    error_code: str
    message: str = ""
    transaction_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token_type": self.token_type,
            "stage": self.stage,
            "error_code": self.error_code,
            "message": self.message,
            "transaction_hash": self.transaction_hash,
        }
