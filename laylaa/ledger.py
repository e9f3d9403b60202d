"""
LAYLAA Ledger Collaborator

The boundary between the burn-to-proof pipeline and the external ledger.
Everything the pipeline needs from the ledger goes through the LedgerClient
protocol; signing, autofill, submission and transport belong to the adapter.

Architecture:

    ┌─────────────────────────────────────────────────────────────────────┐
    │        BurnCoordinator            IssuanceOrchestrator              │
    └──────────────────────────────┬──────────────────────────────────────┘
                                   │  LedgerClient (explicit handle)
          ┌────────────────────────┼────────────────────────┐
          ▼                                                 ▼
    ┌──────────────────┐                            ┌──────────────────┐
    │ XrplLedgerClient │                            │ MockLedgerClient │
    │   (xrpl-py)      │                            │   (in memory)    │
    └──────────────────┘                            └──────────────────┘

A client handle is acquired once per batch via ``ledger_session`` and is
always closed on exit. Nothing here is cached: every balance read is a fresh
trust line query.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Tuple

from laylaa.catalog import AssetCatalog, TokenType
from laylaa.core import amount_str, canonical_json_bytes, sha256_bytes, str_to_hex
from laylaa.errors import LedgerUnavailable, TransactionNotFound
from laylaa.observability import LaylaaLayer, get_logger, timed_operation

logger = get_logger("ledger", LaylaaLayer.LEDGER)

SUCCESS_CODE = "tesSUCCESS"

# AccountSet flag enabling rippling by default on an issuer account.
ASF_DEFAULT_RIPPLE = 8


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionKind(Enum):
    """Transaction types the pipeline submits."""
    PAYMENT = "Payment"
    TRUST_SET = "TrustSet"
    ACCOUNT_SET = "AccountSet"


@dataclass(frozen=True)
class Memo:
    """Plain-text memo; adapters hex-encode the fields on the wire."""
    memo_type: str
    memo_data: str
    memo_format: str = ""

    def to_dict(self) -> Dict[str, Any]:
        memo = {
            "MemoType": str_to_hex(self.memo_type),
            "MemoData": str_to_hex(self.memo_data),
        }
        if self.memo_format:
            memo["MemoFormat"] = str_to_hex(self.memo_format)
        return {"Memo": memo}


@dataclass(frozen=True)
class LedgerTransaction:
    """
    Ledger-neutral description of a transaction to sign and submit.

    Amounts are issued-currency amounts: ``currency`` + ``issuer`` + ``value``.
    """
    kind: TransactionKind
    account: str
    destination: Optional[str] = None
    currency: Optional[str] = None
    issuer: Optional[str] = None
    value: Optional[Decimal] = None
    memos: Tuple[Memo, ...] = ()
    set_flag: Optional[int] = None

    @classmethod
    def payment(
        cls,
        account: str,
        destination: str,
        currency: str,
        issuer: str,
        value: Decimal,
        memos: Tuple[Memo, ...] = (),
    ) -> "LedgerTransaction":
        return cls(
            kind=TransactionKind.PAYMENT,
            account=account,
            destination=destination,
            currency=currency,
            issuer=issuer,
            value=value,
            memos=memos,
        )

    @classmethod
    def trust_set(
        cls,
        account: str,
        currency: str,
        issuer: str,
        limit: Decimal,
        memos: Tuple[Memo, ...] = (),
    ) -> "LedgerTransaction":
        return cls(
            kind=TransactionKind.TRUST_SET,
            account=account,
            currency=currency,
            issuer=issuer,
            value=limit,
            memos=memos,
        )

    @classmethod
    def default_ripple(cls, account: str, memos: Tuple[Memo, ...] = ()) -> "LedgerTransaction":
        return cls(
            kind=TransactionKind.ACCOUNT_SET,
            account=account,
            memos=memos,
            set_flag=ASF_DEFAULT_RIPPLE,
        )

    @property
    def is_burn(self) -> bool:
        """A payment returning issued tokens to their issuer."""
        return (
            self.kind == TransactionKind.PAYMENT
            and self.destination is not None
            and self.destination == self.issuer
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape of the transaction, in ledger field names."""
        tx: Dict[str, Any] = {
            "TransactionType": self.kind.value,
            "Account": self.account,
        }
        if self.kind == TransactionKind.PAYMENT:
            tx["Destination"] = self.destination
            tx["Amount"] = {
                "currency": self.currency,
                "issuer": self.issuer,
                "value": amount_str(self.value),
            }
        elif self.kind == TransactionKind.TRUST_SET:
            tx["LimitAmount"] = {
                "currency": self.currency,
                "issuer": self.issuer,
                "value": amount_str(self.value),
            }
        if self.set_flag is not None:
            tx["SetFlag"] = self.set_flag
        if self.memos:
            tx["Memos"] = [m.to_dict() for m in self.memos]
        return tx


@dataclass(frozen=True)
class SignedTransaction:
    """A signed transaction. Its hash is final before submission."""
    tx_hash: str
    tx_blob: str
    transaction: LedgerTransaction
    sequence: int
    fee: str = "12"


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a submission once the ledger has settled it."""
    tx_hash: str
    result_code: str
    ledger_index: int

    @property
    def succeeded(self) -> bool:
        return self.result_code == SUCCESS_CODE


# =============================================================================
# LEDGER FACTS
# =============================================================================

@dataclass(frozen=True)
class TransactionFacts:
    """What the ledger reports about a settled transaction."""
    tx_hash: str
    account: str
    destination: Optional[str]
    fee: str
    sequence: int
    memos: Tuple[Dict[str, Any], ...] = ()
    validated: bool = False
    result_code: str = ""
    ledger_index: Optional[int] = None

    def details(self) -> Dict[str, Any]:
        """Snapshot embedded in burn proofs."""
        return {
            "account": self.account,
            "destination": self.destination,
            "fee": self.fee,
            "sequence": self.sequence,
            "memos": list(self.memos),
        }


@dataclass(frozen=True)
class LedgerFacts:
    """Header facts of a closed ledger."""
    ledger_index: int
    ledger_hash: str
    close_time: int
    parent_hash: str
    total_coins: str = ""


@dataclass(frozen=True)
class TrustLine:
    """A holder's trust line to one issuer for one currency."""
    currency: str
    issuer: str
    balance: Decimal
    limit: Decimal


@dataclass(frozen=True)
class Balance:
    """Holder balance of one catalog token, read fresh from the ledger."""
    token_type: TokenType
    holder: str
    amount: Decimal
    trust_limit: Decimal
    has_trust_line: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token_type": self.token_type.symbol,
            "media_format": self.token_type.media_format,
            "catalog_index": self.token_type.catalog_index,
            "holder": self.holder,
            "amount": amount_str(self.amount),
            "trust_limit": amount_str(self.trust_limit),
            "has_trust_line": self.has_trust_line,
        }


# =============================================================================
# CLIENT PROTOCOL
# =============================================================================

class LedgerClient(Protocol):
    """
    Protocol for ledger adapters.

    Transport failures and timeouts surface as LedgerUnavailable. A
    settled-but-failed submission is not an exception: it comes back as a
    SubmitResult whose ``result_code`` is the ledger's code.
    """

    def sign(self, tx: LedgerTransaction) -> SignedTransaction:
        """Autofill and sign; the returned hash is final."""
        ...

    def submit(self, signed: SignedTransaction) -> SubmitResult:
        """Submit and wait for the settlement result."""
        ...

    def get_transaction(self, tx_hash: str) -> TransactionFacts:
        """Look up a transaction; raises TransactionNotFound if unknown."""
        ...

    def get_ledger(self, ledger_index: int) -> LedgerFacts:
        ...

    def get_trust_lines(self, address: str) -> List[TrustLine]:
        ...

    def close(self) -> None:
        ...


@contextmanager
def ledger_session(factory: Callable[[], LedgerClient]) -> Iterator[LedgerClient]:
    """Open a client for one batch of work and always close it."""
    client = factory()
    try:
        yield client
    finally:
        client.close()


@timed_operation(logger, "read_balance")
def read_balance(
    client: LedgerClient,
    holder: str,
    issuer: str,
    token: TokenType,
) -> Balance:
    """Current balance of ``token`` issued by ``issuer`` held by ``holder``."""
    for line in client.get_trust_lines(holder):
        if line.currency == token.symbol and line.issuer == issuer:
            return Balance(
                token_type=token,
                holder=holder,
                amount=line.balance,
                trust_limit=line.limit,
            )
    return Balance(
        token_type=token,
        holder=holder,
        amount=Decimal("0"),
        trust_limit=Decimal("0"),
        has_trust_line=False,
    )


@timed_operation(logger, "read_holdings")
def read_holdings(
    client: LedgerClient,
    holder: str,
    issuer: str,
    catalog: AssetCatalog,
) -> List[Balance]:
    """Balances for every catalog token, in catalog order, from one query."""
    lines = {
        line.currency: line
        for line in client.get_trust_lines(holder)
        if line.issuer == issuer
    }
    holdings = []
    for token in catalog:
        line = lines.get(token.symbol)
        if line is None:
            holdings.append(Balance(token, holder, Decimal("0"), Decimal("0"), False))
        else:
            holdings.append(Balance(token, holder, line.balance, line.limit))
    return holdings


def explorer_transaction_url(base_url: str, tx_hash: str) -> str:
    return f"{base_url.rstrip('/')}/transactions/{tx_hash}"


def explorer_account_url(base_url: str, address: str) -> str:
    return f"{base_url.rstrip('/')}/accounts/{address}"


# =============================================================================
# MOCK LEDGER CLIENT
# =============================================================================

@dataclass
class _Injection:
    operation: str
    remaining: int
    result_code: Optional[str] = None
    after_apply: bool = False
    currency: Optional[str] = None
    kind: Optional[TransactionKind] = None

    def matches(self, operation: str, tx: Optional[LedgerTransaction]) -> bool:
        if self.remaining <= 0 or self.operation != operation:
            return False
        if tx is None:
            return self.currency is None and self.kind is None
        if self.currency is not None and tx.currency != self.currency:
            return False
        if self.kind is not None and tx.kind != self.kind:
            return False
        return True


@dataclass
class _StoredTransaction:
    signed: SignedTransaction
    result_code: str
    ledger_index: int


class MockLedgerClient:
    """
    In-memory ledger for tests and dry runs.

    Models issued-currency trust lines, per-account sequence numbers, closed
    ledgers and deterministic transaction hashes. Failures are injected with
    ``reject`` (settled with a non-success code) and ``make_unavailable``
    (transport failure, optionally after the transaction was applied, which
    simulates a lost response).
    """

    def __init__(self, start_ledger_index: int = 1000, close_time: int = 780000000):
        self._lines: Dict[Tuple[str, str, str], List[Decimal]] = {}
        self._sequences: Dict[str, int] = {}
        self._transactions: Dict[str, _StoredTransaction] = {}
        self._ledgers: Dict[int, LedgerFacts] = {}
        self._injections: List[_Injection] = []
        self._ledger_index = start_ledger_index
        self._close_time = close_time
        self.default_ripple: set = set()
        self.submitted: List[SignedTransaction] = []
        self.calls: List[str] = []
        self.closed = False
        self._close_ledger()

    # -- test helpers ---------------------------------------------------------

    def fund(
        self,
        holder: str,
        issuer: str,
        currency: str,
        amount: Decimal,
        limit: Decimal = Decimal("100000"),
    ) -> None:
        """Create (or overwrite) a trust line with a starting balance."""
        self._lines[(holder, issuer, currency)] = [Decimal(amount), Decimal(limit)]

    def balance_of(self, holder: str, issuer: str, currency: str) -> Decimal:
        line = self._lines.get((holder, issuer, currency))
        return line[0] if line else Decimal("0")

    def has_trust_line(self, holder: str, issuer: str, currency: str) -> bool:
        return (holder, issuer, currency) in self._lines

    def reject(
        self,
        result_code: str,
        currency: Optional[str] = None,
        kind: Optional[TransactionKind] = None,
        times: int = 1,
    ) -> None:
        """Settle the next matching submission(s) with ``result_code``."""
        self._injections.append(_Injection(
            operation="submit",
            remaining=times,
            result_code=result_code,
            currency=currency,
            kind=kind,
        ))

    def make_unavailable(
        self,
        operation: str,
        times: int = 1,
        after_apply: bool = False,
        currency: Optional[str] = None,
        kind: Optional[TransactionKind] = None,
    ) -> None:
        """Raise LedgerUnavailable on the next matching call(s)."""
        self._injections.append(_Injection(
            operation=operation,
            remaining=times,
            after_apply=after_apply,
            currency=currency,
            kind=kind,
        ))

    # -- internals ------------------------------------------------------------

    def _take_injection(
        self,
        operation: str,
        tx: Optional[LedgerTransaction] = None,
    ) -> Optional[_Injection]:
        for injection in self._injections:
            if injection.matches(operation, tx):
                injection.remaining -= 1
                return injection
        return None

    def _check_open(self, operation: str) -> None:
        self.calls.append(operation)
        if self.closed:
            raise LedgerUnavailable(operation, "client is closed")

    def _maybe_unavailable(self, operation: str, tx: Optional[LedgerTransaction] = None) -> None:
        for injection in self._injections:
            if (
                injection.result_code is None
                and not injection.after_apply
                and injection.matches(operation, tx)
            ):
                injection.remaining -= 1
                raise LedgerUnavailable(operation, "simulated transport failure")

    def _close_ledger(self) -> int:
        parent = self._ledgers.get(self._ledger_index - 1)
        parent_hash = parent.ledger_hash if parent else "0" * 64
        self._close_time += 4
        ledger_hash = sha256_bytes(
            canonical_json_bytes({"index": self._ledger_index, "parent": parent_hash})
        ).upper()
        self._ledgers[self._ledger_index] = LedgerFacts(
            ledger_index=self._ledger_index,
            ledger_hash=ledger_hash,
            close_time=self._close_time,
            parent_hash=parent_hash,
            total_coins="99999999999999999",
        )
        index = self._ledger_index
        self._ledger_index += 1
        return index

    def _apply(self, tx: LedgerTransaction) -> str:
        if tx.kind == TransactionKind.ACCOUNT_SET:
            if tx.set_flag == ASF_DEFAULT_RIPPLE:
                self.default_ripple.add(tx.account)
            return SUCCESS_CODE

        if tx.kind == TransactionKind.TRUST_SET:
            key = (tx.account, tx.issuer, tx.currency)
            line = self._lines.get(key)
            if line is None:
                self._lines[key] = [Decimal("0"), tx.value]
            else:
                line[1] = tx.value
            return SUCCESS_CODE

        value = tx.value
        if value is None or value <= 0:
            return "temBAD_AMOUNT"

        if tx.account == tx.issuer:
            line = self._lines.get((tx.destination, tx.issuer, tx.currency))
            if line is None:
                return "tecPATH_DRY"
            if line[0] + value > line[1]:
                return "tecPATH_PARTIAL"
            line[0] += value
            return SUCCESS_CODE

        source = self._lines.get((tx.account, tx.issuer, tx.currency))
        if source is None or source[0] < value:
            return "tecPATH_PARTIAL"
        if tx.destination != tx.issuer:
            target = self._lines.get((tx.destination, tx.issuer, tx.currency))
            if target is None:
                return "tecPATH_DRY"
            if target[0] + value > target[1]:
                return "tecPATH_PARTIAL"
            target[0] += value
        source[0] -= value
        return SUCCESS_CODE

    # -- LedgerClient ---------------------------------------------------------

    def sign(self, tx: LedgerTransaction) -> SignedTransaction:
        self._check_open("sign")
        sequence = self._sequences.get(tx.account, 1)
        body = dict(tx.to_dict(), Sequence=sequence, Fee="12")
        blob = canonical_json_bytes(body)
        return SignedTransaction(
            tx_hash=sha256_bytes(blob).upper(),
            tx_blob=blob.hex().upper(),
            transaction=tx,
            sequence=sequence,
        )

    def submit(self, signed: SignedTransaction) -> SubmitResult:
        self._check_open("submit")
        tx = signed.transaction
        self._maybe_unavailable("submit", tx)

        if signed.tx_hash in self._transactions:
            stored = self._transactions[signed.tx_hash]
            return SubmitResult(signed.tx_hash, "tefPAST_SEQ", stored.ledger_index)
        if signed.sequence != self._sequences.get(tx.account, 1):
            return SubmitResult(signed.tx_hash, "tefPAST_SEQ", self._ledger_index - 1)

        injection = self._take_injection("submit", tx)
        if injection is not None and injection.result_code is not None:
            code = injection.result_code
        else:
            code = self._apply(tx)

        self._sequences[tx.account] = signed.sequence + 1
        ledger_index = self._close_ledger()
        self._transactions[signed.tx_hash] = _StoredTransaction(signed, code, ledger_index)
        self.submitted.append(signed)

        if injection is not None and injection.after_apply:
            raise LedgerUnavailable("submit", "connection lost after submission")

        return SubmitResult(signed.tx_hash, code, ledger_index)

    def get_transaction(self, tx_hash: str) -> TransactionFacts:
        self._check_open("get_transaction")
        self._maybe_unavailable("get_transaction")
        stored = self._transactions.get(tx_hash)
        if stored is None:
            raise TransactionNotFound(tx_hash)
        tx = stored.signed.transaction
        return TransactionFacts(
            tx_hash=tx_hash,
            account=tx.account,
            destination=tx.destination,
            fee=stored.signed.fee,
            sequence=stored.signed.sequence,
            memos=tuple(m.to_dict() for m in tx.memos),
            validated=True,
            result_code=stored.result_code,
            ledger_index=stored.ledger_index,
        )

    def get_ledger(self, ledger_index: int) -> LedgerFacts:
        self._check_open("get_ledger")
        self._maybe_unavailable("get_ledger")
        facts = self._ledgers.get(ledger_index)
        if facts is None:
            raise LedgerUnavailable("get_ledger", f"ledger {ledger_index} not found")
        return facts

    def get_trust_lines(self, address: str) -> List[TrustLine]:
        self._check_open("get_trust_lines")
        self._maybe_unavailable("get_trust_lines")
        return [
            TrustLine(currency=currency, issuer=issuer, balance=line[0], limit=line[1])
            for (holder, issuer, currency), line in self._lines.items()
            if holder == address
        ]

    def close(self) -> None:
        self.closed = True
