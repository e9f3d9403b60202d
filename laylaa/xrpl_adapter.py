"""
XRPL Ledger Client

LedgerClient implementation over xrpl-py. One websocket connection per
client; open it with ``ledger_session(lambda: XrplLedgerClient.connect(...))``
so that it is closed on every exit path.

Signing uses ``autofill_and_sign`` so the transaction hash is final before
``submit`` is called. ``submit`` waits for validation via ``submit_and_wait``.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import asyncio
import re
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

import httpx
from xrpl.asyncio.clients.exceptions import XRPLRequestFailureException, XRPLWebsocketException
from xrpl.clients import WebsocketClient
from xrpl.models.amounts import IssuedCurrencyAmount
from xrpl.models.requests import AccountLines, Ledger, Tx
from xrpl.models.transactions import (
    AccountSet,
    AccountSetAsfFlag,
    Memo as XrplMemo,
    Payment,
    Transaction,
    TrustSet,
)
from xrpl.transaction import XRPLReliableSubmissionException, autofill_and_sign, submit_and_wait
from xrpl.wallet import Wallet

from laylaa.errors import LedgerUnavailable, TransactionNotFound
from laylaa.ledger import (
    ASF_DEFAULT_RIPPLE,
    LedgerFacts,
    LedgerTransaction,
    Memo,
    SignedTransaction,
    SubmitResult,
    TransactionFacts,
    TransactionKind,
    TrustLine,
)
from laylaa.observability import LaylaaLayer, get_logger

logger = get_logger("xrpl", LaylaaLayer.LEDGER)

_TRANSPORT_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    httpx.HTTPError,
    XRPLRequestFailureException,
    XRPLWebsocketException,
)

_RESULT_CODE = re.compile(r"\b(te[cfmlr][A-Z_]+)\b")


def _to_xrpl_memo(memo: Memo) -> XrplMemo:
    wire = memo.to_dict()["Memo"]
    return XrplMemo(
        memo_type=wire["MemoType"],
        memo_data=wire["MemoData"],
        memo_format=wire.get("MemoFormat"),
    )


def wallet_address(seed: str) -> str:
    """Classic address of the wallet derived from ``seed``."""
    return Wallet.from_seed(seed).classic_address


def to_xrpl_transaction(tx: LedgerTransaction) -> Transaction:
    """Translate a ledger-neutral transaction into an xrpl-py model."""
    memos = [_to_xrpl_memo(m) for m in tx.memos] or None

    if tx.kind == TransactionKind.PAYMENT:
        return Payment(
            account=tx.account,
            destination=tx.destination,
            amount=IssuedCurrencyAmount(
                currency=tx.currency,
                issuer=tx.issuer,
                value=format(tx.value.normalize(), "f"),
            ),
            memos=memos,
        )
    if tx.kind == TransactionKind.TRUST_SET:
        return TrustSet(
            account=tx.account,
            limit_amount=IssuedCurrencyAmount(
                currency=tx.currency,
                issuer=tx.issuer,
                value=format(tx.value.normalize(), "f"),
            ),
            memos=memos,
        )
    if tx.kind == TransactionKind.ACCOUNT_SET:
        set_flag = None
        if tx.set_flag == ASF_DEFAULT_RIPPLE:
            set_flag = AccountSetAsfFlag.ASF_DEFAULT_RIPPLE
        return AccountSet(account=tx.account, set_flag=set_flag, memos=memos)
    raise ValueError(f"Unsupported transaction kind: {tx.kind}")


class XrplLedgerClient:
    """
    LedgerClient over an open xrpl-py WebsocketClient.

    ``wallets`` are the accounts this client may sign for, keyed by their
    classic address.
    """

    def __init__(self, client: WebsocketClient, wallets: Iterable[Wallet] = ()):
        self._client = client
        self._wallets: Dict[str, Wallet] = {w.classic_address: w for w in wallets}
        self._signed: Dict[str, Transaction] = {}

    @classmethod
    def connect(
        cls,
        url: str,
        seeds: Iterable[str] = (),
        timeout: Optional[float] = None,
    ) -> "XrplLedgerClient":
        wallets = [Wallet.from_seed(seed) for seed in seeds if seed]
        client = WebsocketClient(url, timeout=timeout)
        try:
            client.open()
        except _TRANSPORT_ERRORS as e:
            raise LedgerUnavailable("connect", f"{url}: {e}") from e
        logger.info("Connected to ledger", url=url, wallets=len(wallets))
        return cls(client, wallets)

    def _request(self, operation: str, request: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(request)
        except _TRANSPORT_ERRORS as e:
            raise LedgerUnavailable(operation, str(e)) from e
        if not response.is_successful():
            error = response.result.get("error", "unknown")
            if error == "txnNotFound":
                raise TransactionNotFound(getattr(request, "transaction", ""))
            raise LedgerUnavailable(operation, f"{error}: {response.result.get('error_message', '')}")
        return response.result

    # -- LedgerClient ---------------------------------------------------------

    def sign(self, tx: LedgerTransaction) -> SignedTransaction:
        wallet = self._wallets.get(tx.account)
        if wallet is None:
            raise ValueError(f"No signing wallet for account {tx.account}")
        try:
            signed = autofill_and_sign(to_xrpl_transaction(tx), self._client, wallet)
        except _TRANSPORT_ERRORS as e:
            raise LedgerUnavailable("sign", str(e)) from e

        tx_hash = signed.get_hash()
        self._signed[tx_hash] = signed
        return SignedTransaction(
            tx_hash=tx_hash,
            tx_blob=signed.blob(),
            transaction=tx,
            sequence=signed.sequence,
            fee=signed.fee,
        )

    def submit(self, signed: SignedTransaction) -> SubmitResult:
        model = self._signed.get(signed.tx_hash)
        if model is None:
            raise ValueError(f"Transaction {signed.tx_hash} was not signed by this client")
        try:
            response = submit_and_wait(model, self._client)
        except XRPLReliableSubmissionException as e:
            match = _RESULT_CODE.search(str(e))
            if match is None:
                raise LedgerUnavailable("submit", str(e), transaction_hash=signed.tx_hash) from e
            return SubmitResult(signed.tx_hash, match.group(1), 0)
        except _TRANSPORT_ERRORS as e:
            raise LedgerUnavailable("submit", str(e), transaction_hash=signed.tx_hash) from e

        result = response.result
        try:
            result_code = result["meta"]["TransactionResult"]
            ledger_index = int(result["ledger_index"])
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerUnavailable(
                "submit", f"malformed submit response: {e!r}", transaction_hash=signed.tx_hash
            ) from e
        return SubmitResult(
            tx_hash=result.get("hash", signed.tx_hash),
            result_code=result_code,
            ledger_index=ledger_index,
        )

    def get_transaction(self, tx_hash: str) -> TransactionFacts:
        result = self._request("get_transaction", Tx(transaction=tx_hash))
        tx_json = result.get("tx_json", result)
        meta = result.get("meta") or {}
        return TransactionFacts(
            tx_hash=tx_hash,
            account=tx_json["Account"],
            destination=tx_json.get("Destination"),
            fee=str(tx_json.get("Fee", "")),
            sequence=int(tx_json.get("Sequence", 0)),
            memos=tuple(tx_json.get("Memos") or ()),
            validated=bool(result.get("validated", False)),
            result_code=meta.get("TransactionResult", "") if isinstance(meta, dict) else "",
            ledger_index=result.get("ledger_index"),
        )

    def get_ledger(self, ledger_index: int) -> LedgerFacts:
        result = self._request("get_ledger", Ledger(ledger_index=ledger_index))
        ledger = result["ledger"]
        return LedgerFacts(
            ledger_index=int(ledger.get("ledger_index", ledger_index)),
            ledger_hash=result.get("ledger_hash") or ledger["ledger_hash"],
            close_time=int(ledger["close_time"]),
            parent_hash=ledger["parent_hash"],
            total_coins=str(ledger.get("total_coins", "")),
        )

    def get_trust_lines(self, address: str) -> List[TrustLine]:
        lines: List[TrustLine] = []
        marker = None
        while True:
            result = self._request(
                "get_trust_lines", AccountLines(account=address, marker=marker)
            )
            for line in result.get("lines", []):
                lines.append(TrustLine(
                    currency=line["currency"],
                    issuer=line["account"],
                    balance=Decimal(line["balance"]),
                    limit=Decimal(line["limit"]),
                ))
            marker = result.get("marker")
            if marker is None:
                return lines

    def close(self) -> None:
        if self._client.is_open():
            self._client.close()
