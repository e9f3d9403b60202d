"""
LAYLAA Burn Coordinator

Burns a quantity of one catalog token and turns the confirmed transaction
into a burn proof.

Flow:

    amount > 0 ──► symbol known ──► fresh balance >= amount
                                            │
                                            ▼
                  sign Payment(holder ─► issuer)   (hash known here)
                                            │
                                            ▼
                  submit once ──► result code == success?
                                            │
                                            ▼
                  tx facts + ledger facts ──► select media ──► assemble Proof

Preconditions abort before anything is signed. A submission is never
retried here: a blind resubmit could burn twice, so transport failures
propagate as LedgerUnavailable carrying the already-known hash for the
caller to reconcile.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Union

from laylaa.catalog import AssetCatalog, TokenType
from laylaa.core import amount_str, to_decimal
from laylaa.errors import (
    BurnRejected,
    InsufficientBalance,
    InvalidAmount,
    LedgerUnavailable,
)
from laylaa.ledger import (
    SUCCESS_CODE,
    Balance,
    LedgerClient,
    LedgerTransaction,
    Memo,
    read_balance,
    read_holdings,
)
from laylaa.observability import LaylaaLayer, get_logger, get_tracer
from laylaa.proof import BurnTransaction, Proof, ProofAssembler
from laylaa.selector import MediaSelector

logger = get_logger("coordinator", LaylaaLayer.BURN)

BURN_MEMO_TYPE = "laylaa_burn"


@dataclass(frozen=True)
class BurnResult:
    """Outcome of a successful burn."""
    transaction_hash: str
    proof: Proof
    ledger_index: int
    transaction: BurnTransaction

    @property
    def media_id(self) -> int:
        return self.proof.media_id

    @property
    def media_format(self) -> str:
        return self.proof.media_format


def burn_memo(token: TokenType, amount: Decimal) -> Memo:
    return Memo(
        memo_type=BURN_MEMO_TYPE,
        memo_data=f"LAYLAA {token.symbol} Burn - {amount_str(amount)} for media NFT",
        memo_format=token.media_format,
    )


class BurnCoordinator:
    """
    Coordinates a single burn against an explicitly passed ledger client.

    The coordinator owns no connection; the caller scopes the client with
    ``ledger_session`` and passes it in.
    """

    def __init__(
        self,
        client: LedgerClient,
        catalog: AssetCatalog,
        issuer_address: str,
        assembler: Optional[ProofAssembler] = None,
        selector: Optional[MediaSelector] = None,
        success_code: str = SUCCESS_CODE,
    ):
        self.client = client
        self.catalog = catalog
        self.issuer_address = issuer_address
        self.assembler = assembler or ProofAssembler()
        self.selector = selector or MediaSelector(catalog)
        self.success_code = success_code
        self.last_transaction_hash: Optional[str] = None

    def balance(self, holder: str, symbol: str) -> Balance:
        """Fresh balance of one token for ``holder``."""
        token = self.catalog.lookup(symbol)
        return read_balance(self.client, holder, self.issuer_address, token)

    def holdings(self, holder: str) -> List[Balance]:
        return read_holdings(self.client, holder, self.issuer_address, self.catalog)

    def burn(self, holder: str, symbol: str, amount: Union[Decimal, int, str]) -> BurnResult:
        """
        Burn ``amount`` of ``symbol`` held by ``holder`` and assemble the proof.

        Raises:
            InvalidAmount: amount is not strictly positive
            UnknownTokenType: symbol is not in the catalog
            InsufficientBalance: the fresh balance is below amount
            BurnRejected: the ledger settled with a non-success code
            LedgerUnavailable: transport failure; carries the hash once signed
        """
        try:
            amount = to_decimal(amount)
        except ValueError:
            raise InvalidAmount(amount, token_type=symbol) from None
        if amount <= 0:
            raise InvalidAmount(amount, token_type=symbol)

        token = self.catalog.lookup(symbol)
        self.last_transaction_hash = None

        with get_tracer().span("burn", LaylaaLayer.BURN, token_type=symbol) as span:
            start = time.monotonic()
            try:
                balance = self.balance(holder, symbol)
            except LedgerUnavailable as e:
                raise e.with_context(token_type=symbol, amount=amount) from e

            if balance.amount < amount:
                logger.warning(
                    "Burn refused: insufficient balance",
                    token_type=symbol,
                    amount=str(amount),
                    have=str(balance.amount),
                )
                raise InsufficientBalance(symbol, have=balance.amount, need=amount)

            tx = LedgerTransaction.payment(
                account=holder,
                destination=self.issuer_address,
                currency=token.symbol,
                issuer=self.issuer_address,
                value=amount,
                memos=(burn_memo(token, amount),),
            )

            try:
                signed = self.client.sign(tx)
            except LedgerUnavailable as e:
                raise e.with_context(token_type=symbol, amount=amount) from e

            tx_hash = signed.tx_hash
            self.last_transaction_hash = tx_hash
            span.set_attribute("transaction_hash", tx_hash)
            logger.info(
                "Submitting burn",
                token_type=symbol,
                amount=str(amount),
                transaction_hash=tx_hash,
            )

            try:
                result = self.client.submit(signed)
            except LedgerUnavailable as e:
                logger.error(
                    "Burn submission outcome unknown",
                    error_code=e.code,
                    token_type=symbol,
                    amount=str(amount),
                    transaction_hash=tx_hash,
                )
                raise e.with_context(
                    token_type=symbol, amount=amount, transaction_hash=tx_hash
                ) from e

            if result.result_code != self.success_code:
                logger.error(
                    "Burn rejected by ledger",
                    error_code=BurnRejected.code,
                    result_code=result.result_code,
                    token_type=symbol,
                    amount=str(amount),
                    transaction_hash=tx_hash,
                )
                raise BurnRejected(
                    result.result_code,
                    token_type=symbol,
                    amount=amount,
                    transaction_hash=tx_hash,
                )

            burn_tx = BurnTransaction(
                hash=tx_hash,
                token_type=token.symbol,
                amount=amount,
                burner_address=holder,
                issuer_address=self.issuer_address,
                ledger_index=result.ledger_index,
                result_code=result.result_code,
            )

            try:
                transaction_facts = self.client.get_transaction(tx_hash)
                ledger_facts = self.client.get_ledger(result.ledger_index)
            except LedgerUnavailable as e:
                raise e.with_context(
                    token_type=symbol, amount=amount, transaction_hash=tx_hash
                ) from e

            media = self.selector.select_token(tx_hash)
            media_id = media.catalog_index
            span.record_event("media_selected", media_id=media_id, media_format=media.media_format)
            proof = self.assembler.assemble(
                burn_tx,
                transaction_facts,
                ledger_facts,
                media_id=media_id,
                media_format=media.media_format,
            )
            span.set_attribute("media_id", media_id)

            logger.operation(
                "burn",
                (time.monotonic() - start) * 1000,
                token_type=symbol,
                amount=str(amount),
                transaction_hash=tx_hash,
                media_id=media_id,
                proof_hash=proof.proof_hash,
            )
            return BurnResult(
                transaction_hash=tx_hash,
                proof=proof,
                ledger_index=result.ledger_index,
                transaction=burn_tx,
            )
