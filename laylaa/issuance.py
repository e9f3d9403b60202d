"""
LAYLAA Issuance Orchestrator

Bulk setup of a holder across the whole catalog: one trust line and one
issuing payment per token type, in catalog order.

    issuer AccountSet (default ripple)          optional, once
    for token in catalog:
        trust line (holder)     if missing or limit too low
        issue payment (issuer)  per_token_amount

Failure of one token is recorded as a PartialIssuanceFailure in the report
and the loop moves on; the orchestrator always attempts every token. Errors
outside the domain hierarchy are recorded under their class name.

Submissions go through an injected RetryPolicy. Only LedgerUnavailable is
retried, and only after ``get_transaction`` confirms the previous attempt
never reached the ledger. A retry resubmits the same signed blob, so the
ledger itself rejects a duplicate. A Pacer spaces consecutive submissions.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from laylaa.catalog import AssetCatalog, TokenType
from laylaa.core import amount_str, to_decimal
from laylaa.errors import (
    BurnProofError,
    InvalidAmount,
    LedgerUnavailable,
    PartialIssuanceFailure,
    TransactionNotFound,
)
from laylaa.ledger import (
    SUCCESS_CODE,
    LedgerClient,
    LedgerTransaction,
    Memo,
    SignedTransaction,
    SubmitResult,
)
from laylaa.observability import (
    LaylaaLayer,
    generate_correlation_id,
    get_logger,
    get_tracer,
    set_correlation_id,
)
from laylaa.resilience import Pacer, RetryExhaustedError, RetryPolicy

logger = get_logger("orchestrator", LaylaaLayer.ISSUANCE)

DEFAULT_TRUST_LIMIT = Decimal("100000")

STAGE_TRUST_LINE = "trust_line"
STAGE_ISSUE = "issue"


@dataclass
class TokenIssuanceResult:
    """Per-token outcome, in catalog order."""
    token_type: str
    success: bool
    transaction_hash: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 0
    trust_line_hash: Optional[str] = None
    failure: Optional[PartialIssuanceFailure] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "token_type": self.token_type,
            "success": self.success,
            "attempts": self.attempts,
            "trust_line_hash": self.trust_line_hash,
        }
        if self.success:
            result["transaction_hash"] = self.transaction_hash
        else:
            result["error_code"] = self.error_code
            if self.failure is not None:
                result["failure"] = self.failure.to_dict()
        return result


@dataclass
class IssuanceReport:
    """
    Built incrementally during a batch run.

    A token type appears at most once; ``success`` requires every catalog
    token to have been attempted and to have succeeded.
    """
    holder: str
    issuer: str
    expected_count: int
    results: List[TokenIssuanceResult] = field(default_factory=list)
    issuer_setup_hash: Optional[str] = None
    issuer_setup_error: Optional[str] = None
    finalized: bool = False

    def record(self, result: TokenIssuanceResult) -> None:
        if self.finalized:
            raise ValueError("Issuance report is finalized")
        if any(r.token_type == result.token_type for r in self.results):
            raise ValueError(f"Token type already recorded: {result.token_type}")
        self.results.append(result)

    def finalize(self) -> "IssuanceReport":
        self.finalized = True
        return self

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total_attempted(self) -> int:
        return len(self.results)

    @property
    def success(self) -> bool:
        return self.success_count == self.total_attempted == self.expected_count

    @property
    def failures(self) -> List[PartialIssuanceFailure]:
        return [r.failure for r in self.results if r.failure is not None]

    def result_for(self, token_type: str) -> Optional[TokenIssuanceResult]:
        for r in self.results:
            if r.token_type == token_type:
                return r
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "holder": self.holder,
            "issuer": self.issuer,
            "success": self.success,
            "success_count": self.success_count,
            "total_attempted": self.total_attempted,
            "expected_count": self.expected_count,
            "issuer_setup_hash": self.issuer_setup_hash,
            "issuer_setup_error": self.issuer_setup_error,
            "results": [r.to_dict() for r in self.results],
        }


class _AttemptLanded(Exception):
    """A failed-looking attempt turned out to be on the ledger."""

    def __init__(self, result: SubmitResult):
        self.result = result
        super().__init__(f"Transaction {result.tx_hash} already landed")


@dataclass
class _SubmitOutcome:
    result: Optional[SubmitResult]
    attempts: int
    tx_hash: Optional[str]
    error: Optional[Exception] = None

    @property
    def error_code(self) -> str:
        if self.error is not None:
            return error_code_of(self.error)
        return self.result.result_code if self.result else "unknown"


def error_code_of(exc: Exception) -> str:
    """Domain error code, or the exception class name for anything else."""
    if isinstance(exc, BurnProofError):
        return exc.code
    return type(exc).__name__


def default_retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, retryable_exceptions=(LedgerUnavailable,))


def trust_line_memo(token: TokenType) -> Memo:
    return Memo(
        memo_type="laylaa_trust_line",
        memo_data=f"LAYLAA {token.symbol} Trust - {token.media_format}",
        memo_format=token.media_format,
    )


def issuance_memo(token: TokenType) -> Memo:
    return Memo(
        memo_type="laylaa_issuance",
        memo_data=f"LAYLAA {token.symbol} Issuance - {token.media_format} Asset",
        memo_format=token.media_format,
    )


def issuer_setup_memo(catalog: AssetCatalog) -> Memo:
    return Memo(
        memo_type="laylaa_setup",
        memo_data=f"LAYLAA Token Issuer - {catalog.size} Assets",
    )


class IssuanceOrchestrator:
    """
    Sets up a holder for every catalog token.

    Args:
        client: ledger client able to sign for both issuer and holder
        catalog: token types to issue, in order
        issuer_address: issuing account
        retry_policy: policy for LedgerUnavailable during submission
        pacing: Pacer spacing consecutive submissions (default 1 s)
        trust_limit: trust line limit requested for each token
    """

    def __init__(
        self,
        client: LedgerClient,
        catalog: AssetCatalog,
        issuer_address: str,
        retry_policy: Optional[RetryPolicy] = None,
        pacing: Optional[Pacer] = None,
        trust_limit: Decimal = DEFAULT_TRUST_LIMIT,
        success_code: str = SUCCESS_CODE,
    ):
        self.client = client
        self.catalog = catalog
        self.issuer_address = issuer_address
        self.retry_policy = retry_policy or default_retry_policy()
        self.pacer = pacing if pacing is not None else Pacer(1.0)
        self.trust_limit = to_decimal(trust_limit)
        self.success_code = success_code

    # -- submission -----------------------------------------------------------

    def _submit(self, tx: LedgerTransaction, token_type: Optional[str]) -> _SubmitOutcome:
        """Sign once, submit with retry, never resubmit a landed attempt."""
        state: Dict[str, Any] = {"signed": None, "attempts": 0}

        def attempt() -> SubmitResult:
            state["attempts"] += 1
            if state["signed"] is None:
                state["signed"] = self.client.sign(tx)
            signed: SignedTransaction = state["signed"]
            self.pacer.wait()
            return self.client.submit(signed)

        def confirm_not_landed(attempt_number: int, exc: Exception) -> None:
            if not isinstance(exc, LedgerUnavailable):
                raise exc
            signed: Optional[SignedTransaction] = state["signed"]
            if signed is None:
                return
            try:
                facts = self.client.get_transaction(signed.tx_hash)
            except TransactionNotFound:
                logger.warning(
                    "Submission did not land; retrying",
                    token_type=token_type,
                    transaction_hash=signed.tx_hash,
                    attempt=attempt_number,
                    reason=str(exc),
                )
                return
            raise _AttemptLanded(SubmitResult(
                tx_hash=signed.tx_hash,
                result_code=facts.result_code,
                ledger_index=facts.ledger_index or 0,
            ))

        try:
            result = self.retry_policy.execute(attempt, before_retry=confirm_not_landed)
        except _AttemptLanded as landed:
            return _SubmitOutcome(landed.result, state["attempts"], landed.result.tx_hash)
        except RetryExhaustedError as e:
            return _SubmitOutcome(None, state["attempts"], _hash_of(state), e.last_exception)
        except BurnProofError as e:
            return _SubmitOutcome(None, state["attempts"], _hash_of(state), e)
        except Exception as e:
            logger.error(
                "Unexpected submission error",
                error_code=error_code_of(e),
                token_type=token_type,
                transaction_hash=_hash_of(state),
                exc_info=True,
            )
            return _SubmitOutcome(None, state["attempts"], _hash_of(state), e)
        return _SubmitOutcome(result, state["attempts"], result.tx_hash)

    # -- steps ----------------------------------------------------------------

    def configure_issuer(self) -> _SubmitOutcome:
        """Enable default rippling on the issuer account."""
        tx = LedgerTransaction.default_ripple(
            self.issuer_address, memos=(issuer_setup_memo(self.catalog),)
        )
        return self._submit(tx, None)

    def _trust_line_needed(self, holder: str, token: TokenType, amount: Decimal) -> Optional[Decimal]:
        """Limit to request, or None if the existing line already suffices."""
        for line in self.client.get_trust_lines(holder):
            if line.currency == token.symbol and line.issuer == self.issuer_address:
                required = line.balance + amount
                if line.limit >= required:
                    return None
                return max(self.trust_limit, required)
        return max(self.trust_limit, amount)

    def _issue_token(self, holder: str, token: TokenType, amount: Decimal) -> TokenIssuanceResult:
        attempts = 0
        trust_line_hash = None

        try:
            limit = self._trust_line_needed(holder, token, amount)
        except BurnProofError as e:
            return self._failed(token, STAGE_TRUST_LINE, e.code, str(e), attempts)
        except Exception as e:
            logger.error(
                "Unexpected trust line read error",
                error_code=error_code_of(e),
                token_type=token.symbol,
                exc_info=True,
            )
            return self._failed(token, STAGE_TRUST_LINE, error_code_of(e), str(e), attempts)

        if limit is not None:
            outcome = self._submit(
                LedgerTransaction.trust_set(
                    holder, token.symbol, self.issuer_address, limit,
                    memos=(trust_line_memo(token),),
                ),
                token.symbol,
            )
            attempts += outcome.attempts
            trust_line_hash = outcome.tx_hash
            if outcome.result is None or outcome.result.result_code != self.success_code:
                return self._failed(
                    token, STAGE_TRUST_LINE, outcome.error_code,
                    str(outcome.error or "trust line rejected"), attempts,
                    transaction_hash=outcome.tx_hash,
                )

        outcome = self._submit(
            LedgerTransaction.payment(
                self.issuer_address, holder, token.symbol, self.issuer_address, amount,
                memos=(issuance_memo(token),),
            ),
            token.symbol,
        )
        attempts += outcome.attempts
        if outcome.result is None or outcome.result.result_code != self.success_code:
            result = self._failed(
                token, STAGE_ISSUE, outcome.error_code,
                str(outcome.error or "issue payment rejected"), attempts,
                transaction_hash=outcome.tx_hash,
            )
            result.trust_line_hash = trust_line_hash
            return result

        logger.info(
            "Token issued",
            token_type=token.symbol,
            amount=amount_str(amount),
            transaction_hash=outcome.tx_hash,
            attempts=attempts,
        )
        return TokenIssuanceResult(
            token_type=token.symbol,
            success=True,
            transaction_hash=outcome.tx_hash,
            attempts=attempts,
            trust_line_hash=trust_line_hash,
        )

    def _failed(
        self,
        token: TokenType,
        stage: str,
        error_code: str,
        message: str,
        attempts: int,
        transaction_hash: Optional[str] = None,
    ) -> TokenIssuanceResult:
        failure = PartialIssuanceFailure(
            token_type=token.symbol,
            stage=stage,
            error_code=error_code,
            message=message,
            transaction_hash=transaction_hash,
        )
        logger.error(
            f"Issuance failed at {stage}",
            error_code=error_code,
            token_type=token.symbol,
            transaction_hash=transaction_hash,
            attempts=attempts,
        )
        return TokenIssuanceResult(
            token_type=token.symbol,
            success=False,
            error_code=error_code,
            attempts=attempts,
            transaction_hash=None,
            failure=failure,
        )

    # -- batch ----------------------------------------------------------------

    def setup_and_issue(
        self,
        holder: str,
        per_token_amount: Union[Decimal, int, str],
        configure_issuer: bool = True,
    ) -> IssuanceReport:
        """
        Trust line + issue for every catalog token, in catalog order.

        Returns the finalized report; per-token failures are inside it.
        Raises InvalidAmount before any submission if the amount is not
        strictly positive.
        """
        try:
            amount = to_decimal(per_token_amount)
        except ValueError:
            raise InvalidAmount(per_token_amount) from None
        if amount <= 0:
            raise InvalidAmount(amount)

        set_correlation_id(generate_correlation_id())
        tracer = get_tracer()
        tracer.start_trace()
        report = IssuanceReport(
            holder=holder,
            issuer=self.issuer_address,
            expected_count=self.catalog.size,
        )
        start = time.monotonic()

        with tracer.span(
            "setup_and_issue", LaylaaLayer.ISSUANCE, holder=holder, tokens=self.catalog.size
        ) as span:
            if configure_issuer:
                outcome = self.configure_issuer()
                report.issuer_setup_hash = outcome.tx_hash
                if outcome.result is None or outcome.result.result_code != self.success_code:
                    report.issuer_setup_error = outcome.error_code
                    logger.warning(
                        "Issuer setup failed; continuing",
                        error_code=outcome.error_code,
                        transaction_hash=outcome.tx_hash,
                    )

            for token in self.catalog:
                result = self._issue_token(holder, token, amount)
                if not result.success:
                    span.record_event(
                        "token_failed", token_type=token.symbol, error_code=result.error_code
                    )
                report.record(result)

        logger.operation(
            "setup_and_issue",
            (time.monotonic() - start) * 1000,
            success=report.success,
            holder=holder,
            success_count=report.success_count,
            total_attempted=report.total_attempted,
        )
        return report.finalize()


def _hash_of(state: Dict[str, Any]) -> Optional[str]:
    signed = state.get("signed")
    return signed.tx_hash if signed is not None else None
