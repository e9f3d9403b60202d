"""
xrpl-py adapter tests. Model translation and response mapping run offline
against a fake websocket client; the live round trip needs
LAYLAA_RUN_TESTNET=1.
"""

import asyncio
from decimal import Decimal

import pytest
from xrpl.models.transactions import AccountSet, AccountSetAsfFlag, Payment, TrustSet

from laylaa import xrpl_adapter
from laylaa.core import hex_to_str
from laylaa.errors import LedgerUnavailable, TransactionNotFound
from laylaa.ledger import LedgerTransaction, Memo, SignedTransaction
from laylaa.xrpl_adapter import XrplLedgerClient, to_xrpl_transaction

ISSUER = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
HOLDER = "rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe"


class _Response:
    def __init__(self, result, ok=True):
        self.result = result
        self._ok = ok

    def is_successful(self):
        return self._ok


class _FakeWebsocket:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.open = True

    def request(self, request):
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def is_open(self):
        return self.open

    def close(self):
        self.open = False


class TestModelTranslation:

    def test_burn_payment(self):
        tx = LedgerTransaction.payment(
            HOLDER, ISSUER, "LYA", ISSUER, Decimal("10.50"),
            memos=(Memo("laylaa_burn", "LAYLAA LYA Burn - 10.5 for media NFT", "image/jpeg"),),
        )
        model = to_xrpl_transaction(tx)
        assert isinstance(model, Payment)
        assert model.account == HOLDER
        assert model.destination == ISSUER
        assert model.amount.currency == "LYA"
        assert model.amount.issuer == ISSUER
        assert model.amount.value == "10.5"
        memo = model.memos[0]
        assert hex_to_str(memo.memo_type) == "laylaa_burn"
        assert hex_to_str(memo.memo_format) == "image/jpeg"

    def test_trust_set(self):
        tx = LedgerTransaction.trust_set(HOLDER, "LYM", ISSUER, Decimal("100000"))
        model = to_xrpl_transaction(tx)
        assert isinstance(model, TrustSet)
        assert model.limit_amount.value == "100000"
        assert model.memos is None

    def test_default_ripple(self):
        model = to_xrpl_transaction(LedgerTransaction.default_ripple(ISSUER))
        assert isinstance(model, AccountSet)
        assert model.set_flag == AccountSetAsfFlag.ASF_DEFAULT_RIPPLE


class TestResponseMapping:

    def test_txn_not_found(self):
        ws = _FakeWebsocket([_Response({"error": "txnNotFound"}, ok=False)])
        with pytest.raises(TransactionNotFound):
            XrplLedgerClient(ws).get_transaction("AB" * 32)

    def test_other_errors_are_unavailable(self):
        ws = _FakeWebsocket([_Response({"error": "noNetwork", "error_message": "down"}, ok=False)])
        with pytest.raises(LedgerUnavailable, match="noNetwork"):
            XrplLedgerClient(ws).get_ledger(5)

    def test_transport_error(self):
        ws = _FakeWebsocket([ConnectionResetError("reset")])
        with pytest.raises(LedgerUnavailable):
            XrplLedgerClient(ws).get_trust_lines(HOLDER)

    def test_transaction_facts(self):
        ws = _FakeWebsocket([_Response({
            "hash": "AB" * 32,
            "validated": True,
            "ledger_index": 4321,
            "meta": {"TransactionResult": "tesSUCCESS"},
            "Account": HOLDER,
            "Destination": ISSUER,
            "Fee": "12",
            "Sequence": 7,
            "Memos": [{"Memo": {"MemoType": "6C"}}],
        })])
        facts = XrplLedgerClient(ws).get_transaction("AB" * 32)
        assert facts.account == HOLDER
        assert facts.destination == ISSUER
        assert facts.sequence == 7
        assert facts.validated
        assert facts.result_code == "tesSUCCESS"
        assert facts.ledger_index == 4321

    def test_ledger_facts(self):
        ws = _FakeWebsocket([_Response({
            "ledger_hash": "CD" * 32,
            "ledger": {
                "ledger_index": "4321",
                "close_time": 780000123,
                "parent_hash": "EF" * 32,
                "total_coins": "99999999999",
            },
        })])
        facts = XrplLedgerClient(ws).get_ledger(4321)
        assert facts.ledger_index == 4321
        assert facts.ledger_hash == "CD" * 32
        assert facts.parent_hash == "EF" * 32
        assert facts.close_time == 780000123

    def test_trust_lines_paged(self):
        ws = _FakeWebsocket([
            _Response({
                "lines": [{"currency": "LYA", "account": ISSUER, "balance": "5", "limit": "100000"}],
                "marker": "next",
            }),
            _Response({
                "lines": [{"currency": "LYB", "account": ISSUER, "balance": "0", "limit": "100000"}],
            }),
        ])
        lines = XrplLedgerClient(ws).get_trust_lines(HOLDER)
        assert [line.currency for line in lines] == ["LYA", "LYB"]
        assert lines[0].balance == Decimal("5")
        assert ws.requests[1].marker == "next"

    def test_timeout_is_unavailable(self):
        ws = _FakeWebsocket([asyncio.TimeoutError()])
        with pytest.raises(LedgerUnavailable):
            XrplLedgerClient(ws).get_ledger(5)

    def test_submit_response_without_meta(self, monkeypatch):
        tx_hash = "AB" * 32
        client = XrplLedgerClient(_FakeWebsocket([]))
        client._signed[tx_hash] = object()
        monkeypatch.setattr(
            xrpl_adapter, "submit_and_wait",
            lambda model, ws: _Response({"hash": tx_hash, "ledger_index": 12}),
        )
        signed = SignedTransaction(tx_hash, "00", LedgerTransaction.default_ripple(ISSUER), 1)
        with pytest.raises(LedgerUnavailable) as exc_info:
            client.submit(signed)
        assert exc_info.value.transaction_hash == tx_hash

    def test_submit_result_mapping(self, monkeypatch):
        tx_hash = "AB" * 32
        client = XrplLedgerClient(_FakeWebsocket([]))
        client._signed[tx_hash] = object()
        monkeypatch.setattr(
            xrpl_adapter, "submit_and_wait",
            lambda model, ws: _Response({
                "hash": tx_hash,
                "ledger_index": 12,
                "meta": {"TransactionResult": "tesSUCCESS"},
            }),
        )
        signed = SignedTransaction(tx_hash, "00", LedgerTransaction.default_ripple(ISSUER), 1)
        result = client.submit(signed)
        assert result.result_code == "tesSUCCESS"
        assert result.ledger_index == 12

    def test_sign_requires_wallet(self):
        client = XrplLedgerClient(_FakeWebsocket([]))
        with pytest.raises(ValueError):
            client.sign(LedgerTransaction.default_ripple(ISSUER))

    def test_close(self):
        ws = _FakeWebsocket([])
        XrplLedgerClient(ws).close()
        assert not ws.open


@pytest.mark.testnet
class TestTestnet:

    def test_ledger_reachable(self):
        from laylaa.config import get_config

        client = XrplLedgerClient.connect(get_config().ledger.url.get(), timeout=30)
        try:
            with pytest.raises(TransactionNotFound):
                client.get_transaction("0" * 64)
        finally:
            client.close()
