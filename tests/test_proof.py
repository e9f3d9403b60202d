"""
Burn proof tests: commitment determinism and sensitivity, replay,
persistence and schema validation.
"""

import hashlib
import json
from dataclasses import replace
from decimal import Decimal

import pytest

from laylaa.core import canonical_json_bytes
from laylaa.errors import InvalidAmount, ProofVerificationError
from laylaa.ledger import LedgerFacts, TransactionFacts
from laylaa.proof import (
    COMMITTED_FIELDS,
    COMMITTED_FIELDS_WITH_MEDIA,
    BurnTransaction,
    ProofAssembler,
    load_proof,
    proof_filename,
    replay,
    save_proof,
    verify,
)
from laylaa.schema import validate_proof_record

TX_HASH = "E08D6E9754025BA2534A78707605E0601F03ACE063687A0CA1BDDACFCD1698C7"
LEDGER_HASH = "A" * 64
PARENT_HASH = "B" * 64
TIMESTAMP = 1760000000


@pytest.fixture
def burn_tx():
    return BurnTransaction(
        hash=TX_HASH,
        token_type="LYA",
        amount=Decimal("100"),
        burner_address="rHolder",
        issuer_address="rIssuer",
        ledger_index=1234,
        result_code="tesSUCCESS",
    )


@pytest.fixture
def tx_facts():
    return TransactionFacts(
        tx_hash=TX_HASH,
        account="rHolder",
        destination="rIssuer",
        fee="12",
        sequence=7,
        memos=({"Memo": {"MemoType": "6C61796C6161"}},),
        validated=True,
        result_code="tesSUCCESS",
        ledger_index=1234,
    )


@pytest.fixture
def ledger_facts():
    return LedgerFacts(
        ledger_index=1234,
        ledger_hash=LEDGER_HASH,
        close_time=813000000,
        parent_hash=PARENT_HASH,
        total_coins="99999999999999999",
    )


def _assemble(burn_tx, tx_facts, ledger_facts, include_media_id=False, **overrides):
    assembler = ProofAssembler(clock=lambda: TIMESTAMP + 0.9, include_media_id=include_media_id)
    return assembler.assemble(
        replace(burn_tx, **overrides),
        tx_facts,
        ledger_facts,
        media_id=5,
        media_format="video/webm",
    )


class TestProofHash:
    """Commitment over the ordered field list."""

    def test_matches_reference_serialization(self, burn_tx, tx_facts, ledger_facts):
        proof = _assemble(burn_tx, tx_facts, ledger_facts)
        expected = json.dumps({
            "xrplTxHash": TX_HASH,
            "burnAmount": "100",
            "burnerAddress": "rHolder",
            "currency": "LYA",
            "issuer": "rIssuer",
            "ledgerIndex": 1234,
            "timestamp": TIMESTAMP,
        }, separators=(",", ":")).encode()
        assert proof.proof_hash == hashlib.sha256(expected).hexdigest()

    def test_timestamp_is_whole_seconds_from_clock(self, burn_tx, tx_facts, ledger_facts):
        assert _assemble(burn_tx, tx_facts, ledger_facts).timestamp == TIMESTAMP

    def test_deterministic(self, burn_tx, tx_facts, ledger_facts):
        a = _assemble(burn_tx, tx_facts, ledger_facts)
        b = _assemble(burn_tx, tx_facts, ledger_facts)
        assert a.proof_hash == b.proof_hash
        assert a == b

    @pytest.mark.parametrize("field,value", [
        ("hash", "F" * 64),
        ("amount", Decimal("101")),
        ("burner_address", "rOther"),
        ("token_type", "LYB"),
        ("issuer_address", "rOtherIssuer"),
        ("ledger_index", 1235),
    ])
    def test_sensitive_to_each_committed_field(self, burn_tx, tx_facts, ledger_facts, field, value):
        base = _assemble(burn_tx, tx_facts, ledger_facts)
        changed = _assemble(burn_tx, tx_facts, ledger_facts, **{field: value})
        assert changed.proof_hash != base.proof_hash

    def test_sensitive_to_timestamp(self, burn_tx, tx_facts, ledger_facts):
        assembler = ProofAssembler()
        a = assembler.assemble(burn_tx, tx_facts, ledger_facts, 5, "video/webm", timestamp=1)
        b = assembler.assemble(burn_tx, tx_facts, ledger_facts, 5, "video/webm", timestamp=2)
        assert a.proof_hash != b.proof_hash

    def test_media_id_excluded_by_default(self, burn_tx, tx_facts, ledger_facts):
        assembler = ProofAssembler(clock=lambda: TIMESTAMP)
        a = assembler.assemble(burn_tx, tx_facts, ledger_facts, 5, "video/webm")
        b = assembler.assemble(burn_tx, tx_facts, ledger_facts, 6, "image/svg")
        assert a.proof_hash == b.proof_hash
        assert a.commitment == COMMITTED_FIELDS

    def test_media_id_included_when_configured(self, burn_tx, tx_facts, ledger_facts):
        assembler = ProofAssembler(clock=lambda: TIMESTAMP, include_media_id=True)
        a = assembler.assemble(burn_tx, tx_facts, ledger_facts, 5, "video/webm")
        b = assembler.assemble(burn_tx, tx_facts, ledger_facts, 6, "image/svg")
        assert a.proof_hash != b.proof_hash
        assert a.commitment == COMMITTED_FIELDS_WITH_MEDIA
        assert COMMITTED_FIELDS_WITH_MEDIA.index("mediaId") == COMMITTED_FIELDS.index("issuer") + 1

    def test_amount_rendering_is_normalized(self, burn_tx, tx_facts, ledger_facts):
        a = _assemble(burn_tx, tx_facts, ledger_facts, amount=Decimal("100"))
        b = _assemble(burn_tx, tx_facts, ledger_facts, amount=Decimal("100.00"))
        assert a.proof_hash == b.proof_hash

    def test_amount_committed_as_decimal_string(self, burn_tx, tx_facts, ledger_facts):
        proof = _assemble(burn_tx, tx_facts, ledger_facts)
        assert proof.commitment_values()["burnAmount"] == "100"
        as_number = dict(proof.commitment_values(), burnAmount=100)
        number_hash = hashlib.sha256(
            json.dumps({k: as_number[k] for k in COMMITTED_FIELDS}, separators=(",", ":")).encode()
        ).hexdigest()
        assert proof.proof_hash != number_hash


class TestProofRecord:
    """Flat record and circuit inputs."""

    def test_record_fields(self, burn_tx, tx_facts, ledger_facts):
        record = _assemble(burn_tx, tx_facts, ledger_facts).to_dict()
        assert record["xrplTxHash"] == TX_HASH
        assert record["burnAmount"] == "100"
        assert record["tokenType"] == "LYA"
        assert record["mediaId"] == 5
        assert record["assetType"] == "video"
        assert record["ledgerHash"] == LEDGER_HASH
        assert record["ledgerProof"] == {
            "closeTime": 813000000,
            "parentHash": PARENT_HASH,
            "totalCoins": "99999999999999999",
        }
        assert record["transactionDetails"]["sequence"] == 7
        assert record["validated"] is True
        assert record["transactionResult"] == "tesSUCCESS"

    def test_record_has_no_floats(self, burn_tx, tx_facts, ledger_facts):
        canonical_json_bytes(_assemble(burn_tx, tx_facts, ledger_facts).to_dict())

    def test_record_satisfies_schema(self, burn_tx, tx_facts, ledger_facts):
        assert validate_proof_record(_assemble(burn_tx, tx_facts, ledger_facts).to_dict()) == []

    def test_schema_rejects_missing_field(self, burn_tx, tx_facts, ledger_facts):
        record = _assemble(burn_tx, tx_facts, ledger_facts).to_dict()
        del record["ledgerHash"]
        assert validate_proof_record(record)

    def test_circuit_inputs(self, burn_tx, tx_facts, ledger_facts):
        inputs = _assemble(burn_tx, tx_facts, ledger_facts).circuit_inputs("midnight-key")
        assert inputs == {
            "xrplTxHash": TX_HASH,
            "burnAmount": 100,
            "mediaId": 5,
            "recipient": "midnight-key",
        }

    def test_circuit_inputs_reject_fractional_amount(self, burn_tx, tx_facts, ledger_facts):
        proof = _assemble(burn_tx, tx_facts, ledger_facts, amount=Decimal("1.5"))
        with pytest.raises(InvalidAmount):
            proof.circuit_inputs("key")


class TestReplay:
    """Re-deriving the commitment from stored facts."""

    def test_replay_is_byte_identical(self, burn_tx, tx_facts, ledger_facts):
        proof = _assemble(burn_tx, tx_facts, ledger_facts)
        replayed = replay(proof.to_dict())
        assert replayed.proof_hash == proof.proof_hash
        assert replayed.to_dict() == proof.to_dict()

    def test_replay_with_explicit_timestamp(self, burn_tx, tx_facts, ledger_facts):
        proof = _assemble(burn_tx, tx_facts, ledger_facts)
        again = ProofAssembler(clock=lambda: 0).assemble(
            burn_tx, tx_facts, ledger_facts, 5, "video/webm", timestamp=proof.timestamp
        )
        assert again.proof_hash == proof.proof_hash

    def test_replay_honours_stored_commitment(self, burn_tx, tx_facts, ledger_facts):
        proof = _assemble(burn_tx, tx_facts, ledger_facts, include_media_id=True)
        assert replay(proof.to_dict()).proof_hash == proof.proof_hash

    def test_verify(self, burn_tx, tx_facts, ledger_facts):
        record = _assemble(burn_tx, tx_facts, ledger_facts).to_dict()
        assert verify(record)
        record["burnAmount"] = "1000"
        assert not verify(record)

    def test_unknown_commitment_rejected(self, burn_tx, tx_facts, ledger_facts):
        record = _assemble(burn_tx, tx_facts, ledger_facts).to_dict()
        record["commitment"] = ["xrplTxHash"]
        with pytest.raises(ProofVerificationError):
            replay(record)

    def test_missing_field_rejected(self):
        with pytest.raises(ProofVerificationError):
            replay({"xrplTxHash": TX_HASH})


class TestPersistence:
    """save_proof / load_proof."""

    def test_round_trip(self, tmp_path, burn_tx, tx_facts, ledger_facts):
        proof = _assemble(burn_tx, tx_facts, ledger_facts)
        path = save_proof(tmp_path / "proofs", proof)
        assert path.name == proof_filename(proof) == f"burn-proof-LYA-{TX_HASH}.json"
        assert path.read_bytes().endswith(b"\n")
        loaded = load_proof(path)
        assert loaded.proof_hash == proof.proof_hash
        assert loaded.media_id == 5

    def test_tampered_file_fails(self, tmp_path, burn_tx, tx_facts, ledger_facts):
        path = save_proof(tmp_path, _assemble(burn_tx, tx_facts, ledger_facts))
        record = json.loads(path.read_text())
        record["burnerAddress"] = "rMallory"
        path.write_text(json.dumps(record))
        with pytest.raises(ProofVerificationError) as exc_info:
            load_proof(path)
        assert exc_info.value.transaction_hash == TX_HASH

    def test_schema_violation_fails(self, tmp_path, burn_tx, tx_facts, ledger_facts):
        path = save_proof(tmp_path, _assemble(burn_tx, tx_facts, ledger_facts))
        record = json.loads(path.read_text())
        record["mediaId"] = 0
        path.write_text(json.dumps(record))
        with pytest.raises(ProofVerificationError, match="schema"):
            load_proof(path)
