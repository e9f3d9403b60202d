"""
LAYLAA Proof Assembler

Builds the hash-committed record that binds a confirmed burn to the media
asset it selected. The record is the literal input of the external
verification circuit, so everything here is a pure transformation over facts
already fetched from the ledger: no I/O, no retries.

Commitment:

    proofHash = sha256( compact JSON of the committed fields, in order )

    default          xrplTxHash burnAmount burnerAddress currency issuer
                     ledgerIndex timestamp
    include_media_id xrplTxHash burnAmount burnerAddress currency issuer
                     mediaId ledgerIndex timestamp

The committed field list is stored with the record (``commitment``) so a
verifier can recompute the hash without knowing how the assembler was
configured. Amounts are committed as decimal strings; floats never enter
the serialization.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from laylaa.catalog import asset_class
from laylaa.core import (
    amount_str,
    canonical_json_bytes,
    load_json,
    sha256_bytes,
    to_decimal,
    write_canonical_json,
)
from laylaa.errors import InvalidAmount, ProofVerificationError
from laylaa.ledger import LedgerFacts, TransactionFacts
from laylaa.observability import LaylaaLayer, get_logger
from laylaa.schema import validate_proof_record

logger = get_logger("assembler", LaylaaLayer.PROOF)

COMMITTED_FIELDS: Tuple[str, ...] = (
    "xrplTxHash",
    "burnAmount",
    "burnerAddress",
    "currency",
    "issuer",
    "ledgerIndex",
    "timestamp",
)

COMMITTED_FIELDS_WITH_MEDIA: Tuple[str, ...] = (
    "xrplTxHash",
    "burnAmount",
    "burnerAddress",
    "currency",
    "issuer",
    "mediaId",
    "ledgerIndex",
    "timestamp",
)

KNOWN_COMMITMENTS = (COMMITTED_FIELDS, COMMITTED_FIELDS_WITH_MEDIA)


@dataclass(frozen=True)
class BurnTransaction:
    """A burn the ledger settled. Created once per successful submission."""
    hash: str
    token_type: str
    amount: Decimal
    burner_address: str
    issuer_address: str
    ledger_index: int
    result_code: str


@dataclass(frozen=True)
class Proof:
    """Burn proof. Never mutated after assembly."""
    xrpl_tx_hash: str
    burn_amount: Decimal
    burner_address: str
    token_type: str
    issuer: str
    media_id: int
    media_format: str
    asset_type: str
    ledger_index: int
    ledger_hash: str
    timestamp: int
    transaction_details: Dict[str, Any] = field(hash=False)
    ledger_proof: Dict[str, Any] = field(hash=False)
    transaction_result: str
    validated: bool
    commitment: Tuple[str, ...]
    proof_hash: str

    def commitment_values(self) -> Dict[str, Any]:
        return _commitment_values(
            self.xrpl_tx_hash,
            self.burn_amount,
            self.burner_address,
            self.token_type,
            self.issuer,
            self.media_id,
            self.ledger_index,
            self.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Flat record with camelCase keys, as persisted and verified."""
        return {
            "xrplTxHash": self.xrpl_tx_hash,
            "burnAmount": amount_str(self.burn_amount),
            "burnerAddress": self.burner_address,
            "tokenType": self.token_type,
            "issuer": self.issuer,
            "mediaId": self.media_id,
            "mediaFormat": self.media_format,
            "assetType": self.asset_type,
            "ledgerIndex": self.ledger_index,
            "ledgerHash": self.ledger_hash,
            "timestamp": self.timestamp,
            "transactionDetails": dict(self.transaction_details),
            "ledgerProof": dict(self.ledger_proof),
            "transactionResult": self.transaction_result,
            "validated": self.validated,
            "commitment": list(self.commitment),
            "proofHash": self.proof_hash,
        }

    def circuit_inputs(self, recipient: str) -> Dict[str, Any]:
        """
        Expected inputs of the verification circuit.

        ``burnAmount`` is an unsigned integer there; fractional burns
        cannot be expressed and raise InvalidAmount.
        """
        if self.burn_amount != self.burn_amount.to_integral_value() or self.burn_amount < 0:
            raise InvalidAmount(self.burn_amount, token_type=self.token_type)
        return {
            "xrplTxHash": self.xrpl_tx_hash,
            "burnAmount": int(self.burn_amount),
            "mediaId": self.media_id,
            "recipient": recipient,
        }


def _commitment_values(
    tx_hash: str,
    amount: Decimal,
    burner: str,
    currency: str,
    issuer: str,
    media_id: int,
    ledger_index: int,
    timestamp: int,
) -> Dict[str, Any]:
    return {
        "xrplTxHash": tx_hash,
        "burnAmount": amount_str(amount),
        "burnerAddress": burner,
        "currency": currency,
        "issuer": issuer,
        "mediaId": media_id,
        "ledgerIndex": ledger_index,
        "timestamp": timestamp,
    }


def compute_proof_hash(values: Mapping[str, Any], fields: Tuple[str, ...]) -> str:
    """SHA-256 over the compact JSON of ``fields`` taken in the given order."""
    ordered = {name: values[name] for name in fields}
    return sha256_bytes(canonical_json_bytes(ordered, sort_keys=False))


class ProofAssembler:
    """
    Assembles burn proofs.

    ``clock`` supplies the assembly time in seconds; ``include_media_id``
    selects the commitment field list.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        include_media_id: bool = False,
    ):
        self._clock = clock
        self.include_media_id = include_media_id

    @property
    def commitment(self) -> Tuple[str, ...]:
        return COMMITTED_FIELDS_WITH_MEDIA if self.include_media_id else COMMITTED_FIELDS

    def assemble(
        self,
        tx: BurnTransaction,
        transaction_facts: TransactionFacts,
        ledger_facts: LedgerFacts,
        media_id: int,
        media_format: str,
        timestamp: Optional[int] = None,
    ) -> Proof:
        """Build a Proof; ``timestamp`` defaults to the clock in whole seconds."""
        if timestamp is None:
            timestamp = int(self._clock())

        values = _commitment_values(
            tx.hash,
            tx.amount,
            tx.burner_address,
            tx.token_type,
            tx.issuer_address,
            media_id,
            tx.ledger_index,
            timestamp,
        )
        proof_hash = compute_proof_hash(values, self.commitment)

        proof = Proof(
            xrpl_tx_hash=tx.hash,
            burn_amount=tx.amount,
            burner_address=tx.burner_address,
            token_type=tx.token_type,
            issuer=tx.issuer_address,
            media_id=media_id,
            media_format=media_format,
            asset_type=asset_class(media_format).value,
            ledger_index=tx.ledger_index,
            ledger_hash=ledger_facts.ledger_hash,
            timestamp=timestamp,
            transaction_details=transaction_facts.details(),
            ledger_proof={
                "closeTime": ledger_facts.close_time,
                "parentHash": ledger_facts.parent_hash,
                "totalCoins": ledger_facts.total_coins,
            },
            transaction_result=tx.result_code,
            validated=transaction_facts.validated,
            commitment=self.commitment,
            proof_hash=proof_hash,
        )
        logger.debug(
            "Proof assembled",
            transaction_hash=tx.hash,
            token_type=tx.token_type,
            media_id=media_id,
            proof_hash=proof_hash,
        )
        return proof


# =============================================================================
# REPLAY & VERIFICATION
# =============================================================================

def replay(record: Mapping[str, Any]) -> Proof:
    """
    Rebuild a Proof from a stored flat record, recomputing its hash.

    The stored ``proofHash`` is ignored; compare it with the result (or use
    :func:`verify`). Raises ProofVerificationError for records that cannot
    be interpreted.
    """
    try:
        commitment = tuple(record.get("commitment") or COMMITTED_FIELDS)
        if commitment not in KNOWN_COMMITMENTS:
            raise ProofVerificationError(f"Unknown commitment field list: {list(commitment)}")

        amount = to_decimal(record["burnAmount"])
        values = _commitment_values(
            record["xrplTxHash"],
            amount,
            record["burnerAddress"],
            record["tokenType"],
            record["issuer"],
            record["mediaId"],
            record["ledgerIndex"],
            record["timestamp"],
        )
        return Proof(
            xrpl_tx_hash=record["xrplTxHash"],
            burn_amount=amount,
            burner_address=record["burnerAddress"],
            token_type=record["tokenType"],
            issuer=record["issuer"],
            media_id=record["mediaId"],
            media_format=record["mediaFormat"],
            asset_type=record.get("assetType") or asset_class(record["mediaFormat"]).value,
            ledger_index=record["ledgerIndex"],
            ledger_hash=record["ledgerHash"],
            timestamp=record["timestamp"],
            transaction_details=dict(record.get("transactionDetails") or {}),
            ledger_proof=dict(record.get("ledgerProof") or {}),
            transaction_result=record.get("transactionResult", ""),
            validated=bool(record.get("validated", False)),
            commitment=commitment,
            proof_hash=compute_proof_hash(values, commitment),
        )
    except KeyError as e:
        raise ProofVerificationError(
            f"Proof record is missing field {e.args[0]}",
            transaction_hash=record.get("xrplTxHash"),
        ) from None
    except ValueError as e:
        raise ProofVerificationError(
            f"Proof record is malformed: {e}",
            transaction_hash=record.get("xrplTxHash"),
        ) from e


def verify(record: Mapping[str, Any]) -> bool:
    """True if the stored ``proofHash`` matches the recomputed commitment."""
    return replay(record).proof_hash == record.get("proofHash")


# =============================================================================
# PERSISTENCE
# =============================================================================

def proof_filename(proof: Proof) -> str:
    return f"burn-proof-{proof.token_type}-{proof.xrpl_tx_hash}.json"


def save_proof(directory: Union[str, Path], proof: Proof) -> Path:
    """Write the proof record as canonical JSON; returns the file path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / proof_filename(proof)
    digest = write_canonical_json(path, proof.to_dict())
    logger.info(
        "Proof saved",
        path=str(path),
        transaction_hash=proof.xrpl_tx_hash,
        token_type=proof.token_type,
        file_digest=digest,
    )
    return path


def load_proof(path: Union[str, Path]) -> Proof:
    """
    Load a stored proof, validating schema and commitment.

    Raises:
        ProofVerificationError: schema violations or hash mismatch
    """
    try:
        record = load_json(Path(path))
    except ValueError as e:
        raise ProofVerificationError(f"Proof record {path} is not valid JSON: {e}") from e
    errors = validate_proof_record(record)
    if errors:
        raise ProofVerificationError(
            f"Proof record {path} failed schema validation: " + "; ".join(errors),
            transaction_hash=record.get("xrplTxHash") if isinstance(record, dict) else None,
        )

    proof = replay(record)
    if proof.proof_hash != record["proofHash"]:
        raise ProofVerificationError(
            f"Proof hash mismatch: stored {record['proofHash']}, computed {proof.proof_hash}",
            token_type=proof.token_type,
            amount=proof.burn_amount,
            transaction_hash=proof.xrpl_tx_hash,
        )
    return proof
