"""
LAYLAA: burn-to-proof toolkit for media-backed ledger tokens

A family of fungible tokens (issued currencies on the XRP Ledger) each
entitle a holder to mint one media asset on a separate verification chain.
Burning tokens yields a hash-committed proof that names the selected asset.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │  ORCHESTRATION                                                          │
    │    issuance.py    Trust lines + issue across the catalog, retry, pacing │
    │    burn.py        Preconditions, single submission, proof assembly      │
    │                                                                         │
    │  DERIVATION                                                             │
    │    selector.py    tx hash -> media id  ((int(hash[-8:], 16) % N) + 1)   │
    │    proof.py       Proof record, commitment hash, replay, persistence    │
    │    catalog.py     Token types, media formats, asset classes             │
    │                                                                         │
    │  LEDGER BOUNDARY                                                        │
    │    ledger.py      LedgerClient protocol, value types, in-memory mock    │
    │    xrpl_adapter.py  LedgerClient over xrpl-py                           │
    │                                                                         │
    │  AMBIENT                                                                │
    │    config.py  observability.py  resilience.py  core.py  schema.py       │
    └─────────────────────────────────────────────────────────────────────────┘

Data flow
─────────

    IssuanceOrchestrator populates balances -> BurnCoordinator consumes one
    and produces a burn transaction -> MediaSelector maps its hash -> the
    ProofAssembler binds transaction, ledger facts and selection into a Proof.

Copyright (c) 2026 Momentum. All rights reserved.
"""

__version__ = "0.3.0"

# Lazy imports; xrpl-py loads only when the adapter is used


def __getattr__(name):
    """Lazy import LAYLAA modules on first access."""

    if name in ("AssetCatalog", "AssetClass", "TokenType", "asset_class",
                "single_asset_catalog", "multi_asset_catalog", "catalog_for_mode"):
        from laylaa import catalog
        return getattr(catalog, name)

    if name in ("MediaSelector", "select_media"):
        from laylaa import selector
        return getattr(selector, name)

    if name in ("Proof", "ProofAssembler", "BurnTransaction", "replay", "verify",
                "save_proof", "load_proof"):
        from laylaa import proof
        return getattr(proof, name)

    if name in ("BurnCoordinator", "BurnResult"):
        from laylaa import burn
        return getattr(burn, name)

    if name in ("IssuanceOrchestrator", "IssuanceReport", "TokenIssuanceResult"):
        from laylaa import issuance
        return getattr(issuance, name)

    if name in ("LedgerClient", "MockLedgerClient", "ledger_session", "Balance",
                "LedgerTransaction", "TransactionFacts", "LedgerFacts", "TrustLine"):
        from laylaa import ledger
        return getattr(ledger, name)

    if name in ("BurnProofError", "InvalidAmount", "UnknownTokenType",
                "InsufficientBalance", "BurnRejected", "InvalidTransactionHash",
                "LedgerUnavailable", "TransactionNotFound", "PartialIssuanceFailure",
                "CatalogError", "ProofVerificationError", "ConfigError"):
        from laylaa import errors
        return getattr(errors, name)

    if name in ("RetryPolicy", "BackoffStrategy", "RetryExhaustedError", "Pacer"):
        from laylaa import resilience
        return getattr(resilience, name)

    raise AttributeError(f"module 'laylaa' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Catalog
    "AssetCatalog",
    "AssetClass",
    "TokenType",
    "single_asset_catalog",
    "multi_asset_catalog",
    "catalog_for_mode",
    # Selection and proofs
    "MediaSelector",
    "select_media",
    "Proof",
    "ProofAssembler",
    "BurnTransaction",
    "replay",
    "verify",
    "save_proof",
    "load_proof",
    # Orchestration
    "BurnCoordinator",
    "BurnResult",
    "IssuanceOrchestrator",
    "IssuanceReport",
    # Ledger
    "LedgerClient",
    "MockLedgerClient",
    "ledger_session",
    # Errors
    "BurnProofError",
    "InvalidAmount",
    "UnknownTokenType",
    "InsufficientBalance",
    "BurnRejected",
    "InvalidTransactionHash",
    "LedgerUnavailable",
    "PartialIssuanceFailure",
    # Resilience
    "RetryPolicy",
    "Pacer",
]
