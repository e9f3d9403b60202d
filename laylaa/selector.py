"""
LAYLAA Media Selector

Maps a burn transaction hash to the media asset it entitles the holder to
mint. The mapping is fixed and shared with the external verifier:

    H        = int(tx_hash[-8:], 16)      # unsigned 32-bit
    media_id = (H mod N) + 1              # 1..N

N is the size of the media set (25 in both modes). Example:
"ABCDEF1234567890" -> "34567890" -> 878082192 -> 878082192 % 25 = 17
-> media id 18.

Anyone holding only the transaction hash can re-derive the selection.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from laylaa.catalog import AssetCatalog, TokenType
from laylaa.core import is_hex
from laylaa.errors import InvalidTransactionHash

SUFFIX_LENGTH = 8


def select_media(tx_hash: str, catalog_size: int) -> int:
    """Deterministic media id in [1, catalog_size] for a transaction hash."""
    if catalog_size < 1:
        raise ValueError(f"catalog_size must be at least 1, got {catalog_size}")
    if not isinstance(tx_hash, str):
        raise InvalidTransactionHash(tx_hash, "not a string")
    if len(tx_hash) < SUFFIX_LENGTH:
        raise InvalidTransactionHash(
            tx_hash, f"needs at least {SUFFIX_LENGTH} hex characters"
        )

    suffix = tx_hash[-SUFFIX_LENGTH:]
    if not is_hex(suffix):
        raise InvalidTransactionHash(tx_hash, f"suffix {suffix!r} is not hex")

    return (int(suffix, 16) % catalog_size) + 1


class MediaSelector:
    """Media selection over a catalog's media assets."""

    def __init__(self, catalog: AssetCatalog):
        self.catalog = catalog

    @property
    def media_count(self) -> int:
        return self.catalog.media.size

    def select(self, tx_hash: str) -> int:
        return select_media(tx_hash, self.media_count)

    def select_token(self, tx_hash: str) -> TokenType:
        """Media asset selected by the hash."""
        return self.catalog.media.by_index(self.select(tx_hash))
