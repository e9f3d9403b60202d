"""
LAYLAA Asset Catalog

Static registry of the media assets a burn can entitle a holder to mint.
Each asset is backed by one fungible token type (an issued currency code on
the ledger) and carries a MIME-like media format.

Two catalogs ship with the package:

    single   LAY                       N = 1   media: the 25 assets below
    multi    LYA LYB ... LYX LYZ       N = 25  (there is no LYY)

A catalog's ``media`` is the asset set a burn selects from. In multi mode
that is the catalog itself (one token per asset); the single LAY token
selects across the same 25 assets.

Iteration order is definition order and never changes, because the catalog
index of a token is its position in that order and burn proofs commit to it.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from laylaa.errors import CatalogError, UnknownTokenType


class AssetClass(Enum):
    """Coarse media category derived from the media format."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"


# Checked in order; first matching prefix wins.
ASSET_CLASS_PREFIXES: Tuple[Tuple[str, AssetClass], ...] = (
    ("image/", AssetClass.IMAGE),
    ("video/", AssetClass.VIDEO),
    ("audio/", AssetClass.AUDIO),
)


def asset_class(media_format: str) -> AssetClass:
    """Classify a media format by prefix; unknown formats are OTHER."""
    for prefix, cls in ASSET_CLASS_PREFIXES:
        if media_format.startswith(prefix):
            return cls
    return AssetClass.OTHER


@dataclass(frozen=True)
class TokenType:
    """One catalog entry: token symbol, media format and 1-based index."""
    symbol: str
    media_format: str
    catalog_index: int

    @property
    def asset_class(self) -> AssetClass:
        return asset_class(self.media_format)

    def to_dict(self) -> Dict[str, object]:
        return {
            "symbol": self.symbol,
            "media_format": self.media_format,
            "catalog_index": self.catalog_index,
            "asset_class": self.asset_class.value,
        }


class AssetCatalog:
    """
    Ordered, immutable registry of token types.

    Built from ``(symbol, media_format)`` pairs; indices are assigned
    1..N in the given order. ``media`` is the catalog burns select from;
    it defaults to this catalog.
    """

    def __init__(
        self,
        name: str,
        entries: Iterable[Tuple[str, str]],
        media: Optional["AssetCatalog"] = None,
    ):
        tokens: List[TokenType] = []
        by_symbol: Dict[str, TokenType] = {}

        for index, (symbol, media_format) in enumerate(entries, start=1):
            if not isinstance(symbol, str) or not 3 <= len(symbol) <= 4:
                raise CatalogError(f"Token symbol must be 3-4 characters: {symbol!r}")
            if symbol in by_symbol:
                raise CatalogError(f"Duplicate token symbol: {symbol}")
            if not media_format:
                raise CatalogError(f"Missing media format for {symbol}")
            token = TokenType(symbol=symbol, media_format=media_format, catalog_index=index)
            tokens.append(token)
            by_symbol[symbol] = token

        if not tokens:
            raise CatalogError(f"Catalog {name!r} is empty")

        self.name = name
        self._tokens: Tuple[TokenType, ...] = tuple(tokens)
        self._by_symbol = by_symbol
        self.media: AssetCatalog = media if media is not None else self

    @property
    def size(self) -> int:
        return len(self._tokens)

    @property
    def symbols(self) -> Tuple[str, ...]:
        return tuple(t.symbol for t in self._tokens)

    def all(self) -> Tuple[TokenType, ...]:
        return self._tokens

    def lookup(self, symbol: str) -> TokenType:
        """Find a token type by symbol."""
        try:
            return self._by_symbol[symbol]
        except KeyError:
            raise UnknownTokenType(symbol, self.symbols) from None

    def by_index(self, catalog_index: int) -> TokenType:
        """Find a token type by its 1-based catalog index."""
        if not 1 <= catalog_index <= len(self._tokens):
            raise UnknownTokenType(f"index {catalog_index}")
        return self._tokens[catalog_index - 1]

    def asset_class(self, media_format: str) -> AssetClass:
        return asset_class(media_format)

    def media_formats(self) -> Dict[str, str]:
        return {t.symbol: t.media_format for t in self._tokens}

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._by_symbol

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[TokenType]:
        return iter(self._tokens)

    def __repr__(self) -> str:
        return f"AssetCatalog({self.name!r}, size={self.size})"


# =============================================================================
# STANDARD CATALOGS
# =============================================================================

SINGLE_ASSET_ENTRIES: Tuple[Tuple[str, str], ...] = (
    ("LAY", "image/jpeg"),
)

MULTI_ASSET_ENTRIES: Tuple[Tuple[str, str], ...] = (
    ("LYA", "image/jpeg"), ("LYB", "image/png"), ("LYC", "video/mp4"),
    ("LYD", "image/gif"), ("LYE", "video/webm"), ("LYF", "image/svg"),
    ("LYG", "audio/mp3"), ("LYH", "image/webp"), ("LYI", "video/mov"),
    ("LYJ", "image/tiff"), ("LYK", "video/avi"), ("LYL", "image/bmp"),
    ("LYM", "audio/wav"), ("LYN", "image/heic"), ("LYO", "video/mkv"),
    ("LYP", "image/raw"), ("LYQ", "audio/flac"), ("LYR", "image/eps"),
    ("LYS", "video/wmv"), ("LYT", "image/ico"), ("LYU", "audio/aac"),
    ("LYV", "image/psd"), ("LYW", "video/flv"), ("LYX", "image/ai"),
    ("LYZ", "video/3gp"),
)


def single_asset_catalog() -> AssetCatalog:
    return AssetCatalog("single", SINGLE_ASSET_ENTRIES, media=multi_asset_catalog())


def multi_asset_catalog() -> AssetCatalog:
    return AssetCatalog("multi", MULTI_ASSET_ENTRIES)


def catalog_for_mode(mode: str) -> AssetCatalog:
    """Catalog for a config mode string ("single" or "multi")."""
    if mode == "single":
        return single_asset_catalog()
    if mode == "multi":
        return multi_asset_catalog()
    raise CatalogError(f"Unknown catalog mode: {mode!r}")
