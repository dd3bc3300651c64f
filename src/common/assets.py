from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True)
class AssetDescriptor:
    symbol: str
    display_name: str
    currency_symbol: str


DEFAULT_ASSETS: Tuple[AssetDescriptor, ...] = (
    AssetDescriptor("WPEA.PA", "ETF Monde (WPEA)", "€"),
    AssetDescriptor("ESE.PA", "ETF S&P500 (ESE)", "€"),
    AssetDescriptor("VERX.AS", "ETF Europe (VERX)", "€"),
    AssetDescriptor("PAASI.PA", "ETF Asie (PAASI)", "€"),
    AssetDescriptor("DBXJ.DE", "ETF Japon (PTPXE)", "€"),
    AssetDescriptor("4BRZ.DE", "ETF Brésil (4BRZ)", "€"),
    AssetDescriptor("PPFB.DE", "ETF Gold (PPFB)", "€"),
    AssetDescriptor("BTC-USD", "Bitcoin", "$"),
)


def find_by_display_name(name: str, assets: Sequence[AssetDescriptor] = DEFAULT_ASSETS) -> Optional[AssetDescriptor]:
    return next((a for a in assets if a.display_name == name), None)


__all__ = ["AssetDescriptor", "DEFAULT_ASSETS", "find_by_display_name"]
