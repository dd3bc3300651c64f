from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Sequence

from .assets import DEFAULT_ASSETS, AssetDescriptor, find_by_display_name


START_COMMAND = "/start"
ALL_ASSETS_LABEL = "Tous les actifs"
MENU_PROMPT = "Sélectionne un actif 👇"

CommandKind = Literal["start", "all", "asset"]


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    asset: Optional[AssetDescriptor] = None


def parse_command(text: Optional[str], assets: Sequence[AssetDescriptor] = DEFAULT_ASSETS) -> Optional[Command]:
    """Map a chat message to a command; None for anything unrecognised.

    Matching is exact: menu buttons send their label verbatim.
    """
    if not text:
        return None
    if text == START_COMMAND:
        return Command("start")
    if text == ALL_ASSETS_LABEL:
        return Command("all")
    asset = find_by_display_name(text, assets)
    if asset is not None:
        return Command("asset", asset)
    return None


def menu_keyboard(assets: Sequence[AssetDescriptor] = DEFAULT_ASSETS) -> Dict[str, Any]:
    """Telegram ReplyKeyboardMarkup: one row per asset, then the all-assets row."""
    rows: List[List[str]] = [[a.display_name] for a in assets]
    rows.append([ALL_ASSETS_LABEL])
    return {"keyboard": rows, "resize_keyboard": True}


__all__ = [
    "ALL_ASSETS_LABEL",
    "Command",
    "MENU_PROMPT",
    "START_COMMAND",
    "menu_keyboard",
    "parse_command",
]
