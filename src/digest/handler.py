from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional, Sequence

from common.alpha_vantage import AlphaVantageClient
from common.assets import DEFAULT_ASSETS, AssetDescriptor
from common.config import Settings, cache_store_from_settings, load_settings
from common.digest import build_digest
from common.gateway import QuoteCacheGateway
from common.logging import get_logger, setup_logging
from common.quotes import QuoteService
from common.telegram import MARKDOWN, TelegramClient, TelegramError
from common.whitelist import is_target_allowed, parse_allowed_chat_ids


log = get_logger(__name__)


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def run_once(
    *,
    settings: Optional[Settings] = None,
    assets: Sequence[AssetDescriptor] = DEFAULT_ASSETS,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Build the all-assets digest and send it to the configured chat.

    - Assets are processed one after another; the provider throttle is global.
    - Missing data renders as N/A; provider failures never abort the digest.
    - Skipped (no-op) when an allow-list is configured without the target chat.

    Returns: {"ok": True, "assets": N, "sent": bool}.
    """
    settings = settings or load_settings()
    target = _require(settings.telegram_chat_id, "telegram_chat_id")
    try:
        chat_id: int | str = int(target)
    except ValueError:
        chat_id = target

    allowed = parse_allowed_chat_ids(settings.allowed_chat_ids)
    if not is_target_allowed(chat_id, allowed):
        log.warning("digest_target_not_allowed", chat_id=chat_id)
        return {
            "ok": True,
            "assets": 0,
            "sent": False,
            "note": "telegram_chat_id not in allowed_chat_ids; skipped",
        }

    gateway = QuoteCacheGateway(cache_store_from_settings(settings))
    sent = False
    with AlphaVantageClient(
        settings.alpha_vantage_api_key, min_interval=settings.av_min_interval
    ) as av, TelegramClient(settings.telegram_bot_token) as tg:
        quotes = QuoteService(av, gateway, ttls=settings.ttls, rsi_source=settings.rsi_source)
        text = build_digest(quotes, assets, today or date.today())
        try:
            tg.send_message(chat_id, text, parse_mode=MARKDOWN)
            sent = True
        except TelegramError as e:
            log.error("digest_send_failed", chat_id=chat_id, error=str(e))

    log.info("digest_done", assets=len(assets), sent=sent)
    return {"ok": True, "assets": len(assets), "sent": sent}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda entry for the scheduled (EventBridge) digest."""
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_format)
    return run_once(settings=settings)
