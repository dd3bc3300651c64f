from __future__ import annotations

import base64
import json
from datetime import date
from typing import Any, Dict, Optional, Sequence

from common.alpha_vantage import AlphaVantageClient
from common.assets import DEFAULT_ASSETS, AssetDescriptor
from common.commands import MENU_PROMPT, menu_keyboard, parse_command
from common.config import Settings, cache_store_from_settings, load_settings
from common.digest import build_digest
from common.gateway import QuoteCacheGateway
from common.logging import get_logger, setup_logging
from common.quotes import QuoteService
from common.telegram import MARKDOWN, TelegramClient, TelegramError
from common.whitelist import is_chat_allowed, parse_allowed_chat_ids


log = get_logger(__name__)


def _response(status: int, body: str) -> Dict[str, Any]:
    return {"statusCode": status, "headers": {"Content-Type": "text/plain"}, "body": body}


def _http_method(event: Dict[str, Any]) -> Optional[str]:
    # Function URL / HTTP API v2 first, then REST API v1
    ctx = event.get("requestContext") if isinstance(event.get("requestContext"), dict) else {}
    http = ctx.get("http") if isinstance(ctx.get("http"), dict) else {}
    method = http.get("method") or event.get("httpMethod")
    return method.upper() if isinstance(method, str) else None


def _parse_body(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    body = event.get("body")
    if not isinstance(body, str) or not body:
        return None
    try:
        if event.get("isBase64Encoded"):
            body = base64.b64decode(body).decode("utf-8")
        data = json.loads(body)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _send(tg: TelegramClient, chat_id: int | str, text: str, **kwargs: Any) -> bool:
    try:
        tg.send_message(chat_id, text, **kwargs)
    except TelegramError as e:
        # Telegram retries webhooks on non-2xx, so a failed reply is only logged
        log.error("reply_send_failed", chat_id=chat_id, error=str(e))
        return False
    return True


def handle_update(
    update: Dict[str, Any],
    *,
    settings: Settings,
    assets: Sequence[AssetDescriptor] = DEFAULT_ASSETS,
    today: Optional[date] = None,
) -> int:
    """
    Process one Telegram update and return the HTTP status to answer with.

    - Updates without a chat id or text are acknowledged and ignored.
    - Chats outside the allow-list get 403.
    - `/start` replies with the asset menu; the all-assets label or an asset
      name replies with the matching digest; anything else is ignored.
    """
    msg = update.get("message")
    if not isinstance(msg, dict):
        return 200
    chat = msg.get("chat") if isinstance(msg.get("chat"), dict) else {}
    chat_id = chat.get("id")
    text = msg.get("text")
    if chat_id is None or not isinstance(text, str) or not text:
        return 200

    allowed = parse_allowed_chat_ids(settings.allowed_chat_ids)
    if not is_chat_allowed(chat_id, allowed, username=chat.get("username")):
        log.warning("unauthorized_chat", chat_id=chat_id)
        return 403

    command = parse_command(text, assets)
    if command is None:
        return 200

    with TelegramClient(settings.telegram_bot_token) as tg:
        if command.kind == "start":
            _send(tg, chat_id, MENU_PROMPT, reply_markup=menu_keyboard(assets))
            return 200

        selected = list(assets) if command.kind == "all" else [command.asset]
        gateway = QuoteCacheGateway(cache_store_from_settings(settings))
        with AlphaVantageClient(
            settings.alpha_vantage_api_key, min_interval=settings.av_min_interval
        ) as av:
            quotes = QuoteService(av, gateway, ttls=settings.ttls, rsi_source=settings.rsi_source)
            text_out = build_digest(quotes, selected, today or date.today())
        _send(tg, chat_id, text_out, parse_mode=MARKDOWN)

    log.info("command_handled", chat_id=chat_id, command=command.kind, assets=len(selected))
    return 200


def handle_event(event: Dict[str, Any], *, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Translate a Lambda HTTP event into `handle_update` and an HTTP response."""
    if _http_method(event) != "POST":
        return _response(200, "OK")
    update = _parse_body(event)
    if update is None:
        return _response(200, "OK")

    status = handle_update(update, settings=settings or load_settings())
    return _response(status, "Unauthorized" if status == 403 else "OK")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda entry for the Telegram webhook (Function URL or API Gateway).

    Environment / SSM: see common.config.load_settings.
    """
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_format)
    return handle_event(event, settings=settings)
