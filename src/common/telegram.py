from __future__ import annotations

from typing import Any, Dict, Optional, Union

import httpx

from .rate_limiter import MinIntervalRateLimiter


DEFAULT_API_BASE = "https://api.telegram.org"
MARKDOWN = "Markdown"


class TelegramError(RuntimeError):
    """Base error for Telegram client."""


class TelegramApiError(TelegramError):
    """API returned an error payload or unexpected structure."""


class TelegramClient:
    """
    Minimal Telegram Bot API client focused on sendMessage.

    Notes
    - Uses JSON for request bodies (per Telegram Bot API docs).
    - Single attempt per message: digests are fire-and-forget, so callers log
      failures instead of retrying.
    - A local limiter spaces calls by `min_interval` seconds (default 0.05,
      well under Telegram's per-bot limits).
    """

    def __init__(
        self,
        token: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 15.0,
        min_interval: float = 0.05,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not token:
            raise ValueError("token is required")
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._owns_client = client is None
        base_url = f"{self._api_base}/bot{self._token}"
        self._client = client or httpx.Client(base_url=base_url, timeout=self._timeout)
        self._limiter = MinIntervalRateLimiter(min_interval)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "TelegramClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- Public API ---------------
    def send_message(
        self,
        chat_id: Union[int, str],
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
        disable_web_page_preview: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Send a text message via Telegram `sendMessage`.

        Returns the Message object (as dict) on success.
        Raises TelegramApiError on API errors and TelegramError on transport errors.
        """
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode is not None:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if disable_web_page_preview is not None:
            payload["disable_web_page_preview"] = disable_web_page_preview

        data = self._request("sendMessage", payload)
        # Expect Telegram's envelope: { ok: bool, result?: {...}, description?: str }
        if not isinstance(data, dict) or "ok" not in data:
            raise TelegramApiError("Malformed response from Telegram Bot API")
        if data.get("ok") is True and isinstance(data.get("result"), dict):
            return data["result"]  # type: ignore[return-value]
        desc = data.get("description") or "Telegram API error"
        code = data.get("error_code")
        raise TelegramApiError(f"{desc} (code={code})")

    # --------------- Internal ---------------
    def _request(self, method: str, json_body: Dict[str, Any]) -> Dict[str, Any]:
        with self._limiter:
            try:
                resp = self._client.post(f"/{method}", json=json_body)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                raise TelegramError(f"Request to Telegram failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise TelegramApiError(
                f"HTTP {resp.status_code} from Telegram with non-JSON body: {resp.text[:200]}"
            ) from exc
        # Telegram reports API errors as {ok: false, ...} with 4xx statuses; keep the envelope
        if resp.status_code != 200 and not isinstance(body, dict):
            raise TelegramApiError(f"HTTP {resp.status_code} from Telegram")
        return body


__all__ = [
    "MARKDOWN",
    "TelegramClient",
    "TelegramError",
    "TelegramApiError",
]
