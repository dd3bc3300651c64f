from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterable, Literal, Optional

from pydantic import BaseModel, Field

from state.file_store import FileCacheStore
from state.models import CacheStore

from .gateway import CacheKind


# Environment variable names (Lambda configuration)
ENV_PARAM_PREFIX = "PARAM_PREFIX"
ENV_CACHE_BUCKET = "CACHE_BUCKET"
ENV_CACHE_PREFIX = "CACHE_PREFIX"
ENV_CACHE_DIR = "RSI_CACHE_DIR"
ENV_AV_MIN_INTERVAL = "AV_MIN_INTERVAL_SECONDS"
ENV_PRICE_TTL = "PRICE_TTL_SECONDS"
ENV_RSI_TTL = "RSI_TTL_SECONDS"
ENV_RSI_SOURCE = "RSI_SOURCE"
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_FORMAT = "LOG_FORMAT"

# Secrets: SSM parameter name under PARAM_PREFIX -> direct env fallback(s)
SECRET_PARAMS: Dict[str, tuple[str, ...]] = {
    "alpha_vantage_api_key": ("ALPHA_VANTAGE_API_KEY",),
    "telegram_bot_token": ("TELEGRAM_BOT_TOKEN", "TELEGRAM_API_KEY"),
    "telegram_chat_id": ("TELEGRAM_CHAT_ID",),
    "allowed_chat_ids": ("ALLOWED_CHAT_IDS",),
    "fernet_key": ("CACHE_FERNET_KEY",),
}


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.environ.get(name)
    return v if v not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def _load_ssm_params(prefix: str, names: Iterable[str]) -> Dict[str, Optional[str]]:
    import boto3
    from botocore.exceptions import ClientError

    ssm = boto3.client("ssm")
    out: Dict[str, Optional[str]] = {k: None for k in names}
    for name in names:
        full = f"{prefix}{name}"
        try:
            resp = ssm.get_parameter(Name=full, WithDecryption=True)
        except ClientError as e:
            # Leave as None if parameter missing or access denied
            code = e.response.get("Error", {}).get("Code")
            if code in ("ParameterNotFound", "AccessDeniedException"):
                out[name] = None
                continue
            raise
        val = resp.get("Parameter", {}).get("Value")
        out[name] = val if isinstance(val, str) and val != "" else None
    return out


class Settings(BaseModel):
    """
    Runtime configuration resolved from SSM (secrets) and environment variables.

    Secrets are read from SSM Parameter Store under `PARAM_PREFIX` when that
    variable is set; each one falls back to a plain environment variable so the
    bot can run locally without AWS.
    """

    alpha_vantage_api_key: str
    telegram_bot_token: str
    telegram_chat_id: Optional[str] = None
    allowed_chat_ids: Optional[str] = None
    fernet_key: Optional[str] = None

    cache_bucket: Optional[str] = None
    cache_prefix: str = "cache/"
    cache_dir: Optional[str] = None

    av_min_interval: float = Field(default=15.0, ge=0.0)
    price_ttl: float = Field(default=3600.0, gt=0.0)
    rsi_ttl: float = Field(default=6 * 3600.0, gt=0.0)
    rsi_source: Literal["local", "provider"] = "local"

    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def ttls(self) -> Dict[CacheKind, float]:
        return {CacheKind.PRICE: self.price_ttl, CacheKind.RSI: self.rsi_ttl}


def load_settings() -> Settings:
    """Resolve Settings; raises RuntimeError when a required secret is missing."""
    prefix = _getenv(ENV_PARAM_PREFIX)
    from_ssm: Dict[str, Optional[str]] = _load_ssm_params(prefix, list(SECRET_PARAMS)) if prefix else {}

    secrets: Dict[str, Optional[str]] = {}
    for name, env_names in SECRET_PARAMS.items():
        value = from_ssm.get(name)
        for env_name in env_names:
            value = value or _getenv(env_name)
        secrets[name] = value

    where = f"{prefix}{{name}}" if prefix else "{name}"
    _require(secrets["alpha_vantage_api_key"], where.format(name="alpha_vantage_api_key"))
    _require(secrets["telegram_bot_token"], where.format(name="telegram_bot_token"))

    optional: Dict[str, Optional[str]] = {
        "cache_bucket": _getenv(ENV_CACHE_BUCKET),
        "cache_prefix": _getenv(ENV_CACHE_PREFIX),
        "cache_dir": _getenv(ENV_CACHE_DIR),
        "av_min_interval": _getenv(ENV_AV_MIN_INTERVAL),
        "price_ttl": _getenv(ENV_PRICE_TTL),
        "rsi_ttl": _getenv(ENV_RSI_TTL),
        "rsi_source": _getenv(ENV_RSI_SOURCE),
        "log_level": _getenv(ENV_LOG_LEVEL),
        "log_format": _getenv(ENV_LOG_FORMAT),
    }
    return Settings(**secrets, **{k: v for k, v in optional.items() if v is not None})


def cache_store_from_settings(settings: Settings) -> CacheStore:
    """S3 store when a bucket is configured, else a local JSON file."""
    if settings.cache_bucket:
        from state.s3_store import S3CacheStore

        return S3CacheStore(
            bucket=settings.cache_bucket,
            prefix=settings.cache_prefix,
            fernet_key=settings.fernet_key,
        )
    base = Path(settings.cache_dir) if settings.cache_dir else Path("/tmp/rsi-digest-bot")
    return FileCacheStore(base / "quotes.json")


__all__ = ["Settings", "load_settings", "cache_store_from_settings"]
