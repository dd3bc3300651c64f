from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import ClientError
from cryptography.fernet import Fernet, InvalidToken


# Environment variable names for convenience configuration
ENV_BUCKET = "CACHE_BUCKET"
ENV_PREFIX = "CACHE_PREFIX"
ENV_FERNET_KEY = "CACHE_FERNET_KEY"

DEFAULT_PREFIX = "cache/"


def _to_fernet(key: str | bytes) -> Fernet:
    """Construct a Fernet instance from a user-provided key.

    The key must be a URL-safe base64-encoded 32-byte key (str or bytes),
    as returned by `cryptography.fernet.Fernet.generate_key()`.
    """
    if isinstance(key, str):
        key_bytes = key.encode("utf-8")
    else:
        key_bytes = key
    return Fernet(key_bytes)


@dataclass
class S3Location:
    bucket: str
    prefix: str

    def object_key(self, key: str) -> str:
        return f"{self.prefix}{key}.json"


class S3CacheStore:
    """
    S3-backed key-value store: one JSON object per cache key.

    Usage
    - Provide the bucket, an optional key prefix and, optionally, a Fernet key.
      With a Fernet key every object is encrypted at rest.
    - `get(key)` returns the stored value, or None if the object is missing
      or its recorded expiry has passed.
    - `put(key, value, ttl=None)` overwrites the object. S3 has no per-object
      TTL, so `ttl` is written as an `expires_at` field and enforced on read.

    Object body: {"value": <payload>, "expires_at": <epoch seconds|null>}

    Environment variables (optional)
    - `CACHE_BUCKET`:     S3 bucket for cache objects
    - `CACHE_PREFIX`:     key prefix (default "cache/")
    - `CACHE_FERNET_KEY`: urlsafe base64-encoded key for Fernet
    """

    def __init__(
        self,
        *,
        s3: Optional[object] = None,
        bucket: str,
        prefix: str = DEFAULT_PREFIX,
        fernet_key: str | bytes | None = None,
        region_name: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._loc = S3Location(bucket=bucket, prefix=prefix)
        self._fernet = _to_fernet(fernet_key) if fernet_key else None
        self._clock = clock

    @classmethod
    def from_env(cls) -> "S3CacheStore":
        bucket = os.environ.get(ENV_BUCKET)
        if not bucket:
            raise RuntimeError(f"Missing required environment variables for S3 cache store: {ENV_BUCKET}")
        prefix = os.environ.get(ENV_PREFIX) or DEFAULT_PREFIX
        fkey = os.environ.get(ENV_FERNET_KEY) or None
        return cls(bucket=bucket, prefix=prefix, fernet_key=fkey)

    def _encode(self, envelope: dict) -> bytes:
        body = json.dumps(envelope, separators=(",", ":"), sort_keys=True).encode("utf-8")
        if self._fernet is not None:
            body = self._fernet.encrypt(body)
        return body

    def _decode(self, body: bytes) -> dict:
        if self._fernet is not None:
            try:
                body = self._fernet.decrypt(body)
            except InvalidToken as ex:
                raise ValueError("Failed to decrypt cache object: invalid Fernet token") from ex
        try:
            raw = json.loads(body.decode("utf-8"))
        except ValueError as ex:
            raise ValueError("Failed to parse cache object JSON") from ex
        if not isinstance(raw, dict):
            raise ValueError("Cache object is not a JSON object")
        return raw

    def get(self, key: str) -> Optional[Any]:
        """Read a value; raises ValueError on undecryptable/corrupt objects."""
        try:
            resp = self._s3.get_object(Bucket=self._loc.bucket, Key=self._loc.object_key(key))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                return None
            raise

        envelope = self._decode(resp["Body"].read())
        expires_at = envelope.get("expires_at")
        if isinstance(expires_at, (int, float)) and self._clock() >= expires_at:
            return None
        return envelope.get("value")

    def put(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        envelope = {
            "value": value,
            "expires_at": self._clock() + ttl if ttl is not None else None,
        }
        self._s3.put_object(
            Bucket=self._loc.bucket,
            Key=self._loc.object_key(key),
            Body=self._encode(envelope),
            ContentType="application/json" if self._fernet is None else "application/octet-stream",
        )
