from __future__ import annotations

import json

import pytest
from botocore.exceptions import ClientError
from cryptography.fernet import Fernet

from state.file_store import FileCacheStore
from state.memory_store import MemoryCacheStore
from state.s3_store import S3CacheStore


class FakeClock:
    def __init__(self, t: float = 100.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


class _FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data

    def read(self) -> bytes:
        return self._data


class _FakeS3:
    def __init__(self) -> None:
        self._store = {}  # (bucket, key) -> bytes

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, ContentType: str):
        self._store[(Bucket, Key)] = Body
        return {"ETag": f'"fake-{len(Body)}"'}

    def get_object(self, *, Bucket: str, Key: str):
        body = self._store.get((Bucket, Key))
        if body is None:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        return {"Body": _FakeBody(body)}

    def keys(self):
        return sorted(k for _, k in self._store)

    def raw(self, key: str) -> bytes:
        return self._store[("b", key)]


# -------- memory --------

def test_memory_store_roundtrip_and_expiry():
    clock = FakeClock()
    store = MemoryCacheStore(clock=clock)
    store.put("a", {"v": 1})
    store.put("b", 2, ttl=10.0)

    assert store.get("a") == {"v": 1}
    assert store.get("b") == 2
    clock.t += 10.0
    assert store.get("b") is None
    assert store.get("a") == {"v": 1}
    assert store.get("missing") is None


# -------- file --------

def test_file_store_persists_between_instances(tmp_path):
    path = tmp_path / "nested" / "quotes.json"
    FileCacheStore(path).put("PRICE:daily:X", {"value": 1.5, "timestamp": 10.0})

    again = FileCacheStore(path)
    assert again.get("PRICE:daily:X") == {"value": 1.5, "timestamp": 10.0}
    assert json.loads(path.read_text(encoding="utf-8"))["PRICE:daily:X"]["expires_at"] is None


def test_file_store_ttl(tmp_path):
    clock = FakeClock()
    store = FileCacheStore(tmp_path / "q.json", clock=clock)
    store.put("k", 1, ttl=5.0)
    clock.t += 4.0
    assert store.get("k") == 1
    clock.t += 1.0
    assert store.get("k") is None


def test_file_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "q.json"
    path.write_text("{not json", encoding="utf-8")
    store = FileCacheStore(path)
    assert store.get("k") is None
    store.put("k", 3)
    assert FileCacheStore(path).get("k") == 3


def test_file_store_default_path_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("RSI_CACHE_DIR", str(tmp_path))
    assert FileCacheStore().path == tmp_path / "quotes.json"


# -------- s3 --------

def test_s3_missing_object_returns_none():
    store = S3CacheStore(s3=_FakeS3(), bucket="b")
    assert store.get("RSI:weekly:X") is None


def test_s3_plain_json_roundtrip():
    s3 = _FakeS3()
    store = S3CacheStore(s3=s3, bucket="b", prefix="cache/")
    store.put("RSI:weekly:X", {"value": {"current": 1.0}, "timestamp": 5.0})

    assert s3.keys() == ["cache/RSI:weekly:X.json"]
    assert json.loads(s3.raw("cache/RSI:weekly:X.json"))["value"] == {"value": {"current": 1.0}, "timestamp": 5.0}
    assert store.get("RSI:weekly:X") == {"value": {"current": 1.0}, "timestamp": 5.0}


def test_s3_encrypted_roundtrip_and_wrong_key():
    s3 = _FakeS3()
    key = Fernet.generate_key()
    store = S3CacheStore(s3=s3, bucket="b", fernet_key=key)
    store.put("k", [1, 2, 3])

    assert b"[1,2,3]" not in s3.raw("cache/k.json")
    assert store.get("k") == [1, 2, 3]

    other = S3CacheStore(s3=s3, bucket="b", fernet_key=Fernet.generate_key())
    with pytest.raises(ValueError):
        other.get("k")


def test_s3_ttl_enforced_on_read():
    clock = FakeClock()
    store = S3CacheStore(s3=_FakeS3(), bucket="b", clock=clock)
    store.put("k", "v", ttl=30.0)
    assert store.get("k") == "v"
    clock.t += 30.0
    assert store.get("k") is None


def test_s3_other_client_errors_propagate():
    class _DeniedS3(_FakeS3):
        def get_object(self, *, Bucket: str, Key: str):
            raise ClientError({"Error": {"Code": "AccessDenied"}}, "GetObject")

    store = S3CacheStore(s3=_DeniedS3(), bucket="b")
    with pytest.raises(ClientError):
        store.get("k")


def test_from_env_missing_bucket_raises(monkeypatch):
    monkeypatch.delenv("CACHE_BUCKET", raising=False)
    with pytest.raises(RuntimeError):
        S3CacheStore.from_env()
