import base64
import os

import pytest

from VistoriaAPI import storage
from VistoriaAPI.errors import StorageBackendError
from VistoriaAPI.storage import GitHubBlobStore, LocalBlobStore, build_blob_store


class _FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise storage.requests.HTTPError(f"status {self.status_code}")


def test_local_store_round_trip(tmp_path):
    store = LocalBlobStore(str(tmp_path))

    url = store.store(b"webp-bytes", "1-2.webp")

    assert url == "/uploads/1-2.webp"
    assert (tmp_path / "1-2.webp").read_bytes() == b"webp-bytes"
    store.delete(url)
    assert not os.path.exists(tmp_path / "1-2.webp")
    # deleting a missing file is a no-op
    store.delete(url)


def test_github_store_uploads_and_deletes(monkeypatch):
    calls = []

    def fake_put(url, json=None, headers=None, timeout=None):
        calls.append(("PUT", url, json))
        return _FakeResponse(201)

    def fake_get(url, params=None, headers=None, timeout=None):
        calls.append(("GET", url, params))
        return _FakeResponse(200, {"sha": "abc123"})

    def fake_delete(url, json=None, headers=None, timeout=None):
        calls.append(("DELETE", url, json))
        return _FakeResponse(200)

    monkeypatch.setattr(storage.requests, "put", fake_put)
    monkeypatch.setattr(storage.requests, "get", fake_get)
    monkeypatch.setattr(storage.requests, "delete", fake_delete)

    store = GitHubBlobStore(token="t", owner="acme", repo="photos", branch="main")
    url = store.store(b"data", "9-1.webp")

    assert url == "https://raw.githubusercontent.com/acme/photos/main/uploads/9-1.webp"
    method, api_url, body = calls[0]
    assert method == "PUT"
    assert api_url == "https://api.github.com/repos/acme/photos/contents/uploads/9-1.webp"
    assert base64.b64decode(body["content"]) == b"data"
    assert body["branch"] == "main"

    store.delete(url)
    assert calls[1][0] == "GET"
    assert calls[2][0] == "DELETE"
    assert calls[2][2]["sha"] == "abc123"


def test_github_store_failure_raises_storage_error(monkeypatch):
    monkeypatch.setattr(storage.requests, "put", lambda *args, **kwargs: _FakeResponse(422))
    store = GitHubBlobStore(token="t", owner="acme", repo="photos")
    with pytest.raises(StorageBackendError):
        store.store(b"data", "x.webp")


def test_github_store_requires_configuration(monkeypatch):
    monkeypatch.setattr(storage.config, "GITHUB_TOKEN", None)
    with pytest.raises(ValueError):
        GitHubBlobStore(owner="acme", repo="photos")


def test_build_blob_store_selects_backend():
    assert isinstance(build_blob_store("local"), LocalBlobStore)
    assert isinstance(build_blob_store("github-ish"), LocalBlobStore)
    assert isinstance(build_blob_store("azure"), storage.AzureBlobStore)
