# storage.py
import base64
import logging
import os
from typing import Optional
from urllib.parse import urlparse

import requests

from VistoriaAPI import config
from VistoriaAPI.errors import StorageBackendError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_RAW_URL = "https://raw.githubusercontent.com"


class BlobStore:
    """Persists processed photo files and hands back a URL the clients can load."""

    def store(self, content: bytes, name: str) -> str:
        raise NotImplementedError

    def delete(self, url: str) -> None:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Writes files under `upload_dir`; main.py serves that directory at /uploads."""

    def __init__(self, upload_dir: Optional[str] = None):
        self.upload_dir = upload_dir or config.UPLOAD_DIR

    def store(self, content: bytes, name: str) -> str:
        try:
            os.makedirs(self.upload_dir, exist_ok=True)
            with open(os.path.join(self.upload_dir, name), "wb") as fh:
                fh.write(content)
        except OSError as exc:
            raise StorageBackendError(f"Failed to write photo: {exc}") from exc
        return f"/uploads/{name}"

    def delete(self, url: str) -> None:
        name = os.path.basename(urlparse(url).path)
        path = os.path.join(self.upload_dir, name)
        if os.path.exists(path):
            os.remove(path)


class GitHubBlobStore(BlobStore):
    """Commits files to a repository through the contents API and serves them from raw.githubusercontent.com."""

    def __init__(self, token=None, owner=None, repo=None, branch=None, folder="uploads", timeout=30):
        self.token = token or config.GITHUB_TOKEN
        self.owner = owner or config.GITHUB_OWNER
        self.repo = repo or config.GITHUB_REPO
        self.branch = branch or config.GITHUB_BRANCH
        self.folder = folder
        self.timeout = timeout
        if not (self.token and self.owner and self.repo):
            raise ValueError("GitHub storage configuration is missing. Set GITHUB_TOKEN, GITHUB_OWNER and GITHUB_REPO.")

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }

    def _contents_url(self, path: str) -> str:
        return f"{GITHUB_API_URL}/repos/{self.owner}/{self.repo}/contents/{path}"

    def store(self, content: bytes, name: str) -> str:
        path = f"{self.folder}/{name}"
        payload = {
            "message": f"Upload photo {name}",
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.branch,
        }
        try:
            resp = requests.put(self._contents_url(path), json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise StorageBackendError(f"GitHub upload failed: {exc}") from exc
        if resp.status_code not in (200, 201):
            raise StorageBackendError(f"GitHub upload failed with status {resp.status_code}")
        return f"{GITHUB_RAW_URL}/{self.owner}/{self.repo}/{self.branch}/{path}"

    def delete(self, url: str) -> None:
        prefix = f"{GITHUB_RAW_URL}/{self.owner}/{self.repo}/{self.branch}/"
        if not url.startswith(prefix):
            logger.warning("Not a blob of this repository, skipping delete: %s", url)
            return
        path = url[len(prefix):]

        # the contents API needs the current sha to delete a file
        resp = requests.get(
            self._contents_url(path),
            params={"ref": self.branch},
            headers=self._headers(),
            timeout=self.timeout,
        )
        if resp.status_code == 404:
            return
        resp.raise_for_status()
        sha = resp.json().get("sha")

        resp = requests.delete(
            self._contents_url(path),
            json={"message": f"Delete photo {os.path.basename(path)}", "sha": sha, "branch": self.branch},
            headers=self._headers(),
            timeout=self.timeout,
        )
        resp.raise_for_status()


class AzureBlobStore(BlobStore):
    """Azure Blob Storage container. The SDK client is created on first use."""

    def __init__(self, connection_string=None, container=None):
        self.connection_string = connection_string or config.AZURE_STORAGE_CONNECTION_STRING
        self.container = container or config.AZURE_CONTAINER_NAME
        self._container_client = None

    def _client(self):
        if self._container_client is not None:
            return self._container_client
        if not self.connection_string or not self.container:
            raise ValueError("Azure storage configuration is missing. Set AZURE_STORAGE_CONNECTION_STRING and AZURE_CONTAINER_NAME.")
        from azure.storage.blob import BlobServiceClient

        try:
            service = BlobServiceClient.from_connection_string(self.connection_string)
            self._container_client = service.get_container_client(self.container)
        except Exception as e:
            raise RuntimeError(f"Failed to initialize Azure Blob Storage client: {e}")
        return self._container_client

    def store(self, content: bytes, name: str) -> str:
        from azure.storage.blob import ContentSettings

        try:
            blob = self._client().get_blob_client(name)
            blob.upload_blob(content, overwrite=True, content_settings=ContentSettings(content_type="image/webp"))
        except StorageBackendError:
            raise
        except Exception as exc:
            raise StorageBackendError(f"Azure upload failed: {exc}") from exc
        return blob.url

    def delete(self, url: str) -> None:
        name = os.path.basename(urlparse(url).path)
        self._client().delete_blob(name)


_store: Optional[BlobStore] = None


def build_blob_store(storage_type: Optional[str] = None) -> BlobStore:
    kind = (storage_type or config.STORAGE_TYPE or "local").lower()
    if kind == "github":
        return GitHubBlobStore()
    if kind == "azure":
        return AzureBlobStore()
    if kind != "local":
        logger.warning("Unknown STORAGE_TYPE %r, falling back to local storage", kind)
    return LocalBlobStore()


def get_blob_store() -> BlobStore:
    """FastAPI dependency returning the process-wide blob store."""
    global _store
    if _store is None:
        _store = build_blob_store()
        logger.info("Blob store initialized: %s", type(_store).__name__)
    return _store
