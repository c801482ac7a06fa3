"""Object storage helper for session media and pipeline outputs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import quote, unquote, urlparse, urlunparse

from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

from app.config import Settings

PUBLIC_STORAGE_HOST = "https://storage.googleapis.com"
DEFAULT_CACHE_CONTROL = "public, max-age=3600"


@dataclass(frozen=True)
class StorageObjectMetadata:
  """Metadata returned for a downloaded storage object."""

  content_type: str | None
  cache_control: str | None
  size: int | None


class StorageClient:
  """Thin wrapper over GCS and emulator access for media upload/download."""

  def __init__(self, settings: Settings) -> None:
    self._bucket_name = settings.storage_bucket
    self._storage_host = settings.gcs_storage_host
    # Ensure emulator endpoint is visible to the SDK in local development.
    if self._storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["GCS_STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._client = storage.Client(project=settings.gcp_project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
    else:
      self._client = storage.Client(project=settings.gcp_project_id)

  @property
  def bucket_name(self) -> str:
    """Return the default bucket name for session media."""
    return self._bucket_name

  def public_url(self, object_name: str) -> str:
    """Return the durable public URL that serves ``object_name``."""
    host = _normalize_emulator_endpoint(self._storage_host) if self._storage_host else PUBLIC_STORAGE_HOST
    return f"{host}/{self._bucket_name}/{quote(object_name)}"

  def gs_uri(self, object_name: str) -> str:
    """Return the gs:// URI handed to Vertex AI for ``object_name``."""
    return f"gs://{self._bucket_name}/{object_name}"

  def object_name_from_url(self, url: str) -> str | None:
    """Recover the object path from a public or gs:// URL in the default bucket."""
    parsed = urlparse(url)
    if parsed.scheme == "gs":
      if parsed.netloc != self._bucket_name:
        return None
      return parsed.path.lstrip("/") or None
    # Firebase download URLs encode the object path after /o/.
    if "/o/" in parsed.path:
      return unquote(parsed.path.split("/o/", 1)[1]) or None
    prefix = f"/{self._bucket_name}/"
    if parsed.path.startswith(prefix):
      return unquote(parsed.path[len(prefix) :]) or None
    return None

  async def ensure_bucket(self) -> None:
    """Create the default bucket when missing in local/dev flows."""
    # Keep production startup side-effect free; only auto-create in emulator mode.
    if not self._storage_host:
      return
    bucket = self._client.bucket(self._bucket_name)

    def _create_if_missing() -> None:
      if not bucket.exists(client=self._client):
        self._client.create_bucket(bucket)

    await run_in_threadpool(_create_if_missing)

  async def upload_file(self, local_path: str, object_name: str, *, content_type: str, cache_control: str = DEFAULT_CACHE_CONTROL) -> str:
    """Upload a local file, make it public and return its public URL."""
    bucket = self._client.bucket(self._bucket_name)
    blob = bucket.blob(object_name)
    blob.cache_control = cache_control

    def _upload() -> None:
      blob.upload_from_filename(local_path, content_type=content_type)
      # The emulator has no ACL support.
      if not self._storage_host:
        blob.make_public()

    await run_in_threadpool(_upload)
    return self.public_url(object_name)

  async def download_to_file(self, object_name: str, local_path: str) -> StorageObjectMetadata:
    """Download an object into ``local_path`` and return content metadata."""
    bucket = self._client.bucket(self._bucket_name)
    blob = bucket.blob(object_name)
    await run_in_threadpool(blob.download_to_filename, local_path)
    return StorageObjectMetadata(content_type=blob.content_type, cache_control=blob.cache_control, size=blob.size)

  async def exists(self, object_name: str) -> bool:
    """Return True when an object exists in the default bucket."""
    bucket = self._client.bucket(self._bucket_name)
    blob = bucket.blob(object_name)
    return bool(await run_in_threadpool(blob.exists))


def build_storage_client(settings: Settings) -> StorageClient:
  """Create a storage client instance with environment-aware credentials."""
  return StorageClient(settings)


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Normalize emulator endpoint so the SDK receives scheme+host+port only."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
