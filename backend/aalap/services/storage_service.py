import asyncio
import logging
import shutil
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from aalap.config import get_settings
from aalap.exceptions import StorageError

logger = logging.getLogger(__name__)
settings = get_settings()


class LocalStorageService:
    """Local file storage for development without GCS."""

    def __init__(self, base_path: str | None = None, public_base_url: str = "http://localhost:8000/api/storage/files") -> None:
        self.base_path = Path(base_path or settings.local_storage_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url

    def _get_full_path(self, storage_key: str) -> Path:
        full_path = (self.base_path / storage_key).resolve()
        if not full_path.is_relative_to(self.base_path.resolve()):
            raise StorageError(f"Storage key escapes storage root: {storage_key}")
        full_path.parent.mkdir(parents=True, exist_ok=True)
        return full_path

    def get_public_url(self, storage_key: str) -> str:
        """Get URL for accessing the file."""
        return f"{self.public_base_url}/{storage_key}"

    def upload_file_from_bytes(self, storage_key: str, data: bytes) -> str:
        """Upload file from bytes."""
        full_path = self._get_full_path(storage_key)
        full_path.write_bytes(data)
        return self.get_public_url(storage_key)

    async def download_file(self, storage_key: str, local_path: str) -> str:
        """Copy file to local path."""
        full_path = self._get_full_path(storage_key)
        if not full_path.exists():
            raise StorageError(f"File not found in storage: {storage_key}")
        shutil.copy(str(full_path), local_path)
        return local_path

    async def upload_file(self, local_path: str, storage_key: str, content_type: str | None = None) -> str:
        """Upload from local path."""
        full_path = self._get_full_path(storage_key)
        shutil.copy(local_path, str(full_path))
        return self.get_public_url(storage_key)

    async def get_signed_url(self, storage_key: str, expiration_minutes: int = 60) -> str:
        """Get download URL."""
        return self.get_public_url(storage_key)

    async def delete_file(self, storage_key: str) -> bool:
        """Delete file."""
        full_path = self._get_full_path(storage_key)
        if full_path.exists():
            full_path.unlink()
            return True
        return False

    async def file_exists(self, storage_key: str) -> bool:
        """Check if file exists."""
        return self._get_full_path(storage_key).exists()

    def get_file_path(self, storage_key: str) -> Path:
        """Get the actual file path for serving."""
        return self._get_full_path(storage_key)


class GCSStorageService:
    """Google Cloud Storage service for production."""

    def __init__(self, bucket_name: str | None = None) -> None:
        from google.cloud import storage

        self._storage = storage
        self._client: storage.Client | None = None
        self._bucket: storage.Bucket | None = None
        self.bucket_name = bucket_name or settings.gcs_bucket_name

    @property
    def client(self):
        if self._client is None:
            if settings.gcs_project_id:
                self._client = self._storage.Client(project=settings.gcs_project_id)
            else:
                self._client = self._storage.Client()
        return self._client

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = self.client.bucket(self.bucket_name)
        return self._bucket

    def get_public_url(self, storage_key: str) -> str:
        """Get the public URL for a stored file."""
        return f"https://storage.googleapis.com/{self.bucket_name}/{storage_key}"

    async def download_file(self, storage_key: str, local_path: str) -> str:
        """Download a file from GCS to local path."""
        from google.api_core import exceptions as gcs_exceptions

        blob = self.bucket.blob(storage_key)
        try:
            await asyncio.to_thread(blob.download_to_filename, local_path)
        except gcs_exceptions.NotFound as e:
            raise StorageError(f"File not found in storage: {storage_key}") from e
        return local_path

    async def upload_file(self, local_path: str, storage_key: str, content_type: str | None = None) -> str:
        """Upload a local file to GCS."""
        blob = self.bucket.blob(storage_key)
        if content_type:
            await asyncio.to_thread(blob.upload_from_filename, local_path, content_type=content_type)
        else:
            await asyncio.to_thread(blob.upload_from_filename, local_path)
        return self.get_public_url(storage_key)

    async def get_signed_url(self, storage_key: str, expiration_minutes: int = 60) -> str:
        """Generate a V4 signed download URL."""
        blob = self.bucket.blob(storage_key)
        return await asyncio.to_thread(
            blob.generate_signed_url,
            version="v4",
            expiration=timedelta(minutes=expiration_minutes),
            method="GET",
        )

    async def delete_file(self, storage_key: str) -> bool:
        """Delete a file from GCS."""
        blob = self.bucket.blob(storage_key)
        if await asyncio.to_thread(blob.exists):
            await asyncio.to_thread(blob.delete)
            return True
        return False

    async def file_exists(self, storage_key: str) -> bool:
        """Check if a file exists in GCS."""
        return await asyncio.to_thread(self.bucket.blob(storage_key).exists)


StorageService = LocalStorageService | GCSStorageService


@lru_cache
def get_storage_service() -> StorageService:
    # Use LocalStorageService or GCSStorageService based on config
    if settings.use_local_storage:
        return LocalStorageService()
    return GCSStorageService()
