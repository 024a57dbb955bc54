import asyncio
import logging
from abc import ABC, abstractmethod
import time
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from google.cloud import storage

from imagerelay.core.config import Settings
from imagerelay.core.errors import StorageError
from imagerelay.models.image import StoredObjectRef

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

def extension_for(content_type: str) -> str:
    return CONTENT_TYPE_EXTENSIONS.get(content_type.lower(), "bin")

def build_object_key(prefix: str, content_type: str) -> str:
    """
    '{prefix}/{timestamp_ms}-{random}.{ext}'. Unique in practice, not guaranteed.
    """
    timestamp = int(time.time() * 1000)
    suffix = uuid.uuid4().hex[:8]
    return f"{prefix.strip('/')}/{timestamp}-{suffix}.{extension_for(content_type)}"

class StorageClient(ABC):
    """
    Uploads bytes under a generated key and returns the public CDN URL.
    Subclasses implement _put_object for a concrete backend.
    """

    def __init__(self, settings: Settings):
        self.bucket_name = settings.STORAGE_BUCKET_NAME
        self.cdn_base_url = settings.CDN_BASE_URL.rstrip("/")

    def public_url(self, key: str) -> str:
        return f"{self.cdn_base_url}/{key}"

    async def upload_image(self, file_bytes: bytes, content_type: str, prefix: str) -> StoredObjectRef:
        key = build_object_key(prefix, content_type)
        await asyncio.to_thread(self._put_object, key, file_bytes, content_type)
        logger.info(f"File uploaded to {self.bucket_name}/{key}")
        return StoredObjectRef(key=key, public_url=self.public_url(key))

    @abstractmethod
    def _put_object(self, key: str, file_bytes: bytes, content_type: str) -> None:
        """Blocking upload; runs in a worker thread."""

class R2StorageClient(StorageClient):
    """
    Cloudflare R2 through its S3-compatible API.
    """

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.access_key_id = settings.R2_ACCESS_KEY_ID
        self.secret_access_key = settings.R2_SECRET_ACCESS_KEY
        self.endpoint_url = settings.R2_ENDPOINT_URL
        self.region = settings.R2_REGION
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.access_key_id or not self.secret_access_key:
                logger.error("Missing R2 credentials")
                raise StorageError("R2 credentials are missing")
            session = boto3.session.Session(
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
            )
            # No automatic retries on upload
            config = Config(region_name=self.region, retries={"max_attempts": 1, "mode": "standard"})
            self._client = session.client("s3", endpoint_url=self.endpoint_url, config=config)
        return self._client

    def _put_object(self, key: str, file_bytes: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=file_bytes,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload {key} to R2: {e}")
            raise StorageError("Failed to upload image to storage") from e

class GCSStorageClient(StorageClient):
    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.project_id = settings.GCS_PROJECT_ID
        self._bucket = None

    @property
    def bucket(self) -> storage.Bucket:
        if self._bucket is None:
            try:
                client = storage.Client(project=self.project_id)
                self._bucket = client.bucket(self.bucket_name)
                logger.info("Storage Client initialized successfully.")
            except Exception as e:
                logger.error(f"Failed to initialize Storage Client: {e}")
                raise StorageError("Failed to initialize storage client") from e
        return self._bucket

    def _put_object(self, key: str, file_bytes: bytes, content_type: str) -> None:
        bucket = self.bucket
        try:
            blob = bucket.blob(key)
            blob.upload_from_string(file_bytes, content_type=content_type)
        except Exception as e:
            logger.error(f"Failed to upload {key} to GCS: {e}")
            raise StorageError("Failed to upload image to storage") from e

STORAGE_BACKENDS = {
    "r2": R2StorageClient,
    "s3": R2StorageClient,
    "gcs": GCSStorageClient,
}

def build_storage_client(settings: Settings) -> StorageClient:
    backend = (settings.STORAGE_BACKEND or "r2").strip().lower()
    client_cls = STORAGE_BACKENDS.get(backend)
    if client_cls is None:
        raise StorageError(f"Unsupported STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
    return client_cls(settings)
