"""
Attachment storage abstraction layer supporting both local filesystem and AWS S3.

Candidate records only ever hold an AttachmentHandle; the bytes live in one of
the backends below. Every backend call is bounded by a timeout and failures
surface as StorageError (or NotFoundError for missing objects) with messages
that never include paths or bucket keys.
"""

import os
import tempfile
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from referral_tracker.core.config import Settings
from referral_tracker.core.errors import NotFoundError, StorageError
from referral_tracker.core.logging_config import get_logger

logger = get_logger(__name__)

_EXTENSIONS = {
    "application/pdf": ".pdf",
}


@dataclass(frozen=True)
class AttachmentHandle:
    """Everything needed to find a stored attachment again."""
    locator: str
    original_filename: str
    mime_type: str
    size: int = 0


@dataclass(frozen=True)
class StoredAttachment:
    """Attachment bytes plus the metadata needed to serve them."""
    content: bytes
    filename: str
    mime_type: str


class StorageBackend:
    """Base class for storage backends"""

    def __init__(self, timeout: float = 10.0, max_workers: int = 8):
        self.timeout = timeout
        # Calls run in this pool so a hung one can be abandoned after the timeout.
        # Abandoned calls keep their thread until they finish, and once every
        # worker is stuck new calls queue and time out too.
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="attachment_io")

    def store(self, candidate_id: Any, content: bytes, original_filename: str, mime_type: str) -> AttachmentHandle:
        """
        Persist attachment bytes under a freshly generated key.

        The key never derives from the candidate id or filename, so renames
        and odd filenames cannot collide or escape the store.
        """
        key = f"{uuid.uuid4().hex}{_EXTENSIONS.get(mime_type, '')}"
        locator = self._call(
            "store", self._write, key, content, mime_type,
            on_abandon=self._discard_late_write
        )
        logger.info(f"Stored attachment for candidate {candidate_id} ({len(content)} bytes)")
        return AttachmentHandle(
            locator=locator,
            original_filename=original_filename,
            mime_type=mime_type,
            size=len(content),
        )

    def retrieve(self, handle: AttachmentHandle) -> StoredAttachment:
        """Read attachment bytes. Raises NotFoundError if they are gone."""
        content = self._call("retrieve", self._read, handle.locator)
        return StoredAttachment(
            content=content,
            filename=handle.original_filename,
            mime_type=handle.mime_type,
        )

    def delete(self, handle: AttachmentHandle) -> None:
        """Delete attachment bytes. Deleting an absent attachment is a no-op."""
        self._call("delete", self._remove, handle.locator)

    def exists(self, handle: AttachmentHandle) -> bool:
        return self._call("lookup", self._exists, handle.locator)

    def check(self) -> None:
        """Raise StorageError if the backend is unreachable."""
        self._call("health check", self._ping)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the I/O pool, optionally waiting for abandoned calls to finish."""
        self._executor.shutdown(wait=wait)

    def _call(self, operation: str, func: Callable, *args, on_abandon: Optional[Callable[[Future], None]] = None):
        future = self._executor.submit(func, *args)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            # A running call cannot be cancelled, only abandoned
            if not future.cancel() and on_abandon is not None:
                future.add_done_callback(on_abandon)
            logger.error(f"Attachment {operation} timed out after {self.timeout}s")
            raise StorageError(f"Attachment {operation} timed out", transient=True)
        except (NotFoundError, StorageError):
            raise
        except Exception as e:
            logger.error(f"Attachment {operation} failed: {e}")
            raise StorageError(f"Attachment {operation} failed") from e

    def _discard_late_write(self, future: Future) -> None:
        """Delete bytes written after their store call already timed out."""
        if future.cancelled() or future.exception() is not None:
            return
        locator = future.result()
        try:
            self._remove(locator)
            logger.warning("Removed attachment written after its store call timed out")
        except Exception as e:
            logger.error(f"Failed to remove late attachment write: {e}")

    # Backend hooks, run inside the executor

    def _write(self, key: str, content: bytes, mime_type: str) -> str:
        """Write bytes and return the locator"""
        raise NotImplementedError

    def _read(self, locator: str) -> bytes:
        raise NotImplementedError

    def _remove(self, locator: str) -> None:
        raise NotImplementedError

    def _exists(self, locator: str) -> bool:
        raise NotImplementedError

    def _ping(self) -> None:
        raise NotImplementedError


class LocalStorage(StorageBackend):
    """Local filesystem storage backend"""

    def __init__(self, base_dir: str = "uploads", timeout: float = 10.0, max_workers: int = 8):
        super().__init__(timeout=timeout, max_workers=max_workers)
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)

    def _path(self, locator: str) -> str:
        # Locators are bare file names; anything else cannot be ours
        if not locator or os.path.basename(locator) != locator or locator in (".", ".."):
            raise NotFoundError("Attachment not found")
        return os.path.join(self.base_dir, locator)

    def _write(self, key: str, content: bytes, mime_type: str) -> str:
        # Write to a temp file and rename so readers never see a partial file
        fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as buffer:
                buffer.write(content)
                buffer.flush()
                os.fsync(buffer.fileno())
            os.replace(tmp_path, os.path.join(self.base_dir, key))
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        return key

    def _read(self, locator: str) -> bytes:
        path = self._path(locator)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise NotFoundError("Attachment not found")

    def _remove(self, locator: str) -> None:
        try:
            path = self._path(locator)
        except NotFoundError:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass

    def _exists(self, locator: str) -> bool:
        try:
            return os.path.isfile(self._path(locator))
        except NotFoundError:
            return False

    def _ping(self) -> None:
        if not os.access(self.base_dir, os.W_OK):
            raise StorageError("Attachment storage is not writable", transient=False)


class S3Storage(StorageBackend):
    """AWS S3 storage backend"""

    _MISSING_CODES = {"NoSuchKey", "404", "NotFound"}

    def __init__(self, bucket_name: str, s3_client=None, region: str = "us-east-1",
                 access_key_id: str = "", secret_access_key: str = "", timeout: float = 10.0,
                 max_workers: int = 8):
        super().__init__(timeout=timeout, max_workers=max_workers)
        self.bucket_name = bucket_name

        if s3_client is not None:
            self.s3_client = s3_client
            return

        boto_config = BotoConfig(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 2},
        )

        # If credentials are not set, boto3 will use IAM roles (for EC2/ECS)
        if access_key_id and secret_access_key:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region,
                config=boto_config
            )
        else:
            self.s3_client = boto3.client('s3', region_name=region, config=boto_config)

    def _write(self, key: str, content: bytes, mime_type: str) -> str:
        s3_key = f"resumes/{key}"
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=s3_key,
            Body=content,
            ContentType=mime_type,
            ServerSideEncryption='AES256'  # Enable encryption at rest
        )
        # S3 URI format: s3://bucket-name/resumes/<uuid>.pdf
        return f"s3://{self.bucket_name}/{s3_key}"

    def _read(self, locator: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=self._parse_s3_uri(locator))
            return response['Body'].read()
        except ClientError as e:
            if self._is_missing(e):
                raise NotFoundError("Attachment not found")
            raise

    def _remove(self, locator: str) -> None:
        # S3 deletes are idempotent already
        self.s3_client.delete_object(Bucket=self.bucket_name, Key=self._parse_s3_uri(locator))

    def _exists(self, locator: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=self._parse_s3_uri(locator))
            return True
        except ClientError as e:
            if self._is_missing(e):
                return False
            raise

    def _ping(self) -> None:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 bucket check failed: {e}")
            raise StorageError("Attachment storage is unavailable")

    def _is_missing(self, error: ClientError) -> bool:
        return error.response.get("Error", {}).get("Code") in self._MISSING_CODES

    def _parse_s3_uri(self, s3_uri: str) -> str:
        """Parse S3 URI and extract key

        Supports formats:
        - s3://bucket-name/key/path
        - resumes/uuid.pdf (assumes default bucket)
        """
        if s3_uri.startswith("s3://"):
            parts = s3_uri.replace("s3://", "").split("/", 1)
            if len(parts) == 2 and parts[1]:
                return parts[1]
            raise NotFoundError("Attachment not found")
        return s3_uri


def get_storage(settings: Settings, s3_client: Optional[Any] = None) -> StorageBackend:
    """Get storage backend based on USE_S3 setting"""
    if settings.USE_S3:
        if not settings.S3_BUCKET_NAME:
            raise ValueError("S3_BUCKET_NAME must be set when USE_S3=True")
        return S3Storage(
            bucket_name=settings.S3_BUCKET_NAME,
            s3_client=s3_client,
            region=settings.AWS_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            timeout=settings.STORAGE_TIMEOUT_SECONDS,
            max_workers=settings.STORAGE_MAX_WORKERS,
        )
    return LocalStorage(
        base_dir=settings.UPLOAD_DIR,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
        max_workers=settings.STORAGE_MAX_WORKERS,
    )
