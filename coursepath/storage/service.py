"""Firebase Storage document store.

Stores generated documents (certificates) in Firebase Storage with:
- Lazy Firebase Admin SDK initialization
- Public URL generation for stored objects
- Existence checks so missing documents can be regenerated
"""

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote

import structlog


if TYPE_CHECKING:
    from google.cloud.storage import Blob, Bucket

from coursepath.config.settings import Settings


logger = structlog.get_logger(__name__)


class StorageError(Exception):
    """Base error for storage operations."""

    def __init__(self, message: str, code: str = "storage_error") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class StorageNotConfiguredError(StorageError):
    """Error when Firebase Storage is not configured."""

    def __init__(self, message: str = "Firebase Storage is not configured") -> None:
        super().__init__(message, "storage_not_configured")


class StorageUploadError(StorageError):
    """Error during document upload."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "storage_upload_error")


# Firebase app singleton
_firebase_app = None
_storage_bucket: "Bucket | None" = None


def _init_firebase(settings: Settings) -> "Bucket":
    """Initialize Firebase Admin SDK and get storage bucket.

    Raises:
        StorageNotConfiguredError: If Firebase is not configured.
    """
    global _firebase_app, _storage_bucket  # noqa: PLW0603

    if _storage_bucket is not None:
        return _storage_bucket

    if not settings.firebase_configured:
        raise StorageNotConfiguredError

    # Lazy import to avoid loading Firebase SDK unless needed
    import firebase_admin  # noqa: PLC0415
    from firebase_admin import credentials, storage  # noqa: PLC0415

    creds_path = settings.firebase_credentials_path
    if creds_path and not Path(creds_path).is_absolute():
        project_root = Path(__file__).parent.parent.parent
        creds_path = str(project_root / creds_path)

    if not creds_path or not Path(creds_path).exists():
        raise StorageNotConfiguredError(
            f"Firebase credentials file not found: {creds_path}"
        )

    try:
        if _firebase_app is None:
            cred = credentials.Certificate(creds_path)
            _firebase_app = firebase_admin.initialize_app(
                cred,
                {
                    "storageBucket": settings.firebase_storage_bucket,
                    "projectId": settings.firebase_project_id,
                },
            )
            logger.info(
                "firebase_initialized",
                project_id=settings.firebase_project_id,
                bucket=settings.firebase_storage_bucket,
            )

        _storage_bucket = storage.bucket()
        return _storage_bucket

    except Exception as e:
        logger.exception("firebase_init_failed", error=str(e))
        raise StorageNotConfiguredError(f"Failed to initialize Firebase: {e}") from e


class FirebaseStorageService:
    """Document store backed by Firebase Storage.

    The google-cloud-storage client is blocking, so bucket calls run in a
    worker thread.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._bucket: Bucket | None = None

    @property
    def is_configured(self) -> bool:
        """Check if Firebase Storage is configured."""
        return self.settings.firebase_configured

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise StorageNotConfiguredError

    def _get_bucket(self) -> "Bucket":
        """Get Firebase Storage bucket (lazy initialization)."""
        if self._bucket is None:
            self._bucket = _init_firebase(self.settings)
        return self._bucket

    def public_url(self, storage_path: str) -> str:
        """Public URL of a stored object."""
        bucket_name = self.settings.firebase_storage_bucket
        encoded_path = "/".join(
            quote(part, safe="") for part in storage_path.split("/")
        )
        return f"https://storage.googleapis.com/{bucket_name}/{encoded_path}"

    async def document_exists(self, storage_path: str) -> bool:
        """Check whether an object exists at ``storage_path``.

        Raises:
            StorageNotConfiguredError: If Firebase is not configured.
            StorageUploadError: If the bucket cannot be queried.
        """
        self._ensure_configured()
        try:
            blob = self._get_bucket().blob(storage_path)
            return await asyncio.to_thread(blob.exists)
        except StorageError:
            raise
        except Exception as e:
            logger.exception(
                "document_exists_check_failed", storage_path=storage_path, error=str(e)
            )
            raise StorageUploadError(f"Failed to query document: {e}") from e

    async def upload_document(
        self,
        content: bytes,
        storage_path: str,
        content_type: str,
        download_name: str | None = None,
    ) -> str:
        """Upload a document and make it public.

        Returns:
            Public URL of the uploaded document.

        Raises:
            StorageNotConfiguredError: If Firebase is not configured.
            StorageUploadError: If upload fails.
        """
        self._ensure_configured()

        try:
            bucket = self._get_bucket()
            blob: Blob = bucket.blob(storage_path)
            blob.cache_control = "public, max-age=86400"
            if download_name:
                safe_name = quote(download_name, safe="")
                blob.content_disposition = f"inline; filename*=UTF-8''{safe_name}"

            await asyncio.to_thread(
                blob.upload_from_string, content, content_type=content_type
            )
            await asyncio.to_thread(blob.make_public)

            logger.info(
                "document_uploaded",
                storage_path=storage_path,
                content_type=content_type,
                file_size=len(content),
            )
            return self.public_url(storage_path)

        except StorageError:
            raise
        except Exception as e:
            logger.exception(
                "document_upload_failed",
                storage_path=storage_path,
                error=str(e),
            )
            raise StorageUploadError(f"Failed to upload document: {e}") from e
