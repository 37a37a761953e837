"""Document store for generated certificates (Firebase Storage)."""

from coursepath.storage.service import (
    FirebaseStorageService,
    StorageError,
    StorageNotConfiguredError,
    StorageUploadError,
)


__all__ = [
    "FirebaseStorageService",
    "StorageError",
    "StorageNotConfiguredError",
    "StorageUploadError",
]
