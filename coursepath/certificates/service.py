"""Certificate issuer service layer.

Business logic for:
- Idempotent issuance: at most one certificate per (user, course)
- Certificate documents rendered and kept in the document store
- Ownership-checked document access and public verification by code

Issuance is serialized with a Redis lock when Redis is available. The lock
only narrows the race window; ``INSERT ... IF NOT EXISTS`` on the
(user, course) partition decides the winner, and every loser returns the
winner's certificate.
"""

import secrets
import string
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from redis.exceptions import LockError, RedisError

from coursepath.core.redis import certificate_lock_key
from coursepath.storage import StorageError

from .documents import certificate_file_name, render_certificate
from .models import Certificate


if TYPE_CHECKING:
    import redis.asyncio as redis
    from cassandra.cluster import Session

    from coursepath.config.settings import Settings
    from coursepath.courses.service import CourseCatalogService
    from coursepath.progress.service import ProgressService
    from coursepath.storage import FirebaseStorageService

logger = structlog.get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_RANDOM_LENGTH = 9


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CertificateError(Exception):
    """Base certificate error."""

    def __init__(self, message: str, code: str = "certificate_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CertificateNotFoundError(CertificateError):
    """Certificate not found."""

    def __init__(self, message: str = "Certificate not found"):
        super().__init__(message, "certificate_not_found")


class CourseProgressNotFoundError(CertificateError):
    """No progress recorded for the course."""

    def __init__(self, message: str = "Course progress not found"):
        super().__init__(message, "progress_not_found")


class CourseNotCompletedError(CertificateError):
    """Course not completed yet."""

    def __init__(self, message: str = "Course not completed yet"):
        super().__init__(message, "course_not_completed")


class NotCertificateOwnerError(CertificateError):
    """Certificate belongs to another user."""

    def __init__(self, message: str = "Certificate belongs to another user"):
        super().__init__(message, "not_owner")


class CertificateDocumentError(CertificateError):
    """Certificate document could not be stored or read."""

    def __init__(self, message: str = "Certificate document unavailable"):
        super().__init__(message, "certificate_document_unavailable")


def generate_certificate_code(prefix: str, now: datetime) -> str:
    """Public code: ``<prefix>-<epoch ms>-<9 uppercase alphanumerics>``."""
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_RANDOM_LENGTH))
    return f"{prefix}-{int(now.timestamp() * 1000)}-{suffix}"


# ==============================================================================
# Certificate Service
# ==============================================================================


class CertificateService:
    """Certificate issuer."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        storage: "FirebaseStorageService",
        catalog: "CourseCatalogService",
        progress_service: "ProgressService",
        settings: "Settings",
        redis_client: "redis.Redis | None" = None,
    ):
        """Initialize with Cassandra session, document store and collaborators."""
        self.session = session
        self.keyspace = keyspace
        self.storage = storage
        self.catalog = catalog
        self.progress_service = progress_service
        self.settings = settings
        self.redis = redis_client
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_certificate = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (user_id, course_id, certificate_id, code, learner_name,
             course_title, document_url, storage_path, completed_at, issued_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_id
            WHERE certificate_id = ?
        """)

        self._insert_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_id
            (certificate_id, user_id, course_id)
            VALUES (?, ?, ?)
        """)

        self._get_by_code = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_code WHERE code = ?
        """)

        self._insert_by_code = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_code
            (code, user_id, course_id)
            VALUES (?, ?, ?)
        """)

        self._get_by_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_user WHERE user_id = ?
        """)

        self._insert_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_user
            (user_id, issued_at, certificate_id, course_id)
            VALUES (?, ?, ?, ?)
        """)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_user_course_certificate(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None:
        """Get the certificate of a user for a course."""
        result = await self.session.aexecute(
            self._get_certificate, [user_id, course_id]
        )
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def get_certificate(self, certificate_id: UUID) -> Certificate | None:
        """Get certificate by ID."""
        result = await self.session.aexecute(self._get_by_id, [certificate_id])
        row = result.one()
        if not row:
            return None
        return await self.get_user_course_certificate(row.user_id, row.course_id)

    async def list_user_certificates(self, user_id: UUID) -> list[Certificate]:
        """All certificates of a user, newest first."""
        rows = await self.session.aexecute(self._get_by_user, [user_id])
        certificates = []
        for row in rows:
            certificate = await self.get_user_course_certificate(user_id, row.course_id)
            if certificate:
                certificates.append(certificate)
        return certificates

    async def verify_certificate(self, code: str) -> Certificate:
        """Look up a certificate by its public code.

        Raises:
            CertificateNotFoundError: Unknown code
        """
        result = await self.session.aexecute(self._get_by_code, [code])
        row = result.one()
        certificate = (
            await self.get_user_course_certificate(row.user_id, row.course_id)
            if row
            else None
        )
        if certificate is None:
            raise CertificateNotFoundError
        return certificate

    # ==========================================================================
    # Issuance
    # ==========================================================================

    async def generate_certificate(
        self, user_id: UUID, course_id: UUID, learner_name: str = ""
    ) -> Certificate:
        """Create-or-fetch the certificate for a completed course.

        Raises:
            CourseProgressNotFoundError: No progress for the course
            CourseNotCompletedError: Course not completed
            CertificateDocumentError: Document store unavailable
        """
        progress = await self.progress_service.get_progress(user_id, course_id)
        if progress is None:
            raise CourseProgressNotFoundError
        if not progress.completed:
            raise CourseNotCompletedError

        return await self.issue(
            user_id, course_id, learner_name, completed_at=progress.completed_at
        )

    async def issue(
        self,
        user_id: UUID,
        course_id: UUID,
        learner_name: str = "",
        completed_at: datetime | None = None,
    ) -> Certificate:
        """Idempotent issuance for a (user, course) pair.

        An existing certificate is returned unchanged. The certificate row is
        committed before its document is stored, so a document store failure
        leaves a certificate whose document is regenerated on the next call.

        The by-id, by-code and by-user rows are rewritten on every call. They
        hold only keys of the committed row, so a retry after a failed lookup
        write repairs them.

        Raises:
            CertificateDocumentError: Document store unavailable
        """
        certificate = await self.get_user_course_certificate(user_id, course_id)
        if certificate is None:
            certificate = await self._create_serialized(
                user_id, course_id, learner_name, completed_at
            )
        await self._ensure_lookups(certificate)
        return await self.ensure_document(certificate)

    async def _create_serialized(
        self,
        user_id: UUID,
        course_id: UUID,
        learner_name: str,
        completed_at: datetime | None,
    ) -> Certificate:
        if self.redis is None:
            return await self._create(user_id, course_id, learner_name, completed_at)

        timeout = self.settings.certificate_lock_timeout_seconds
        lock = self.redis.lock(
            certificate_lock_key(user_id, course_id),
            timeout=timeout,
            blocking_timeout=timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.warning(
                "certificate_lock_unavailable",
                user_id=str(user_id),
                course_id=str(course_id),
                error=str(e),
            )
            acquired = False

        try:
            return await self._create(user_id, course_id, learner_name, completed_at)
        finally:
            if acquired:
                try:
                    await lock.release()
                except LockError:
                    logger.warning(
                        "certificate_lock_expired",
                        user_id=str(user_id),
                        course_id=str(course_id),
                    )

    async def _create(
        self,
        user_id: UUID,
        course_id: UUID,
        learner_name: str,
        completed_at: datetime | None,
    ) -> Certificate:
        existing = await self.get_user_course_certificate(user_id, course_id)
        if existing is not None:
            return existing

        course = await self.catalog.get_course(course_id)
        now = datetime.now(UTC)
        code = generate_certificate_code(self.settings.certificate_code_prefix, now)
        storage_path = (
            f"{self.settings.certificate_storage_prefix}/{certificate_file_name(code)}"
        )
        certificate = Certificate(
            user_id=user_id,
            course_id=course_id,
            code=code,
            learner_name=learner_name,
            course_title=course.title if course else "",
            document_url=self.storage.public_url(storage_path),
            storage_path=storage_path,
            completed_at=completed_at or now,
            issued_at=now,
        )

        result = await self.session.aexecute(
            self._insert_certificate,
            [
                certificate.user_id,
                certificate.course_id,
                certificate.id,
                certificate.code,
                certificate.learner_name,
                certificate.course_title,
                certificate.document_url,
                certificate.storage_path,
                certificate.completed_at,
                certificate.issued_at,
            ],
        )
        if not result.was_applied:
            logger.info(
                "certificate_issue_race_lost",
                user_id=str(user_id),
                course_id=str(course_id),
            )
            winner = await self.get_user_course_certificate(user_id, course_id)
            if winner is None:
                raise CertificateError(
                    "Certificate disappeared after a conflicting write"
                )
            return winner

        logger.info(
            "certificate_issued",
            user_id=str(user_id),
            course_id=str(course_id),
            certificate_id=str(certificate.id),
            code=certificate.code,
        )
        return certificate

    async def _ensure_lookups(self, certificate: Certificate) -> None:
        """Upsert the lookup rows pointing at ``certificate`` (idempotent)."""
        await self.session.aexecute(
            self._insert_by_id,
            [certificate.id, certificate.user_id, certificate.course_id],
        )
        await self.session.aexecute(
            self._insert_by_code,
            [certificate.code, certificate.user_id, certificate.course_id],
        )
        await self.session.aexecute(
            self._insert_by_user,
            [
                certificate.user_id,
                certificate.issued_at,
                certificate.id,
                certificate.course_id,
            ],
        )

    # ==========================================================================
    # Documents
    # ==========================================================================

    async def ensure_document(self, certificate: Certificate) -> Certificate:
        """Render and store the certificate document if it is missing.

        Raises:
            CertificateDocumentError: Document store unavailable
        """
        storage_path = certificate.storage_path or (
            f"{self.settings.certificate_storage_prefix}/"
            f"{certificate_file_name(certificate.code)}"
        )

        try:
            if await self.storage.document_exists(storage_path):
                return certificate

            html = render_certificate(
                learner=certificate.learner_name or str(certificate.user_id),
                course_title=certificate.course_title,
                code=certificate.code,
                completed_at=certificate.completed_at,
                issued_at=certificate.issued_at,
                issuer=self.settings.certificate_issuer_name,
            )
            certificate.document_url = await self.storage.upload_document(
                html.encode("utf-8"),
                storage_path,
                content_type="text/html; charset=utf-8",
                download_name=certificate_file_name(certificate.code),
            )
        except StorageError as e:
            logger.warning(
                "certificate_document_failed",
                certificate_id=str(certificate.id),
                code=e.code,
                error=e.message,
            )
            raise CertificateDocumentError(
                f"Certificate document unavailable: {e.message}"
            ) from e

        logger.info(
            "certificate_document_stored",
            certificate_id=str(certificate.id),
            storage_path=storage_path,
        )
        return certificate

    async def get_document_url(self, user_id: UUID, certificate_id: UUID) -> str:
        """Document URL of a certificate owned by ``user_id``.

        The document is regenerated when the store no longer has it.

        Raises:
            CertificateNotFoundError: Unknown certificate
            NotCertificateOwnerError: Certificate belongs to another user
            CertificateDocumentError: Document store unavailable
        """
        certificate = await self.get_certificate(certificate_id)
        if certificate is None:
            raise CertificateNotFoundError
        if certificate.user_id != user_id:
            raise NotCertificateOwnerError

        certificate = await self.ensure_document(certificate)
        return certificate.document_url or ""
