"""Tests for idempotent certificate issuance."""

import asyncio
import re
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra import OperationTimedOut
from redis.exceptions import LockError, RedisError

from coursepath.certificates.service import (
    CertificateDocumentError,
    CertificateNotFoundError,
    CertificateService,
    CourseNotCompletedError,
    CourseProgressNotFoundError,
    NotCertificateOwnerError,
    generate_certificate_code,
)
from coursepath.config import get_settings
from coursepath.courses.models import Course
from coursepath.courses.service import CourseCatalogService
from coursepath.progress.models import CourseProgress
from coursepath.progress.service import ProgressService
from coursepath.storage import FirebaseStorageService, StorageUploadError


COURSE_ID = uuid4()
COMPLETED_AT = datetime(2026, 2, 1, 9, 30, tzinfo=UTC)
BUCKET_URL = "https://storage.example.com"
CERTIFICATE_COLUMNS = (
    "user_id",
    "course_id",
    "certificate_id",
    "code",
    "learner_name",
    "course_title",
    "document_url",
    "storage_path",
    "completed_at",
    "issued_at",
)


def _row(user_id, code="CERT-1-AAAAAAAAA", certificate_id=None):
    return SimpleNamespace(
        user_id=user_id,
        course_id=COURSE_ID,
        certificate_id=certificate_id or uuid4(),
        code=code,
        learner_name="Ada Learner",
        course_title="Intro to Testing",
        document_url=f"{BUCKET_URL}/certs/certificate-{code}.html",
        storage_path=f"certs/certificate-{code}.html",
        completed_at=COMPLETED_AT,
        issued_at=COMPLETED_AT,
    )


class CertificateStore:
    """In-memory certificates tables honoring ``IF NOT EXISTS``.

    Every statement yields to the event loop first, so concurrent issuers
    interleave the way they would against a real cluster.
    """

    def __init__(self, result_type, failing_by_id_writes: int = 0):
        self.result = result_type
        self.rows: dict[tuple, SimpleNamespace] = {}
        self.by_id: dict = {}
        self.by_id_writes = 0
        self._failing_by_id_writes = failing_by_id_writes

    async def aexecute(self, statement: str, params=None):
        await asyncio.sleep(0)
        if "INSERT INTO ks.certificates (" in statement:
            key = (params[0], params[1])
            if key in self.rows:
                return self.result(was_applied=False)
            self.rows[key] = SimpleNamespace(**dict(zip(CERTIFICATE_COLUMNS, params)))
            return self.result()
        if "FROM ks.certificates WHERE" in statement:
            row = self.rows.get((params[0], params[1]))
            return self.result([row] if row else [])
        if "INSERT INTO ks.certificates_by_id" in statement:
            self.by_id_writes += 1
            if self._failing_by_id_writes:
                self._failing_by_id_writes -= 1
                raise OperationTimedOut("by_id write timed out")
            self.by_id[params[0]] = SimpleNamespace(
                user_id=params[1], course_id=params[2]
            )
            return self.result()
        if "FROM ks.certificates_by_id WHERE" in statement:
            row = self.by_id.get(params[0])
            return self.result([row] if row else [])
        return self.result()


@pytest.fixture
def storage() -> Mock:
    storage = Mock(spec=FirebaseStorageService)
    storage.public_url.side_effect = lambda path: f"{BUCKET_URL}/{path}"
    storage.document_exists = AsyncMock(return_value=False)
    storage.upload_document = AsyncMock(
        side_effect=lambda content, path, **kwargs: f"{BUCKET_URL}/{path}"
    )
    return storage


@pytest.fixture
def catalog() -> Mock:
    catalog = Mock(spec=CourseCatalogService)
    catalog.get_course = AsyncMock(
        return_value=Course(id=COURSE_ID, title="Intro to Testing")
    )
    return catalog


@pytest.fixture
def progress_service(user_id) -> Mock:
    service = Mock(spec=ProgressService)
    service.get_progress = AsyncMock(
        return_value=CourseProgress(
            user_id=user_id,
            course_id=COURSE_ID,
            completed=True,
            completed_at=COMPLETED_AT,
        )
    )
    return service


def _service(cql_session, storage, catalog, progress_service, redis_client=None):
    settings = get_settings().model_copy(
        update={"certificate_storage_prefix": "certs"}
    )
    return CertificateService(
        session=cql_session,
        keyspace="ks",
        storage=storage,
        catalog=catalog,
        progress_service=progress_service,
        settings=settings,
        redis_client=redis_client,
    )


@pytest.fixture
def service(cql_session, storage, catalog, progress_service) -> CertificateService:
    return _service(cql_session, storage, catalog, progress_service)


def test_certificate_code_format() -> None:
    now = datetime(2026, 1, 1, tzinfo=UTC)
    code = generate_certificate_code("CERT", now)
    assert re.fullmatch(rf"CERT-{int(now.timestamp() * 1000)}-[A-Z0-9]{{9}}", code)
    assert code != generate_certificate_code("CERT", now)


class TestIssue:
    """Tests for issue / generate_certificate."""

    @pytest.mark.asyncio
    async def test_new_certificate(
        self, service, storage, cql_session, executed_cql, user_id
    ) -> None:
        certificate = await service.issue(
            user_id, COURSE_ID, "Ada Learner", completed_at=COMPLETED_AT
        )

        assert certificate.course_title == "Intro to Testing"
        assert certificate.completed_at == COMPLETED_AT
        assert certificate.storage_path == (
            f"certs/certificate-{certificate.code}.html"
        )
        assert certificate.document_url == f"{BUCKET_URL}/{certificate.storage_path}"

        inserts = executed_cql(cql_session, "INSERT INTO ks.certificates (")
        assert len(inserts) == 1
        assert executed_cql(cql_session, "INSERT INTO ks.certificates_by_id") == [
            [certificate.id, user_id, COURSE_ID]
        ]
        assert len(executed_cql(cql_session, "certificates_by_code (")) == 1
        assert len(executed_cql(cql_session, "certificates_by_user (")) == 1

        content, path = storage.upload_document.await_args.args
        assert path == certificate.storage_path
        assert b"Ada Learner" in content
        assert certificate.code.encode() in content

    @pytest.mark.asyncio
    async def test_existing_certificate_returned_unchanged(
        self, service, route_cql, fake_result, cql_session, executed_cql, user_id
    ) -> None:
        row = _row(user_id)
        route_cql({"FROM ks.certificates WHERE": fake_result([row])})
        service.storage.document_exists.return_value = True

        certificate = await service.issue(user_id, COURSE_ID, "Someone Else")

        assert certificate.id == row.certificate_id
        assert certificate.code == row.code
        assert certificate.learner_name == "Ada Learner"
        assert executed_cql(cql_session, "INSERT INTO ks.certificates (") == []
        assert executed_cql(cql_session, "certificates_by_id (") == [
            [row.certificate_id, user_id, COURSE_ID]
        ]
        service.storage.upload_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_race_loser_returns_winner(
        self, service, route_cql, fake_result, cql_session, executed_cql, user_id
    ) -> None:
        winner = _row(user_id, code="CERT-2-WINNERXXX")
        route_cql(
            {
                "FROM ks.certificates WHERE": [
                    fake_result(),
                    fake_result(),
                    fake_result([winner]),
                ],
                "INSERT INTO ks.certificates (": fake_result(was_applied=False),
            }
        )

        certificate = await service.issue(user_id, COURSE_ID, "Ada Learner")

        assert certificate.id == winner.certificate_id
        assert certificate.code == "CERT-2-WINNERXXX"
        assert executed_cql(cql_session, "certificates_by_id (") == [
            [winner.certificate_id, user_id, COURSE_ID]
        ]

    @pytest.mark.asyncio
    async def test_missing_document_regenerated(
        self, service, storage, route_cql, fake_result, user_id
    ) -> None:
        row = _row(user_id)
        route_cql({"FROM ks.certificates WHERE": fake_result([row])})

        certificate = await service.issue(user_id, COURSE_ID)

        storage.upload_document.assert_awaited_once()
        assert storage.upload_document.await_args.args[1] == row.storage_path
        assert certificate.document_url == f"{BUCKET_URL}/{row.storage_path}"

    @pytest.mark.asyncio
    async def test_document_failure_keeps_certificate_row(
        self, service, storage, cql_session, executed_cql, user_id
    ) -> None:
        storage.upload_document.side_effect = StorageUploadError("bucket down")

        with pytest.raises(CertificateDocumentError):
            await service.issue(user_id, COURSE_ID, "Ada Learner")
        assert len(executed_cql(cql_session, "INSERT INTO ks.certificates (")) == 1

    @pytest.mark.asyncio
    async def test_generate_requires_completed_course(
        self, service, progress_service, user_id
    ) -> None:
        progress_service.get_progress.return_value = CourseProgress(
            user_id=user_id, course_id=COURSE_ID, completed=False
        )
        with pytest.raises(CourseNotCompletedError):
            await service.generate_certificate(user_id, COURSE_ID)

    @pytest.mark.asyncio
    async def test_generate_requires_progress(
        self, service, progress_service, user_id
    ) -> None:
        progress_service.get_progress.return_value = None
        with pytest.raises(CourseProgressNotFoundError):
            await service.generate_certificate(user_id, COURSE_ID)

    @pytest.mark.asyncio
    async def test_generate_uses_completion_time(self, service, user_id) -> None:
        certificate = await service.generate_certificate(
            user_id, COURSE_ID, "Ada Learner"
        )
        assert certificate.completed_at == COMPLETED_AT


class TestIssuanceLock:
    """Tests for the optional Redis issuance lock."""

    @staticmethod
    def _redis(acquire=None, release=None):
        lock = Mock()
        lock.acquire = acquire or AsyncMock(return_value=True)
        lock.release = release or AsyncMock()
        client = Mock()
        client.lock.return_value = lock
        return client, lock

    @pytest.mark.asyncio
    async def test_lock_held_around_creation(
        self, cql_session, storage, catalog, progress_service, user_id
    ) -> None:
        client, lock = self._redis()
        service = _service(cql_session, storage, catalog, progress_service, client)

        await service.issue(user_id, COURSE_ID, "Ada Learner")

        key = client.lock.call_args.args[0]
        assert str(user_id) in key and str(COURSE_ID) in key
        lock.acquire.assert_awaited_once()
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_redis_still_issues(
        self, cql_session, storage, catalog, progress_service, user_id
    ) -> None:
        client, lock = self._redis(acquire=AsyncMock(side_effect=RedisError("down")))
        service = _service(cql_session, storage, catalog, progress_service, client)

        certificate = await service.issue(user_id, COURSE_ID, "Ada Learner")

        assert certificate.code.startswith(get_settings().certificate_code_prefix)
        lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_lock_does_not_fail_issuance(
        self, cql_session, storage, catalog, progress_service, user_id
    ) -> None:
        client, _ = self._redis(release=AsyncMock(side_effect=LockError("expired")))
        service = _service(cql_session, storage, catalog, progress_service, client)

        certificate = await service.issue(user_id, COURSE_ID, "Ada Learner")
        assert certificate.course_id == COURSE_ID


class TestReads:
    """Tests for lookups, verification and document access."""

    @pytest.mark.asyncio
    async def test_verify_unknown_code(self, service) -> None:
        with pytest.raises(CertificateNotFoundError):
            await service.verify_certificate("CERT-0-NOPE")

    @pytest.mark.asyncio
    async def test_verify_known_code(
        self, service, route_cql, fake_result, user_id
    ) -> None:
        row = _row(user_id)
        route_cql(
            {
                "certificates_by_code WHERE": fake_result(
                    [SimpleNamespace(user_id=user_id, course_id=COURSE_ID)]
                ),
                "FROM ks.certificates WHERE": fake_result([row]),
            }
        )
        certificate = await service.verify_certificate(row.code)
        assert certificate.id == row.certificate_id

    @pytest.mark.asyncio
    async def test_list_user_certificates(
        self, service, route_cql, fake_result, user_id
    ) -> None:
        row = _row(user_id)
        route_cql(
            {
                "certificates_by_user WHERE": fake_result(
                    [SimpleNamespace(course_id=COURSE_ID)]
                ),
                "FROM ks.certificates WHERE": fake_result([row]),
            }
        )
        certificates = await service.list_user_certificates(user_id)
        assert [c.id for c in certificates] == [row.certificate_id]

    @pytest.mark.asyncio
    async def test_document_url_requires_owner(
        self, service, route_cql, fake_result, user_id
    ) -> None:
        owner = uuid4()
        row = _row(owner)
        route_cql(
            {
                "certificates_by_id WHERE": fake_result(
                    [SimpleNamespace(user_id=owner, course_id=COURSE_ID)]
                ),
                "FROM ks.certificates WHERE": fake_result([row]),
            }
        )
        with pytest.raises(NotCertificateOwnerError):
            await service.get_document_url(user_id, row.certificate_id)

    @pytest.mark.asyncio
    async def test_document_url_for_owner(
        self, service, storage, route_cql, fake_result, user_id
    ) -> None:
        row = _row(user_id)
        route_cql(
            {
                "certificates_by_id WHERE": fake_result(
                    [SimpleNamespace(user_id=user_id, course_id=COURSE_ID)]
                ),
                "FROM ks.certificates WHERE": fake_result([row]),
            }
        )
        storage.document_exists.return_value = True

        url = await service.get_document_url(user_id, row.certificate_id)
        assert url == row.document_url

    @pytest.mark.asyncio
    async def test_document_url_unknown_certificate(self, service, user_id) -> None:
        with pytest.raises(CertificateNotFoundError):
            await service.get_document_url(user_id, uuid4())


class TestRetriesAndConcurrency:
    """Tests for retry safety and concurrent issuance."""

    @pytest.mark.asyncio
    async def test_retry_repairs_failed_lookup_write(
        self, service, storage, cql_session, fake_result, user_id
    ) -> None:
        store = CertificateStore(fake_result, failing_by_id_writes=1)
        cql_session.aexecute.side_effect = store.aexecute
        storage.document_exists.return_value = True

        with pytest.raises(OperationTimedOut):
            await service.issue(user_id, COURSE_ID, "Ada Learner")
        assert len(store.rows) == 1
        assert store.by_id == {}

        certificate = await service.issue(user_id, COURSE_ID, "Ada Learner")

        assert store.by_id_writes == 2
        assert certificate.id in store.by_id
        url = await service.get_document_url(user_id, certificate.id)
        assert url == certificate.document_url

    @pytest.mark.asyncio
    async def test_concurrent_issuance_stores_one_certificate(
        self, service, cql_session, fake_result, user_id
    ) -> None:
        store = CertificateStore(fake_result)
        cql_session.aexecute.side_effect = store.aexecute

        certificates = await asyncio.gather(
            *(service.issue(user_id, COURSE_ID, "Ada Learner") for _ in range(8))
        )

        assert len(store.rows) == 1
        (stored,) = store.rows.values()
        assert {c.id for c in certificates} == {stored.certificate_id}
        assert {c.code for c in certificates} == {stored.code}
        assert list(store.by_id) == [stored.certificate_id]
