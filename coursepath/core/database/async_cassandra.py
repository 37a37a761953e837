"""Async Cassandra connection and schema bootstrap.

``cassandra-asyncio-driver`` adds ``session.aexecute()`` on top of the standard
driver; every service awaits it. The conditional writes used by the progress,
quiz and certificate stores (``IF NOT EXISTS`` / ``IF version = ?``) need no
extra setup beyond a quorum-capable cluster.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from coursepath.certificates.models import CERTIFICATES_TABLES_CQL
from coursepath.config.settings import Settings, get_settings
from coursepath.courses.models import COURSES_TABLES_CQL
from coursepath.enrollments.models import ENROLLMENTS_TABLES_CQL
from coursepath.progress.models import PROGRESS_TABLES_CQL
from coursepath.quizzes.models import QUIZZES_TABLES_CQL
from coursepath.video.models import VIDEO_TABLES_CQL


logger = structlog.get_logger(__name__)

# Table groups in creation order: (name used in logs, CQL templates)
SCHEMA_GROUPS: tuple[tuple[str, list[str]], ...] = (
    ("courses", COURSES_TABLES_CQL),
    ("enrollments", ENROLLMENTS_TABLES_CQL),
    ("video", VIDEO_TABLES_CQL),
    ("quizzes", QUIZZES_TABLES_CQL),
    ("progress", PROGRESS_TABLES_CQL),
    ("certificates", CERTIFICATES_TABLES_CQL),
)


class AsyncCassandraConnection:
    """Process-wide cluster and session holder."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls, settings: Settings | None = None):
        """Return the shared session, connecting on first use.

        Raises:
            ConnectionError: No contact point accepted the connection
        """
        if cls._session is not None:
            return cls._session

        settings = settings or get_settings()
        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(
                DCAwareRoundRobinPolicy(local_dc=settings.cassandra_datacenter)
            ),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            session = cls._cluster.connect()
        except Exception as e:
            logger.error(
                "cassandra_connection_failed",
                hosts=settings.cassandra_hosts,
                error=str(e),
            )
            cls._cluster.shutdown()
            cls._cluster = None
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        session.default_timeout = settings.cassandra_request_timeout
        cls._session = session
        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
            datacenter=settings.cassandra_datacenter,
        )
        return session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


def keyspace_cql(settings: Settings) -> str:
    """``CREATE KEYSPACE`` honoring the configured replication."""
    factor = settings.cassandra_replication_factor
    if settings.cassandra_datacenter:
        replication = (
            f"'class': 'NetworkTopologyStrategy', "
            f"'{settings.cassandra_datacenter}': {factor}"
        )
    else:
        replication = f"'class': 'SimpleStrategy', 'replication_factor': {factor}"
    return (
        f"CREATE KEYSPACE IF NOT EXISTS {settings.cassandra_keyspace} "
        f"WITH replication = {{{replication}}} AND durable_writes = true"
    )


async def create_schema(session, keyspace: str) -> None:
    """Create every table group in ``SCHEMA_GROUPS`` (idempotent)."""
    for group, statements in SCHEMA_GROUPS:
        for cql_template in statements:
            await session.aexecute(cql_template.format(keyspace=keyspace))
        logger.debug("cassandra_tables_ready", group=group, keyspace=keyspace)


async def init_async_cassandra():
    """Connect, create the keyspace and tables, and return the session."""
    settings = get_settings()
    session = AsyncCassandraConnection.connect(settings)

    await session.aexecute(keyspace_cql(settings))
    session.set_keyspace(settings.cassandra_keyspace)
    await create_schema(session, settings.cassandra_keyspace)

    logger.info(
        "cassandra_schema_ready",
        keyspace=settings.cassandra_keyspace,
        groups=[group for group, _ in SCHEMA_GROUPS],
    )
    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()
