"""Cassandra access for CoursePath."""

from coursepath.core.database.async_cassandra import (
    SCHEMA_GROUPS,
    AsyncCassandraConnection,
    create_schema,
    init_async_cassandra,
    keyspace_cql,
    shutdown_async_cassandra,
)


__all__ = [
    "SCHEMA_GROUPS",
    "AsyncCassandraConnection",
    "create_schema",
    "init_async_cassandra",
    "keyspace_cql",
    "shutdown_async_cassandra",
]
