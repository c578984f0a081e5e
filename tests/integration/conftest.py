"""
Integration test fixtures — PostgreSQL testcontainer and schema setup.

Provides a real PostgreSQL instance for each test session via testcontainers,
creates the sectigo_certificates table matching the production schema, and
truncates it before each test.
"""

from __future__ import annotations

import psycopg
import pytest
from testcontainers.postgres import PostgresContainer

DDL = """
CREATE TABLE sectigo_certificates (
    request_id         TEXT PRIMARY KEY,
    product_id         TEXT,
    status             INTEGER NOT NULL,
    serial_number      TEXT,
    certificate        BYTEA,
    submitted_at       TIMESTAMPTZ,
    resolved_at        TIMESTAMPTZ,
    revocation_reason  INTEGER,
    revoked_at         TIMESTAMPTZ,
    updated_at         TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX sectigo_certificates_serial_idx ON sectigo_certificates (serial_number);
"""

TRUNCATE_ALL = "TRUNCATE sectigo_certificates;"


@pytest.fixture(scope="session")
def postgres_container() -> PostgresContainer:
    """Start a PostgreSQL container for the entire test session."""
    with PostgresContainer("postgres:16-alpine") as pg:
        dsn = pg.get_connection_url().replace("postgresql+psycopg2", "postgresql")
        with psycopg.connect(dsn) as conn:
            conn.execute(DDL)
            conn.commit()
        yield pg


@pytest.fixture()
def dsn(postgres_container: PostgresContainer) -> str:
    """Return a psycopg-compatible DSN and truncate the table before each test."""
    connection_url = postgres_container.get_connection_url().replace(
        "postgresql+psycopg2", "postgresql"
    )
    with psycopg.connect(connection_url) as conn:
        conn.execute(TRUNCATE_ALL)
        conn.commit()
    return connection_url
