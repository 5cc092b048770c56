"""
Pytest configuration for active-orm.

Provides fixtures for:
- In-memory connection and schema adapter doubles for unit tests
- A Session wired to those doubles
- Database connection management for integration tests
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest

from active_orm.config import Settings
from active_orm.infrastructure.connection import ColumnDescriptor
from active_orm.session import Session
from tests.support import FakeConnection, FakeSchemaAdapter


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def adapter() -> FakeSchemaAdapter:
    return FakeSchemaAdapter(
        {
            "tickets": [
                ColumnDescriptor("id", is_primary_key=True),
                ColumnDescriptor("status"),
                ColumnDescriptor("title"),
                ColumnDescriptor("created_at"),
            ],
            "comments": [
                ColumnDescriptor("id", is_primary_key=True),
                ColumnDescriptor("ticket_id"),
                ColumnDescriptor("body"),
            ],
        }
    )


@pytest.fixture
def session(connection: FakeConnection, adapter: FakeSchemaAdapter) -> Session:
    return Session(connection, adapter=adapter)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "active_orm"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()
