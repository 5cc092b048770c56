"""
Integration tests for active-orm against a real PostgreSQL instance.

These tests verify that:
1. Migrations create tables and are recorded exactly once
2. Records round-trip through insert, find, update and destroy
3. Eager loading and bulk operations issue valid SQL

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest

from active_orm.domain.models import Field, Record
from active_orm.domain.values import IntValue, StringValue
from active_orm.errors import RecordNotFound, StatementError
from active_orm.infrastructure.connection import PsycopgConnection
from active_orm.migrations.base import SqlMigration
from active_orm.migrations.ledger import MigrationLedger
from active_orm.session import Session

LEDGER_TABLE = "it_schema_migrations"

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)

MIGRATIONS = [
    SqlMigration(
        "create_it_tickets",
        20240101000000,
        "CREATE TABLE it_tickets (id SERIAL PRIMARY KEY, status TEXT, title TEXT);",
        "DROP TABLE it_tickets;",
    ),
    SqlMigration(
        "create_it_comments",
        20240102000000,
        "CREATE TABLE it_comments (id SERIAL PRIMARY KEY, ticket_id INTEGER, body TEXT);",
        "DROP TABLE it_comments;",
    ),
]


class ItTicket(Record):
    table_name = "it_tickets"
    model_name = "ticket"

    id = Field(IntValue)
    status = Field(StringValue)
    title = Field(StringValue)


class ItComment(Record):
    table_name = "it_comments"

    id = Field(IntValue)
    ticket_id = Field(IntValue)
    body = Field(StringValue)


def _drop_tables(conn: psycopg.Connection) -> None:
    with conn.cursor() as cur:
        for table in ("it_comments", "it_tickets", LEDGER_TABLE):
            cur.execute(f"DROP TABLE IF EXISTS {table};")  # type: ignore[arg-type]
    conn.commit()


@pytest.fixture
def session(db_connection: psycopg.Connection) -> Generator[Session, None, None]:
    _drop_tables(db_connection)
    session = Session(PsycopgConnection(connection=db_connection, statement_timeout_ms=5000))
    ledger = MigrationLedger(session, MIGRATIONS, table_name=LEDGER_TABLE)
    ledger.setup()
    report = ledger.migrate()
    assert report["applied"] == ["create_it_tickets", "create_it_comments"]
    try:
        yield session
    finally:
        _drop_tables(db_connection)


class TestMigrationLedger:
    def test_second_run_applies_nothing(self, session: Session):
        ledger = MigrationLedger(session, MIGRATIONS, table_name=LEDGER_TABLE)

        report = ledger.migrate()

        assert report["applied"] == []
        assert ledger.applied() == {"create_it_tickets", "create_it_comments"}
        assert ledger.pending() == []


class TestRecordLifecycle:
    def test_create_find_update_destroy(self, session: Session):
        ticket = session.create(ItTicket, {"status": "open", "title": "Broken"})
        assert ticket.id is not None

        loaded = session.find(ItTicket, ticket.id)
        assert loaded.title == "Broken"
        assert not session.is_dirty(loaded)

        loaded.status = "closed"
        loaded.title = None
        session.save(loaded)

        reloaded = session.find(ItTicket, ticket.id)
        assert reloaded.status == "closed"
        assert reloaded.title is None

        session.destroy(reloaded)
        with pytest.raises(RecordNotFound):
            session.find(ItTicket, ticket.id)

    def test_primary_key_lookup_through_information_schema(self, session: Session):
        structure = session.adapter.structure("it_tickets")

        assert [column.name for column in structure if column.is_primary_key] == ["id"]

    def test_destroy_many_and_bulk_operations(self, session: Session):
        tickets = [session.create(ItTicket, {"status": "open"}) for _ in range(3)]

        session.where(ItTicket, {"status": "open"}).update_all({"title": "bulk"})
        assert {t.title for t in session.all(ItTicket)} == {"bulk"}

        session.destroy_many(tickets[:2])
        remaining = session.all(ItTicket)
        assert [t.id for t in remaining] == [tickets[2].id]

        session.where(ItTicket, {"id": tickets[2].id}).destroy_all()
        assert session.all(ItTicket) == []

    def test_includes_loads_related_rows(self, session: Session):
        ticket = session.create(ItTicket, {"status": "open"})
        session.create(ItComment, {"ticket_id": ticket.id, "body": "first"})
        session.create(ItComment, {"ticket_id": ticket.id, "body": "second"})

        (loaded,) = session.includes(ItTicket, ItComment).execute()

        assert sorted(row["body"] for row in loaded["it_comments"]) == ["first", "second"]

    def test_ordering_and_pagination(self, session: Session):
        for title in ("c", "a", "b"):
            session.create(ItTicket, {"status": "open", "title": title})

        page = session.query(ItTicket).order("title", "desc").limit(2).offset(1).execute()

        assert [t.title for t in page] == ["b", "a"]

    def test_backend_errors_surface_as_statement_errors(self, session: Session):
        with pytest.raises(StatementError):
            session.connection.execute("SELECT * FROM it_missing_table;")
