"""
Session: the unit-of-work context every persistence operation runs in.

A Session owns the connection capability, the schema adapter, a snapshot
store and a callback registry. Nothing here is process-wide: two sessions
never share tracked state unless they are handed the same store.

Usage:
    from active_orm import Session

    with Session.from_settings() as session:
        ticket = session.create(Ticket, {"status": "open"})
        ticket.status = "closed"
        session.dirty(ticket)          # {"status": StringValue(value="closed")}
        session.save(ticket)
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Mapping, Optional, Sequence, Type, TypeVar

from active_orm.domain.models import Action, Phase, Record
from active_orm.domain.values import NULL, AttributeValue
from active_orm.errors import ParametersMissing, RecordNotValid
from active_orm.infrastructure.connection import (
    Connection,
    PsycopgSchemaAdapter,
    SchemaAdapter,
    open_connection,
)
from active_orm.relation.builder import RelationBuilder
from active_orm.relation.statements import delete_statement, insert_statement, update_statement
from active_orm.tracking.callbacks import CallbackRegistry
from active_orm.tracking.snapshots import SnapshotStore
from active_orm.utils.logging import get_logger

log = get_logger(__name__)

R = TypeVar("R", bound=Record)


class Session:
    def __init__(
        self,
        connection: Connection,
        adapter: Optional[SchemaAdapter] = None,
        snapshots: Optional[SnapshotStore] = None,
        callbacks: Optional[CallbackRegistry] = None,
        statement_timeout: Optional[float] = None,
    ) -> None:
        """
        Parameters
        ----------
        connection : Connection
            Statement execution capability.
        adapter : SchemaAdapter | None
            Table structure lookup; defaults to information_schema over `connection`.
        snapshots : SnapshotStore | None
            Change-tracking store; a fresh one when omitted.
        callbacks : CallbackRegistry | None
            Lifecycle hooks; a fresh, empty registry when omitted.
        statement_timeout : float | None
            Per-statement deadline in seconds passed to the connection.
        """
        self.connection = connection
        self.adapter = adapter if adapter is not None else PsycopgSchemaAdapter(connection)
        self.snapshots = snapshots if snapshots is not None else SnapshotStore()
        self.callbacks = callbacks if callbacks is not None else CallbackRegistry()
        self.statement_timeout = statement_timeout

    @classmethod
    def from_settings(cls, pooled: bool = True, **kwargs: Any) -> "Session":
        """Open a psycopg-backed session configured from environment settings."""
        return cls(open_connection(pooled=pooled), **kwargs)

    def close(self) -> None:
        close = getattr(self.connection, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Queries

    def query(self, record_type: Type[R]) -> RelationBuilder[R]:
        return RelationBuilder(self, record_type)

    def where(self, record_type: Type[R], attributes: Mapping[str, Any]) -> RelationBuilder[R]:
        return self.query(record_type).where(attributes)

    def includes(self, record_type: Type[R], *related: Type[Record]) -> RelationBuilder[R]:
        return self.query(record_type).includes(*related)

    def all(self, record_type: Type[R]) -> List[R]:
        return self.query(record_type).execute()

    def take(self, record_type: Type[R], count: int = 1) -> List[R]:
        return self.query(record_type).take(count)

    def first(self, record_type: Type[R]) -> Optional[R]:
        return self.query(record_type).first()

    def find(self, record_type: Type[R], identifier: Any) -> R:
        """
        Load the record whose primary key equals `identifier`.

        Raises
        ------
        RecordNotFound
            If no row matches.
        """
        return self.find_by(record_type, {record_type.primary_key: identifier})

    def find_by(self, record_type: Type[R], attributes: Mapping[str, Any]) -> R:
        return self.query(record_type).where(attributes).limit(1).execute(strict=True)[0]

    # Change tracking

    def snapshot(self, record: Record) -> Dict[str, AttributeValue]:
        return self.snapshots.merge(record)

    def dirty(self, record: Record) -> Dict[str, AttributeValue]:
        return self.snapshots.dirty(record)

    def is_dirty(self, record: Record) -> bool:
        return self.snapshots.is_dirty(record)

    def errors(self, record: Record) -> List[str]:
        """Validation messages: CREATE rules for new records, UPDATE rules for dirty ones."""
        if record.is_new_record:
            return record.validate(Action.CREATE)
        if self.is_dirty(record):
            return record.validate(Action.UPDATE)
        return []

    def is_valid(self, record: Record) -> bool:
        return not self.errors(record)

    # Callbacks

    def _run_hooks(self, phase: Phase, action: Action, record: Record) -> None:
        self.callbacks.dispatch(type(record), phase, action, record)
        if phase is Phase.BEFORE:
            record.before(action)
        else:
            record.after(action)

    @contextmanager
    def _lifecycle(self, action: Action, record: Record) -> Generator[None, None, None]:
        """BEFORE hooks, the wrapped operation, then AFTER hooks if it succeeded."""
        self._run_hooks(Phase.BEFORE, action, record)
        yield
        self._run_hooks(Phase.AFTER, action, record)

    # Persistence

    def save(self, record: R, validate: bool = False) -> R:
        """
        Insert a new record or write the dirty attributes of a persisted one.

        Raises
        ------
        RecordNotValid
            If `validate` is true and the record reports errors.
        StatementError
            If the backend rejects the statement.
        """
        with self._lifecycle(Action.SAVE, record):
            if validate:
                errors = self.errors(record)
                if errors:
                    raise RecordNotValid(record, errors)
            if record.persisted:
                self._write_changes(record)
            else:
                self._insert(record)
            self.snapshots.set(record)
        return record

    def create(
        self, record_type: Type[R], attributes: Optional[Mapping[str, Any]] = None, **kwargs: Any
    ) -> R:
        """Build, validate and insert a record of `record_type`."""
        record = record_type(attributes, **kwargs)
        with self._lifecycle(Action.CREATE, record):
            self.save(record, validate=True)
        return record

    def update(self, record: R, attributes: Optional[Mapping[str, Any]] = None) -> R:
        """Assign `attributes` (if any) and write every dirty attribute."""
        self._require_identity(record)
        if attributes:
            record.assign(attributes)
        with self._lifecycle(Action.UPDATE, record):
            self._write_changes(record)
            self.snapshots.set(record)
        return record

    def destroy(self, record: Record) -> None:
        self._require_identity(record)
        with self._lifecycle(Action.DESTROY, record):
            statement = delete_statement(record.table_name, record.primary_key, [record.identity])
            self.connection.execute(statement, timeout=self.statement_timeout)
            record._mark_persisted(False)
        log.debug("Destroyed record", extra={"table": record.table_name})

    def destroy_by_id(self, record_type: Type[Record], identifier: Any) -> None:
        """Destroy the row with `identifier`; a None identifier is a no-op."""
        if identifier is None:
            return
        self.destroy(record_type({record_type.primary_key: identifier}))

    def destroy_many(self, records: Sequence[Record]) -> None:
        """
        Delete `records` with a single statement.

        The primary-key column is looked up through the schema adapter.
        """
        if not records:
            return
        first = records[0]
        table_name = first.table_name
        if any(record.table_name != table_name for record in records):
            raise ValueError("destroy_many expects records of a single table")

        structure = self.adapter.structure(table_name)
        pk_column = next((column for column in structure if column.is_primary_key), None)
        if pk_column is None:
            raise ParametersMissing(first, [first.primary_key])
        identities = []
        for record in records:
            identity = record.value(pk_column.name)
            if identity.is_null:
                raise ParametersMissing(record, [pk_column.name])
            identities.append(identity)

        for record in records:
            self._run_hooks(Phase.BEFORE, Action.DESTROY, record)
        statement = delete_statement(table_name, pk_column.name, identities)
        self.connection.execute(statement, timeout=self.statement_timeout)
        for record in records:
            record._mark_persisted(False)
            self._run_hooks(Phase.AFTER, Action.DESTROY, record)
        log.debug("Destroyed records", extra={"table": table_name, "count": len(records)})

    def _require_identity(self, record: Record) -> None:
        if record.identity.is_null:
            raise ParametersMissing(record, [record.primary_key])

    def _insert(self, record: Record) -> None:
        statement = insert_statement(record)
        pk = record.primary_key
        if record.identity.is_null:
            result = self.connection.execute_query(statement, timeout=self.statement_timeout)
            returned = result.hashes
            if returned and returned[0].get(pk) is not None:
                record[pk] = returned[0][pk]
        else:
            self.connection.execute(statement, timeout=self.statement_timeout)
        record._mark_persisted(True)
        log.debug("Inserted record", extra={"table": record.table_name})

    def _write_changes(self, record: Record) -> None:
        self._require_identity(record)
        current = record.attributes
        changes = {name: current.get(name, NULL) for name in self.snapshots.dirty(record)}
        statement = update_statement(record, changes)
        if statement is None:
            log.debug("Nothing to update", extra={"table": record.table_name})
            return
        self.connection.execute(statement, timeout=self.statement_timeout)
        log.debug(
            "Updated record",
            extra={"table": record.table_name, "attributes": sorted(changes)},
        )


__all__ = ["Session"]
