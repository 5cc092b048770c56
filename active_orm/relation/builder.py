"""
Relation builder: a chainable query for one record type.

Usage:
    tickets = (
        session.query(Ticket)
        .where({"status": "open"})
        .order({"created_at": "desc"})
        .limit(2)
        .execute()
    )

Clauses accumulate in insertion order and are sorted by priority only when
the statement is compiled, so the chain order never affects the SQL.
"""

from __future__ import annotations

from collections import defaultdict
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Generic,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    TypeVar,
    Union,
)

from active_orm.domain.models import Record
from active_orm.domain.values import AttributeValue, wrap
from active_orm.errors import RecordNotFound
from active_orm.relation.clauses import (
    Clause,
    Direction,
    Limit,
    Offset,
    Order,
    Pluck,
    Where,
    render_chain,
    sort_chain,
)
from active_orm.relation.statements import SQLAction, assignments, writable
from active_orm.utils.logging import get_logger

if TYPE_CHECKING:
    from active_orm.session import Session

log = get_logger(__name__)

R = TypeVar("R", bound=Record)

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


class RelationBuilder(Generic[R]):
    def __init__(self, session: "Session", record_type: Type[R]) -> None:
        self._session = session
        self.record_type = record_type
        self._chain: List[Clause] = []
        self._includes: List[Type[Record]] = []
        self._constraints: Dict[str, Any] = {}
        self._action = SQLAction.SELECT
        self._assignments: Dict[str, AttributeValue] = {}

    @property
    def table_name(self) -> str:
        return self.record_type.table_name

    @property
    def action(self) -> SQLAction:
        return self._action

    @property
    def chain(self) -> List[Clause]:
        return list(self._chain)

    @property
    def constraints(self) -> Dict[str, Any]:
        return dict(self._constraints)

    # Chaining

    def where(self, attributes: Mapping[str, Any]) -> "RelationBuilder[R]":
        """
        Add one Where clause per field. A list, tuple or set value is a set of
        alternatives (`field IN (...)`); anything else a single value.
        """
        self._constraints.update(attributes)
        for field, raw in attributes.items():
            if isinstance(raw, _SEQUENCE_TYPES):
                values = tuple(wrap(item) for item in raw)
            else:
                values = (wrap(raw),)
            self._chain.append(Where(field=field, values=values))
        return self

    def order(
        self, field: Union[str, Mapping[str, Any]], direction: Any = Direction.ASC
    ) -> "RelationBuilder[R]":
        """
        Order by `field`. Accepts `order("name", "desc")` or `order({"name": "desc"})`;
        a direction that does not parse leaves the chain unchanged.
        """
        if isinstance(field, Mapping):
            if not field:
                return self
            field, direction = next(iter(field.items()))
        parsed = Direction.parse(direction)
        if parsed is not None:
            self._chain.append(Order(field=field, direction=parsed))
        return self

    def limit(self, count: int) -> "RelationBuilder[R]":
        return self._replace(Limit(count=count))

    def offset(self, count: int) -> "RelationBuilder[R]":
        return self._replace(Offset(count=count))

    def pluck(self, fields: Union[str, Sequence[str]]) -> "RelationBuilder[R]":
        if isinstance(fields, str):
            fields = [fields]
        return self._replace(Pluck(fields=tuple(fields)))

    def includes(self, *record_types: Union[Type[Record], Sequence[Type[Record]]]) -> "RelationBuilder[R]":
        for item in record_types:
            if isinstance(item, (list, tuple)):
                self._includes.extend(item)
            else:
                self._includes.append(item)
        return self

    def _replace(self, clause: Clause) -> "RelationBuilder[R]":
        self._chain = [c for c in self._chain if type(c) is not type(clause)]
        self._chain.append(clause)
        return self

    # Compilation

    def compile(self) -> str:
        """Render the statement for the current chain without executing it."""
        chain = sort_chain(self._chain)
        pluck = next((c for c in chain if isinstance(c, Pluck)), Pluck())
        rest = [c for c in chain if not isinstance(c, Pluck)]

        if self._action is SQLAction.SELECT:
            head = self._action.clause(self.table_name, projection=pluck.render())
        else:
            head = self._action.clause(
                self.table_name, assignments=assignments(self._assignments)
            )
            rest = [c for c in rest if isinstance(c, Where)]

        tail = render_chain(rest)
        return f"{head} {tail};" if tail else f"{head};"

    # Execution

    def execute(self, strict: bool = False) -> List[R]:
        """
        Execute the chain and map rows to records.

        Raises
        ------
        RecordNotFound
            If `strict` is true and no rows matched.
        StatementError
            If the backend rejects the statement.
        """
        statement = self.compile()
        connection = self._session.connection
        timeout = self._session.statement_timeout
        log.debug("Executing relation", extra={"table": self.table_name, "statement": statement})

        if self._action is not SQLAction.SELECT:
            connection.execute(statement, timeout=timeout)
            return []

        result = connection.execute_query(statement, timeout=timeout)
        rows = result.hashes
        relations = self._load_includes(rows)

        records: List[R] = []
        pk = self.record_type.primary_key
        for row in rows:
            attributes: Dict[str, Any] = dict(row)
            owner = row.get(pk)
            if owner is not None and owner in relations:
                attributes.update(relations[owner])
            record = self.record_type(attributes)
            record._mark_persisted(True)
            self._session.snapshots.set(record)
            records.append(record)

        log.debug(
            "Relation loaded",
            extra={"table": self.table_name, "rows": len(records), "includes": len(self._includes)},
        )
        if strict and not records:
            raise RecordNotFound(self._constraints)
        return records

    def _load_includes(self, rows: List[Dict[str, Any]]) -> Dict[Any, Dict[str, List[Dict[str, Any]]]]:
        """
        Fetch every included table in one query each, grouped by owner identity.

        Related rows are matched through the `<model_name>_id` column.
        """
        if not self._includes:
            return {}
        pk = self.record_type.primary_key
        ids = list(dict.fromkeys(row[pk] for row in rows if row.get(pk) is not None))
        if not ids:
            return {}

        foreign_key = f"{self.record_type.model_name}_id"
        relations: Dict[Any, Dict[str, List[Dict[str, Any]]]] = defaultdict(dict)
        for include in self._includes:
            statement = RelationBuilder(self._session, include).where({foreign_key: ids}).compile()
            result = self._session.connection.execute_query(
                statement, timeout=self._session.statement_timeout
            )
            grouped: Dict[Any, List[Dict[str, Any]]] = defaultdict(list)
            for related in result.hashes:
                owner = related.get(foreign_key)
                if owner is not None:
                    grouped[owner].append(related)
            for owner, related_rows in grouped.items():
                relations[owner][include.table_name] = related_rows
        return relations

    # Bulk operations

    def update_all(self, attributes: Mapping[str, Any]) -> None:
        """Write `attributes` to every row matched by the Where clauses."""
        assigned = writable({name: wrap(raw) for name, raw in attributes.items()})
        if not assigned:
            raise ValueError("update_all requires at least one writable attribute")
        self._run_bulk(SQLAction.UPDATE, assigned)

    def destroy_all(self) -> None:
        """Delete every row matched by the Where clauses."""
        self._run_bulk(SQLAction.DELETE)

    def _run_bulk(
        self, action: SQLAction, assigned: Optional[Dict[str, AttributeValue]] = None
    ) -> None:
        """Execute the chain once as `action`; the builder stays a SELECT afterwards."""
        self._action = action
        self._assignments = assigned or {}
        try:
            self.execute()
        finally:
            self._action = SQLAction.SELECT
            self._assignments = {}

    # Terminals

    def all(self) -> List[R]:
        return self.execute()

    def first(self) -> Optional[R]:
        records = self.limit(1).execute()
        return records[0] if records else None

    def take(self, count: int = 1) -> List[R]:
        return self.limit(count).execute()

    def __iter__(self) -> Iterator[R]:
        return iter(self.execute())

    def __repr__(self) -> str:
        return f"<RelationBuilder {self.compile()}>"


__all__ = ["RelationBuilder"]
