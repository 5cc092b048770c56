"""
Relation package for active-orm.

Re-exports the query clauses, statement rendering helpers and the relation
builder so downstream code can import from `active_orm.relation` directly.
"""

from active_orm.relation.builder import RelationBuilder
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
from active_orm.relation.statements import (
    SQLAction,
    delete_statement,
    insert_statement,
    update_statement,
)

__all__ = [
    # Builder
    "RelationBuilder",
    # Clauses
    "Clause",
    "Direction",
    "Limit",
    "Offset",
    "Order",
    "Pluck",
    "Where",
    "render_chain",
    "sort_chain",
    # Statements
    "SQLAction",
    "delete_statement",
    "insert_statement",
    "update_statement",
]
