"""
Query clauses accumulated by the relation builder.

Each clause carries a fixed compile priority. A chain is always rendered in
ascending priority order, whatever order the clauses were added in:

    Pluck (0) < Where (1) < Order (2) < Limit (3) < Offset (4)

Pluck never renders into the trailing section: it is extracted and becomes
the SELECT column list.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from enum import Enum
from itertools import groupby
from typing import Any, ClassVar, Iterable, List, Optional, Tuple

from active_orm.domain.values import AttributeValue


class Direction(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, raw: Any) -> Optional["Direction"]:
        """Parse `asc`/`ascending`/`desc`/`descending` (any case); None otherwise."""
        if isinstance(raw, Direction):
            return raw
        if not isinstance(raw, str):
            return None
        return _DIRECTION_ALIASES.get(raw.strip().lower())


_DIRECTION_ALIASES = {
    "asc": Direction.ASC,
    "ascending": Direction.ASC,
    "desc": Direction.DESC,
    "descending": Direction.DESC,
}


class Clause(abc.ABC):
    """
    One fragment of a statement.

    Consecutive clauses of the same kind share one keyword, their bodies joined
    by `joiner` (e.g. `WHERE a = 1 AND b = 2`).
    """

    priority: ClassVar[int]
    keyword: ClassVar[str]
    joiner: ClassVar[str] = " "

    @abc.abstractmethod
    def render(self) -> str:  # pragma: no cover - interface only
        """Render the clause body without its keyword."""
        raise NotImplementedError


@dataclass(frozen=True)
class Pluck(Clause):
    fields: Tuple[str, ...] = ()

    priority: ClassVar[int] = 0
    keyword: ClassVar[str] = ""

    def render(self) -> str:
        return ", ".join(self.fields) if self.fields else "*"


@dataclass(frozen=True)
class Where(Clause):
    field: str
    values: Tuple[AttributeValue, ...]

    priority: ClassVar[int] = 1
    keyword: ClassVar[str] = "WHERE"
    joiner: ClassVar[str] = " AND "

    def render(self) -> str:
        if not self.values:
            # no alternatives can match
            return "1 = 0"
        if len(self.values) == 1:
            value = self.values[0]
            if value.is_null:
                return f"{self.field} IS NULL"
            return f"{self.field} = {value.persisted()}"
        return f"{self.field} IN ({', '.join(v.persisted() for v in self.values)})"


@dataclass(frozen=True)
class Order(Clause):
    field: str
    direction: Direction = Direction.ASC

    priority: ClassVar[int] = 2
    keyword: ClassVar[str] = "ORDER BY"
    joiner: ClassVar[str] = ", "

    def render(self) -> str:
        return f"{self.field} {self.direction.value}"


@dataclass(frozen=True)
class Limit(Clause):
    count: int

    priority: ClassVar[int] = 3
    keyword: ClassVar[str] = "LIMIT"

    def render(self) -> str:
        return str(int(self.count))


@dataclass(frozen=True)
class Offset(Clause):
    count: int

    priority: ClassVar[int] = 4
    keyword: ClassVar[str] = "OFFSET"

    def render(self) -> str:
        return str(int(self.count))


def sort_chain(chain: Iterable[Clause]) -> List[Clause]:
    """Stable sort by priority; ties keep insertion order."""
    return sorted(chain, key=lambda clause: clause.priority)


def render_chain(chain: Iterable[Clause]) -> str:
    """
    Render already-sorted, Pluck-free clauses into one space-joined section.
    """
    sections = []
    for kind, group in groupby(chain, key=type):
        bodies = [clause.render() for clause in group]
        sections.append(f"{kind.keyword} {kind.joiner.join(bodies)}")
    return " ".join(sections)


__all__ = [
    "Clause",
    "Direction",
    "Limit",
    "Offset",
    "Order",
    "Pluck",
    "Where",
    "render_chain",
    "sort_chain",
]
