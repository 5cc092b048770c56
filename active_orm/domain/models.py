"""
Record model for active-orm.

A record type declares its table and an explicit, ordered schema of fields:

    class Ticket(Record):
        table_name = "tickets"

        id = Field(IntValue)
        status = Field(StringValue)
        created_at = Field(DateValue)

The schema is collected once, when the class is created, so reading and
writing attributes never inspects instances at runtime.
"""
from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Mapping, Optional, Tuple, Type

from active_orm.domain.values import NULL, AttributeValue, wrap
from active_orm.errors import AttributeMissing, InvalidAttributeType


class Action(str, Enum):
    """Lifecycle actions callbacks can be attached to."""

    INITIALIZE = "initialize"
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"
    SAVE = "save"


class Phase(str, Enum):
    BEFORE = "before"
    AFTER = "after"


class Field:
    """
    Declared record field.

    Acts as a descriptor: reading returns the plain Python value, writing
    wraps and type-checks the value before storing it on the record.
    """

    def __init__(self, kind: Optional[Type[AttributeValue]] = None) -> None:
        self.kind = kind
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, record: Optional["Record"], owner: type) -> Any:
        if record is None:
            return self
        return record.value(self.name).native()

    def __set__(self, record: "Record", raw: Any) -> None:
        record[self.name] = raw

    def coerce(self, record: "Record", raw: Any) -> AttributeValue:
        try:
            value = wrap(raw)
        except TypeError:
            raise InvalidAttributeType(record, self.name, self.type_name) from None
        if self.kind is not None and not value.is_null and not isinstance(value, self.kind):
            raise InvalidAttributeType(record, self.name, self.type_name)
        return value

    @property
    def type_name(self) -> str:
        return self.kind.tag if self.kind is not None else "any"

    def __repr__(self) -> str:
        return f"Field({self.name!r}, {self.type_name})"


class RecordSchema:
    """Ordered field name -> Field mapping for one record type."""

    def __init__(self, fields: Optional[List[Field]] = None) -> None:
        self._fields: Dict[str, Field] = {}
        for field in fields or []:
            self._fields[field.name] = field

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def get(self, name: str) -> Optional[Field]:
        return self._fields.get(name)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._fields)


class Record:
    """
    Base class for mapped entities.

    Attributes are held as AttributeValues. Declared fields are always present
    (null until assigned); undeclared keys given to the constructor, such as
    extra result columns or eager-loaded row groups, are kept as well.
    """

    table_name: ClassVar[str] = "active_records"
    model_name: ClassVar[str] = "record"
    primary_key: ClassVar[str] = "id"
    schema: ClassVar[RecordSchema] = RecordSchema()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        inherited = list(cls.schema)
        own = [value for value in vars(cls).values() if isinstance(value, Field)]
        names = {field.name for field in own}
        cls.schema = RecordSchema([f for f in inherited if f.name not in names] + own)
        if "model_name" not in vars(cls):
            cls.model_name = cls.__name__.lower()

    def __init__(self, attributes: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        self._attributes: Dict[str, AttributeValue] = {f.name: NULL for f in self.schema}
        self._persisted = False
        self._ephemeral_key = uuid.uuid4().hex
        merged = dict(attributes or {})
        merged.update(kwargs)
        for name, raw in merged.items():
            field = self.schema.get(name)
            if field is not None:
                self._attributes[name] = field.coerce(self, raw)
            else:
                try:
                    self._attributes[name] = wrap(raw)
                except TypeError:
                    raise InvalidAttributeType(self, name, "any") from None
        self.after(Action.INITIALIZE)

    # Attribute access

    def value(self, name: str) -> AttributeValue:
        """Return the AttributeValue stored under `name`."""
        try:
            return self._attributes[name]
        except KeyError:
            raise AttributeMissing(self, name) from None

    def __getitem__(self, name: str) -> Any:
        return self.value(name).native()

    def __setitem__(self, name: str, raw: Any) -> None:
        field = self.schema.get(name)
        if field is not None:
            self._attributes[name] = field.coerce(self, raw)
        elif name in self._attributes or not len(self.schema):
            self._attributes[name] = wrap(raw)
        else:
            raise AttributeMissing(self, name)

    def __contains__(self, name: object) -> bool:
        return name in self._attributes

    def get(self, name: str, default: Any = None) -> Any:
        if name not in self._attributes:
            return default
        return self._attributes[name].native()

    def assign(self, attributes: Mapping[str, Any]) -> "Record":
        for name, raw in attributes.items():
            self[name] = raw
        return self

    @property
    def attributes(self) -> Dict[str, AttributeValue]:
        """Copy of the current attribute mapping."""
        return dict(self._attributes)

    def to_dict(self) -> Dict[str, Any]:
        return {name: value.native() for name, value in self._attributes.items()}

    # Identity

    @property
    def identity(self) -> AttributeValue:
        return self._attributes.get(self.primary_key, NULL)

    @property
    def identity_key(self) -> Tuple[str, Any]:
        """Snapshot key: table and primary key, or an ephemeral key while unsaved."""
        identity = self.identity
        if identity.is_null:
            return ("~" + self.table_name, self._ephemeral_key)
        return (self.table_name, identity.native())

    @property
    def persisted(self) -> bool:
        return self._persisted

    @property
    def is_new_record(self) -> bool:
        return not self._persisted

    def _mark_persisted(self, persisted: bool = True) -> None:
        self._persisted = persisted

    # Hooks overridable by subclasses

    def before(self, action: Action) -> None:
        """Instance hook run after registered BEFORE callbacks."""

    def after(self, action: Action) -> None:
        """Instance hook run after registered AFTER callbacks."""

    def validate(self, action: Action) -> List[str]:
        """Return validation messages for `action`; empty means valid."""
        return []

    def __repr__(self) -> str:
        shown = ", ".join(
            f"{name}={value.native()!r}"
            for name, value in self._attributes.items()
            if name in self.schema
        )
        return f"<{type(self).__name__} {shown}>"


__all__ = ["Action", "Phase", "Field", "RecordSchema", "Record"]
