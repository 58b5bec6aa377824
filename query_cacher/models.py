"""
Domain model types shared by the caching core and the data-access binding.

`Nameable` is the explicit capability that marks a value as a model: the
normalizer replaces any Nameable with its name instead of descending into it.
Collections are Nameable (they appear inside criteria as `include` targets and
reference each other through associations), and so are the rows a data source
returns.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class Op(Enum):
    """Criteria operators, used as non-string keys inside `where` mappings."""
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NOT_IN = "not_in"
    LIKE = "like"
    IS = "is"
    AND = "and"
    OR = "or"

    def __str__(self) -> str:
        return f"Op.{self.value}"


class Nameable(ABC):
    """Capability for values the cache treats as live model objects."""

    @property
    @abstractmethod
    def model_name(self) -> Optional[str]:
        """Declared model name, or None when the model is anonymous."""


@dataclass(eq=False)
class Association:
    """Link from one collection to another."""
    target: "Collection"
    kind: str  # "has_many" or "belongs_to"
    foreign_key: str
    alias: str


@dataclass(eq=False)
class Collection(Nameable):
    """A named table definition, the unit a QueryCacher is bound to."""
    name: str
    table: Optional[str] = None
    primary_key: str = "id"
    associations: Dict[str, Association] = field(default_factory=dict)

    @property
    def model_name(self) -> Optional[str]:
        return self.name

    @property
    def table_name(self) -> str:
        return self.table or self.name

    def has_many(self, target: "Collection", foreign_key: str, alias: Optional[str] = None) -> Association:
        """Declare a one-to-many association; rows gain a list under `alias`."""
        association = Association(target, "has_many", foreign_key, alias or f"{target.name}s")
        self.associations[target.name] = association
        return association

    def belongs_to(self, target: "Collection", foreign_key: str, alias: Optional[str] = None) -> Association:
        """Declare a many-to-one association; rows gain a single row under `alias`."""
        association = Association(target, "belongs_to", foreign_key, alias or target.name)
        self.associations[target.name] = association
        return association

    def association_for(self, target: "Collection") -> Optional[Association]:
        return self.associations.get(target.name)


@dataclass(eq=False)
class Row(Nameable):
    """A record loaded by a data source, with any included associations."""
    collection: Collection
    values: Dict[str, Any]
    related: Dict[str, Union["Row", List["Row"], None]] = field(default_factory=dict)

    @property
    def model_name(self) -> Optional[str]:
        return self.collection.name

    def __getitem__(self, key: str) -> Any:
        if key in self.related:
            return self.related[key]
        return self.values[key]

    def as_plain(self) -> Dict[str, Any]:
        """Attribute mapping with nested associations as mappings and lists."""
        plain = dict(self.values)
        for alias, value in self.related.items():
            if isinstance(value, list):
                plain[alias] = [row.as_plain() for row in value]
            elif value is None:
                plain[alias] = None
            else:
                plain[alias] = value.as_plain()
        return plain
