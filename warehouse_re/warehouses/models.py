"""Warehouse metadata models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Suffix the host uses to mark views in collection name lists
VIEW_SUFFIX = " (v)"


class EntityKind(str, Enum):
    """Kinds of warehouse entities."""
    TABLE = "table"
    VIEW = "view"


@dataclass
class Dataset:
    """A BigQuery dataset or Snowflake schema.

    ``id`` is what the host shows as the container name: the dataset id for
    BigQuery and ``DATABASE.SCHEMA`` for Snowflake.
    """
    id: str
    database: Optional[str] = None


@dataclass
class Entity:
    """A table or view inside a dataset/schema."""
    name: str
    schema: str
    kind: EntityKind = EntityKind.TABLE

    @property
    def display_name(self) -> str:
        """Name as listed to the host (views carry the view suffix)."""
        if self.kind == EntityKind.VIEW:
            return f"{self.name}{VIEW_SUFFIX}"
        return self.name


@dataclass
class EntityNames:
    """Entity names of one container, split by kind."""
    tables: List[str] = field(default_factory=list)
    views: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.tables and not self.views

    def to_collection_names(self) -> List[str]:
        """Tables followed by suffixed view names."""
        return list(self.tables) + [f"{view}{VIEW_SUFFIX}" for view in self.views]


def split_entity_names(names: Optional[List[str]]) -> EntityNames:
    """Split host collection names into tables and views."""
    entities = EntityNames()
    for name in names or []:
        if name.endswith(VIEW_SUFFIX):
            entities.views.append(name[:-len(VIEW_SUFFIX)])
        else:
            entities.tables.append(name)
    return entities


@dataclass
class ColumnInfo:
    """Represents a warehouse column."""
    name: str
    data_type: str
    mode: str = "NULLABLE"  # NULLABLE, REQUIRED, REPEATED
    is_nullable: bool = True
    description: Optional[str] = None
    nested_fields: List["ColumnInfo"] = field(default_factory=list)

    @property
    def is_repeated(self) -> bool:
        return self.mode.upper() == "REPEATED"

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "name": self.name,
            "type": self.data_type,
            "mode": self.mode,
            "nullable": self.is_nullable,
        }
        if self.description:
            result["description"] = self.description
        if self.nested_fields:
            result["fields"] = [f.to_dict() for f in self.nested_fields]
        return result
