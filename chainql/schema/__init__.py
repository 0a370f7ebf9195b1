"""chainQL schema layer: entity markers, resolved metadata and configuration."""
from chainql.schema.config import SqlConfig, SqlConfigBuilder, english_plural
from chainql.schema.dialect import Dialect
from chainql.schema.entity import (
    Column,
    ColumnMetadata,
    EntityMetadata,
    Ignore,
    Key,
    TableMarker,
    table,
)

__all__ = [
    "SqlConfig",
    "SqlConfigBuilder",
    "english_plural",
    "Dialect",
    "Column",
    "ColumnMetadata",
    "EntityMetadata",
    "Ignore",
    "Key",
    "TableMarker",
    "table",
]
