"""
Metadata Records
Immutable records produced by the normalizer and written by the output layer.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional, Tuple


class _Record:
    """JSON-friendly helpers shared by every record type."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass(frozen=True)
class WarehouseRecord(_Record):
    name: str
    state: str
    type: str
    size: str
    is_default: bool
    is_current: bool
    owner: str
    comment: Optional[str] = None


@dataclass(frozen=True)
class DatabaseRecord(_Record):
    name: str
    created: Optional[str]
    origin: str
    owner: str
    comment: Optional[str] = None
    is_current: bool = False

    def summary(self) -> "DatabaseSummary":
        return DatabaseSummary(name=self.name, created=self.created, owner=self.owner, comment=self.comment)


@dataclass(frozen=True)
class DatabaseSummary(_Record):
    """Shape of ``<database>/metadata.json``."""

    name: str
    created: Optional[str]
    owner: str
    comment: Optional[str] = None


@dataclass(frozen=True)
class ColumnRecord(_Record):
    name: str
    data_type: str
    is_nullable: bool
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None


@dataclass(frozen=True)
class TableRecord(_Record):
    """One table or view, with its columns in definition order."""

    database: str
    schema: str
    name: str
    type: str
    row_count: Optional[int]
    bytes: Optional[int]
    retention_time: Optional[int]
    created: Optional[str]
    last_altered: Optional[str]
    comment: Optional[str] = None
    columns: Tuple[ColumnRecord, ...] = field(default_factory=tuple)

    @property
    def full_name(self) -> str:
        return f"{self.database}.{self.schema}.{self.name}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableRecord":
        data = dict(data)
        data['columns'] = tuple(ColumnRecord.from_dict(c) for c in data.get('columns') or ())
        return super().from_dict(data)
