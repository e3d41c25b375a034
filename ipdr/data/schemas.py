"""
Canonical schema, record shape, and filter constraint schemas.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ipdr.config import DISPLAY_ORDER


class CanonicalField(str, Enum):
    MSISDN = "msisdn"
    CALLED_MSISDN = "called_msisdn"
    IMEI = "imei"
    IMSI = "imsi"
    SOURCE_IP = "source_ip"
    DESTINATION_IP = "destination_ip"
    START_TIME = "start_time"
    END_TIME = "end_time"
    DATA_UP = "data_up"
    DATA_DOWN = "data_down"
    CELL_ID = "cell_id"
    SOURCE_PORT = "source_port"
    DESTINATION_PORT = "destination_port"
    PROTOCOL = "protocol"


class EntityKind(str, Enum):
    MSISDN = "msisdn"
    IMEI = "imei"
    IP = "ip"
    CELL = "cell"


def _display_value(value: Any) -> Any:
    if isinstance(value, dt.datetime):
        return value.isoformat().replace("+00:00", "Z")
    return value


@dataclass(frozen=True)
class Record:
    """One call/session event.

    `fields` holds the canonical columns, `extra` the pass-through columns
    whose header matched no alias. Canonical values that failed coercion
    stay as raw text and are listed in `unparsed`.
    """
    id: int
    fields: dict = field(default_factory=dict)       # CanonicalField → value
    extra: dict = field(default_factory=dict)        # raw header → raw value
    unparsed: frozenset = frozenset()

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.fields:
            return self.fields[key]
        return self.extra.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self.fields or key in self.extra

    def timestamp(self, key: CanonicalField) -> Optional[dt.datetime]:
        """Parsed timestamp for a time field, None when absent or unparsable."""
        value = self.fields.get(key)
        return value if isinstance(value, dt.datetime) else None

    def to_dict(self) -> dict:
        """Flat row for tables and JSON: id, canonical columns, pass-through columns."""
        row: dict[str, Any] = {"id": self.id}
        for name in DISPLAY_ORDER:
            if name in self.fields:
                row[name] = _display_value(self.fields[name])
        row.update(self.extra)
        return row


@dataclass
class LoadReport:
    """What the canonicalizer did with one upload's headers and cells."""
    row_count: int = 0
    header_map: dict[str, str] = field(default_factory=dict)
    unmapped: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    unparseable: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "row_count": self.row_count,
            "header_map": dict(self.header_map),
            "unmapped": list(self.unmapped),
            "duplicates": list(self.duplicates),
            "unparseable": dict(self.unparseable),
        }


# ---------------------------------------------------------------------------
# Filter constraints
# ---------------------------------------------------------------------------

class ConstraintOp(str, Enum):
    EQ = "eq"
    CONTAINS = "contains"
    RANGE = "range"


@dataclass(frozen=True)
class Constraint:
    """One atomic filter condition on a canonical or pass-through field."""
    field: str
    op: ConstraintOp = ConstraintOp.EQ
    value: Any = None
    low: Any = None
    high: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> "Constraint":
        return cls(field, ConstraintOp.EQ, value=value)

    @classmethod
    def contains(cls, field: str, text: str) -> "Constraint":
        return cls(field, ConstraintOp.CONTAINS, value=text)

    @classmethod
    def between(cls, field: str, low: Any = None, high: Any = None) -> "Constraint":
        return cls(field, ConstraintOp.RANGE, low=low, high=high)

    @property
    def label(self) -> str:
        if self.op == ConstraintOp.RANGE:
            lo = "" if self.low is None else self.low
            hi = "" if self.high is None else self.high
            return f"{self.field} in [{lo}, {hi}]"
        if self.op == ConstraintOp.CONTAINS:
            return f"{self.field} ~ {self.value}"
        return f"{self.field} = {self.value}"


@dataclass(frozen=True)
class FilterPredicate:
    """Conjunction of constraints. No constraints matches every record."""
    constraints: tuple[Constraint, ...] = ()

    @classmethod
    def where(cls, **equals: Any) -> "FilterPredicate":
        """Shorthand for exact matches: FilterPredicate.where(source_ip="10.0.0.5")."""
        return cls(tuple(Constraint.equals(k, v) for k, v in equals.items()))

    def and_(self, *constraints: Constraint) -> "FilterPredicate":
        return FilterPredicate(self.constraints + tuple(constraints))

    @property
    def label(self) -> str:
        if not self.constraints:
            return "All records"
        return " AND ".join(c.label for c in self.constraints)
