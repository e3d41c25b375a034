"""
Pydantic request/response schemas for the API.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from ipdr.config import DEFAULT_TOP_N
from ipdr.data.schemas import Constraint, ConstraintOp, FilterPredicate


class HealthResponse(BaseModel):
    status: str
    loaded: bool
    records: int
    source: Optional[str] = None
    loaded_at: Optional[str] = None


class FieldsResponse(BaseModel):
    canonical: list[str]
    present: list[str]
    header_map: dict[str, str]


class ConstraintModel(BaseModel):
    field: str
    op: ConstraintOp = ConstraintOp.EQ
    value: Any = None
    low: Any = None
    high: Any = None

    def to_constraint(self) -> Constraint:
        return Constraint(self.field, self.op, value=self.value, low=self.low, high=self.high)


class FilterRequest(BaseModel):
    """Conjunction of constraints; an empty list matches every record."""
    constraints: list[ConstraintModel] = Field(default_factory=list)

    def to_predicate(self) -> FilterPredicate:
        return FilterPredicate(tuple(c.to_constraint() for c in self.constraints))


class TimelineRequest(FilterRequest):
    bucket: Optional[str | float] = None


class TopRequest(FilterRequest):
    field: str
    limit: int = Field(DEFAULT_TOP_N, ge=1, le=1000)


class FilterResponse(BaseModel):
    count: int
    ids: list[int]
    filter: str


class RecordPage(BaseModel):
    total: int
    offset: int
    limit: int
    records: list[dict[str, Any]]


class UploadResponse(BaseModel):
    message: str
    filename: str
    records: int
    report: dict[str, Any]
    analysis: dict[str, Any]
