"""
Filter/query engine — evaluates a FilterPredicate against a Dataset.

Indexed constraints (exact match on a value-indexed field, range on a time
field) produce candidate id sets; the smallest one seeds the scan and every
other constraint is checked per candidate. Without any indexed constraint the
scan runs over all ids. Results are ascending ids.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from ipdr.data.errors import InvalidPredicate, UnparseableValue
from ipdr.data.normalize import TIMESTAMP_SET, is_blank, normalize_header, parse_number, parse_timestamp
from ipdr.data.schemas import CanonicalField, Constraint, ConstraintOp, FilterPredicate, LoadReport, Record
from ipdr.data.store import NO_TIME, Dataset, index_key, to_ns


@dataclass(frozen=True)
class CompiledConstraint:
    """A validated constraint with its operands coerced for comparison."""
    field: Any                      # CanonicalField or pass-through header
    op: ConstraintOp
    key: Optional[str] = None       # eq: index key; contains: case-folded needle
    low: Optional[float] = None     # range bounds; epoch ns for time fields
    high: Optional[float] = None
    is_time: bool = False


def resolve_field(name: Any, report: LoadReport | None = None) -> CanonicalField | str:
    """Canonical field for a filter name.

    A raw header the load kept as a pass-through column (unmapped, or a
    second header for an already-owned field) resolves to itself.
    """
    if isinstance(name, CanonicalField):
        return name
    if not isinstance(name, str) or not name.strip():
        raise InvalidPredicate(f"Invalid field name: {name!r}")
    if report is not None and (name in report.duplicates or name in report.unmapped):
        return name
    return normalize_header(name)


def _bound(value: Any, is_time: bool, label: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        if is_time:
            return to_ns(parse_timestamp(value))
        return parse_number(value)
    except UnparseableValue as e:
        raise InvalidPredicate(f"Invalid {label} bound {value!r}: {e}") from e


def compile_constraint(constraint: Constraint, report: LoadReport | None = None) -> CompiledConstraint:
    """Validate one constraint. Raises InvalidPredicate."""
    fld = resolve_field(constraint.field, report)
    try:
        op = ConstraintOp(constraint.op)
    except ValueError:
        raise InvalidPredicate(f"Unknown operator: {constraint.op!r}")
    is_time = isinstance(fld, CanonicalField) and fld in TIMESTAMP_SET

    if op == ConstraintOp.RANGE:
        low = _bound(constraint.low, is_time, "lower")
        high = _bound(constraint.high, is_time, "upper")
        if low is None and high is None:
            raise InvalidPredicate(f"Range on {fld} needs at least one bound")
        if low is not None and high is not None and low > high:
            raise InvalidPredicate(
                f"Inverted range on {fld}: {constraint.low!r} > {constraint.high!r}"
            )
        return CompiledConstraint(fld, op, low=low, high=high, is_time=is_time)

    if is_blank(constraint.value):
        raise InvalidPredicate(f"'{op.value}' on {fld} needs a value")

    if op == ConstraintOp.EQ and is_time:
        # Exact time match is a degenerate range
        point = _bound(constraint.value, True, "time")
        return CompiledConstraint(fld, ConstraintOp.RANGE, low=point, high=point, is_time=True)
    return CompiledConstraint(fld, op, key=index_key(constraint.value))


def compile_predicate(predicate: FilterPredicate, report: LoadReport | None = None) -> list[CompiledConstraint]:
    return [compile_constraint(c, report) for c in predicate.constraints]


# ---------------------------------------------------------------------------
# Per-record checks
# ---------------------------------------------------------------------------

def _in_range(value: float, c: CompiledConstraint) -> bool:
    if c.low is not None and value < c.low:
        return False
    if c.high is not None and value > c.high:
        return False
    return True


def _check(dataset: Dataset, rec: Record, c: CompiledConstraint) -> bool:
    if c.is_time:
        column = dataset.time_columns.get(c.field)
        if column is None:
            return False
        stamp = column[rec.id]
        return stamp != NO_TIME and _in_range(int(stamp), c)

    if isinstance(c.field, CanonicalField):
        value = rec.fields.get(c.field)
    else:
        value = rec.extra.get(c.field)
    if is_blank(value):
        return False
    if c.op == ConstraintOp.EQ:
        return index_key(value) == c.key
    if c.op == ConstraintOp.CONTAINS:
        return c.key in index_key(value)
    try:
        number = parse_number(value)
    except UnparseableValue:
        return False
    return _in_range(number, c)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _candidates(dataset: Dataset, c: CompiledConstraint) -> Optional[Sequence[int]]:
    """Index-backed candidate ids for a constraint, None if it needs a scan."""
    if not isinstance(c.field, CanonicalField):
        return None
    if c.op == ConstraintOp.EQ and dataset.is_indexed(c.field):
        return dataset.value_index[c.field].get(c.key, [])
    if c.is_time and c.field in dataset.time_index:
        return dataset.time_index[c.field].between(
            None if c.low is None else int(c.low),
            None if c.high is None else int(c.high),
        )
    return None


def evaluate(dataset: Dataset, predicate: FilterPredicate | None = None) -> list[int]:
    """Ascending ids of the records satisfying every constraint.

    Raises InvalidPredicate for malformed constraints, even on an empty dataset.
    """
    compiled = compile_predicate(predicate or FilterPredicate(), dataset.report)
    if not len(dataset):
        return []
    if not compiled:
        return list(dataset.all_ids())

    indexed: list[tuple[CompiledConstraint, Sequence[int]]] = []
    residual: list[CompiledConstraint] = []
    for c in compiled:
        ids = _candidates(dataset, c)
        if ids is None:
            residual.append(c)
        elif len(ids) == 0:
            return []
        else:
            indexed.append((c, ids))

    if indexed:
        indexed.sort(key=lambda item: len(item[1]))
        seed = indexed[0][1]
        ordered = np.sort(seed).tolist() if isinstance(seed, np.ndarray) else list(seed)
        residual = [c for c, _ in indexed[1:]] + residual
    else:
        ordered = dataset.all_ids()

    if not residual:
        return list(ordered)
    records = dataset.records
    return [i for i in ordered if all(_check(dataset, records[i], c) for c in residual)]
