"""
Header normalization, value coercion, and record canonicalization.
"""
from __future__ import annotations

import datetime as dt
import re
from typing import Any, Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from ipdr.config import HEADER_ALIASES, NUMERIC_FIELDS, TIMESTAMP_FIELDS
from ipdr.data.errors import AliasCollision, EmptyInput, UnparseableValue
from ipdr.data.schemas import CanonicalField, LoadReport, Record


# ---------------------------------------------------------------------------
# Header normalisation
# ---------------------------------------------------------------------------

_STRIP_RE = re.compile(r"[\s_\-]+")


def alias_key(header: str) -> str:
    """Lowercase and drop whitespace, underscores and hyphens."""
    return _STRIP_RE.sub("", str(header).lower())


def build_alias_table(aliases: Mapping[str, Iterable[str]]) -> dict[str, CanonicalField]:
    """Flatten {canonical: [aliases]} into {normalized alias: field}.

    Raises AliasCollision when one alias is claimed by two fields.
    """
    table: dict[str, CanonicalField] = {}
    for name, names in aliases.items():
        target = CanonicalField(name)
        for alias in [name, *names]:
            key = alias_key(alias)
            owner = table.get(key)
            if owner is not None and owner != target:
                raise AliasCollision(
                    f"Alias '{alias}' maps to both {owner.value} and {target.value}"
                )
            table[key] = target
    return table


ALIAS_TABLE = build_alias_table(HEADER_ALIASES)

TIMESTAMP_SET = frozenset(CanonicalField(f) for f in TIMESTAMP_FIELDS)
NUMERIC_SET = frozenset(CanonicalField(f) for f in NUMERIC_FIELDS)


def normalize_header(header: str) -> CanonicalField | str:
    """Canonical field for a raw header, or the header unchanged when unknown."""
    return ALIAS_TABLE.get(alias_key(header), header)


def map_headers(headers: Iterable[str]) -> dict[str, CanonicalField | str]:
    """Normalize each distinct header once."""
    mapping: dict[str, CanonicalField | str] = {}
    for h in headers:
        if h not in mapping:
            mapping[h] = normalize_header(h)
    return mapping


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and np.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def clean_text(value: Any) -> str:
    """Identifier text: stripped, integral numbers without a trailing '.0'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


# Three digit groups (2024-01-05, 05/01/2024), compact YYYYMMDD, or a month name
_FULL_DATE_RE = re.compile(r"\d+[^\d\s]\d+[^\d\s]\d+|\d+\s+\d+\s+\d+|^\d{8}(?!\d)|[A-Za-z]{3,}")


def _as_text_series(values: Sequence[Any]) -> pd.Series:
    return pd.Series(
        [None if is_blank(v) else str(v).strip() for v in values],
        dtype=object,
    )


def _has_full_date(text: str | None) -> bool:
    return text is not None and _FULL_DATE_RE.search(text) is not None


def parse_timestamps(values: Sequence[Any]) -> list[dt.datetime | None]:
    """Column-wise timestamp parse. Naive values are taken as UTC.

    Text without a day-level date (a bare year, year-month, or a plain
    number) is not a timestamp.
    """
    text = _as_text_series(values)
    text = text.where(text.map(_has_full_date), None)
    # ISO 8601 covers most operator exports and is vectorized
    parsed = pd.to_datetime(text, errors="coerce", utc=True, format="ISO8601")
    retry = parsed.isna() & text.notna()
    if retry.any():
        parsed.loc[retry] = pd.to_datetime(
            text[retry], errors="coerce", utc=True, format="mixed"
        )
    return [None if pd.isna(ts) else ts.to_pydatetime() for ts in parsed]


def _numeric(value: float) -> int | float:
    return int(value) if float(value).is_integer() else float(value)


def parse_numbers(values: Sequence[Any]) -> list[int | float | None]:
    """Column-wise numeric parse; thousands separators are tolerated."""
    text = pd.Series(
        [None if is_blank(v) else str(v).strip().replace(",", "") for v in values],
        dtype=object,
    )
    parsed = pd.to_numeric(text, errors="coerce")
    return [None if pd.isna(v) or np.isinf(v) else _numeric(v) for v in parsed]


def parse_timestamp(value: Any) -> dt.datetime:
    """Single-value timestamp parse. Raises UnparseableValue."""
    if isinstance(value, dt.datetime):
        return value if value.tzinfo else value.replace(tzinfo=dt.timezone.utc)
    result = parse_timestamps([value])[0]
    if result is None:
        raise UnparseableValue("timestamp", value)
    return result


def parse_number(value: Any) -> int | float:
    """Single-value numeric parse. Raises UnparseableValue."""
    if isinstance(value, (int, float)) and not isinstance(value, bool) and np.isfinite(value):
        return value
    result = parse_numbers([value])[0]
    if result is None:
        raise UnparseableValue("number", value)
    return result


# ---------------------------------------------------------------------------
# Canonicalization
# ---------------------------------------------------------------------------

def _collect_headers(rows: Sequence[Mapping[str, Any]], headers: Sequence[str] | None) -> list[str]:
    if headers is not None:
        return list(dict.fromkeys(headers))
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def canonicalize(
    rows: Sequence[Mapping[str, Any]],
    headers: Sequence[str] | None = None,
) -> tuple[list[Record], LoadReport]:
    """Turn raw rows into Records with sequential ids.

    Every row yields exactly one Record. Cells that fail coercion are kept
    as raw text and flagged, never dropped.
    """
    if not rows:
        raise EmptyInput("No rows to load")

    headers = _collect_headers(rows, headers)
    mapping = map_headers(headers)
    report = LoadReport(row_count=len(rows))

    # First header mapping to a field owns it; later ones pass through
    owner: dict[CanonicalField, str] = {}
    for h in headers:
        target = mapping[h]
        if isinstance(target, CanonicalField):
            if target in owner:
                report.duplicates.append(h)
                report.header_map[h] = h
            else:
                owner[target] = h
                report.header_map[h] = target.value
        else:
            report.unmapped.append(h)
            report.header_map[h] = h
    passthrough = [h for h in headers if owner.get(mapping[h]) != h]
    header_set = set(headers)

    # Typed columns are coerced column-wise, not per cell
    typed: dict[CanonicalField, list[Any]] = {}
    for fld, h in owner.items():
        if fld in TIMESTAMP_SET:
            typed[fld] = parse_timestamps([row.get(h) for row in rows])
        elif fld in NUMERIC_SET:
            typed[fld] = parse_numbers([row.get(h) for row in rows])

    records: list[Record] = []
    for i, row in enumerate(rows):
        fields: dict[CanonicalField, Any] = {}
        unparsed: set[CanonicalField] = set()
        for fld, h in owner.items():
            raw = row.get(h)
            if is_blank(raw):
                continue
            if fld in typed:
                value = typed[fld][i]
                if value is None:
                    fields[fld] = clean_text(raw)
                    unparsed.add(fld)
                    report.unparseable[fld.value] = report.unparseable.get(fld.value, 0) + 1
                else:
                    fields[fld] = value
            else:
                fields[fld] = clean_text(raw)

        extra = {h: row.get(h) for h in passthrough}
        if len(row) > len(header_set):
            for key, value in row.items():
                if key not in header_set:
                    extra[key] = value

        records.append(Record(id=i, fields=fields, extra=extra, unparsed=frozenset(unparsed)))

    return records, report
