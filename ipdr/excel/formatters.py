"""
Cell-level helpers: value conversion, header/data cell styling, column widths, KPI cards.
"""
from __future__ import annotations

import datetime as dt
from typing import Mapping

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ipdr.excel.styles import (
    HEADER_FONT, HEADER_FILL, HEADER_BORDER,
    DATA_FONT, CELL_BORDER, ZEBRA_FILL, HIGHLIGHT_FILLS,
    KPI_VALUE_FONT, KPI_LABEL_FONT,
    CENTER, LEFT, RIGHT,
)

# Column kind → Excel number format
NUMBER_FORMATS = {
    "number": "#,##0",
    "bytes": "#,##0",
    "datetime": "yyyy-mm-dd hh:mm:ss",
}
RIGHT_ALIGNED = frozenset({"number", "bytes"})


def excel_value(value):
    """openpyxl rejects tz-aware datetimes and control characters."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    if isinstance(value, dt.datetime) and value.tzinfo is not None:
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value


def display_width(value) -> int:
    if value is None:
        return 0
    if isinstance(value, dt.datetime):
        return 19
    return len(str(value))


def style_header(ws: Worksheet, row: int, labels: list[str]) -> None:
    for col, label in enumerate(labels, 1):
        cell = ws.cell(row=row, column=col, value=label)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = CENTER
        cell.border = HEADER_BORDER


def write_cell(
    ws: Worksheet,
    row: int,
    col: int,
    value,
    kind: str = "text",
    highlight: str | None = None,
) -> None:
    """Write one data cell with the styling of its column kind."""
    cell = ws.cell(row=row, column=col, value=excel_value(value))
    cell.font = DATA_FONT
    cell.border = CELL_BORDER
    cell.alignment = RIGHT if kind in RIGHT_ALIGNED else LEFT
    # Unparsed raw text in a typed column keeps the General format
    if kind in NUMBER_FORMATS and not isinstance(value, str):
        cell.number_format = NUMBER_FORMATS[kind]

    fill = HIGHLIGHT_FILLS.get(highlight) if highlight else None
    if fill is not None:
        cell.fill = fill
    elif row % 2 == 0:
        cell.fill = ZEBRA_FILL


def set_widths(ws: Worksheet, widths: Mapping[int, int], min_width: int = 10, max_width: int = 55) -> None:
    """Apply tracked character widths (column index → longest value)."""
    for col, width in widths.items():
        ws.column_dimensions[get_column_letter(col)].width = min(max(width + 2, min_width), max_width)


def add_kpi_card(ws: Worksheet, row: int, col: int, value, label: str, kind: str = "number") -> None:
    """Large value with a small caption underneath."""
    value_cell = ws.cell(row=row, column=col, value=excel_value(value))
    value_cell.font = KPI_VALUE_FONT
    value_cell.alignment = CENTER
    if kind == "datetime":
        value_cell.number_format = "yyyy-mm-dd hh:mm"
    elif kind in NUMBER_FORMATS:
        value_cell.number_format = NUMBER_FORMATS[kind]

    label_cell = ws.cell(row=row + 1, column=col, value=label)
    label_cell.font = KPI_LABEL_FONT
    label_cell.alignment = CENTER
