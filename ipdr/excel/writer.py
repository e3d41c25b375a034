"""
ExcelWriter — builds the styled export workbook sheet by sheet.
"""
from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, Iterable, NamedTuple, Optional

from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from ipdr.excel.styles import TITLE_FONT, SUBTITLE_FONT, SECTION_FONT
from ipdr.excel.formatters import add_kpi_card, display_width, set_widths, style_header, write_cell


class Column(NamedTuple):
    key: str
    kind: str       # text | number | bytes | datetime
    label: str


# (position in table, row dict) -> highlight name or None
HighlightFn = Callable[[int, dict], Optional[str]]

# Widths are measured on the first rows only
WIDTH_SAMPLE_ROWS = 500
KPI_WIDTH = 16


class ExcelWriter:
    """Sheets are created in call order; the workbook's default sheet is reused for the first."""

    def __init__(self) -> None:
        self.wb = Workbook()
        self._fresh = True
        self._widths: dict[str, dict[int, int]] = {}

    def add_sheet(self, title: str) -> Worksheet:
        if self._fresh:
            self._fresh = False
            ws = self.wb.active
            ws.title = title
            return ws
        return self.wb.create_sheet(title=title)

    # ------------------------------------------------------------------
    # Headings
    # ------------------------------------------------------------------

    def write_title(self, ws: Worksheet, title: str, subtitle: str, span: int = 8) -> int:
        """Title and subtitle merged across `span` columns. Returns the first free row."""
        for row, text, font in ((1, title, TITLE_FONT), (2, subtitle, SUBTITLE_FONT)):
            ws.cell(row=row, column=1, value=text).font = font
            ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=span)
        return 4

    def write_section(self, ws: Worksheet, row: int, title: str) -> int:
        ws.cell(row=row, column=1, value=title).font = SECTION_FONT
        return row + 2

    def write_kpi_row(self, ws: Worksheet, row: int, kpis: list[tuple], spacing: int = 2) -> int:
        """kpis: [(value, label, kind), ...] laid out left to right."""
        for i, (value, label, kind) in enumerate(kpis):
            add_kpi_card(ws, row, 1 + i * spacing, value, label, kind)
            self._widen(ws, 1 + i * spacing, KPI_WIDTH)
        return row + 3

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def write_table(
        self,
        ws: Worksheet,
        start_row: int,
        columns: list[Column],
        rows: Iterable[dict],
        highlight_fn: HighlightFn | None = None,
        freeze: bool = True,
    ) -> int:
        """Header row plus one row per dict; `rows` may be a generator.

        Returns the row after the last data row.
        """
        columns = [Column(*c) for c in columns]
        style_header(ws, start_row, [c.label for c in columns])
        widths = {i: len(c.label) for i, c in enumerate(columns, 1)}

        row = start_row + 1
        for idx, data in enumerate(rows):
            hl = highlight_fn(idx, data) if highlight_fn else None
            sample = idx < WIDTH_SAMPLE_ROWS
            for col, c in enumerate(columns, 1):
                value = data.get(c.key)
                write_cell(ws, row, col, value, c.kind, hl)
                if sample:
                    widths[col] = max(widths[col], display_width(value))
            row += 1

        for col, width in widths.items():
            self._widen(ws, col, width)
        if freeze:
            ws.freeze_panes = ws.cell(row=start_row + 1, column=1)
        return row

    def _widen(self, ws: Worksheet, col: int, chars: int) -> None:
        """Widen a column to at least `chars`; columns never shrink."""
        sheet = self._widths.setdefault(ws.title, {})
        sheet[col] = max(sheet.get(col, 0), chars)
        set_widths(ws, {col: sheet[col]})

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def save(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.wb.save(path)
        return path

    def to_bytes(self) -> bytes:
        """Workbook as xlsx bytes, for HTTP downloads."""
        buf = io.BytesIO()
        self.wb.save(buf)
        return buf.getvalue()
