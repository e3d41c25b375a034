"""
Workbook palette: colors, fonts, fills, borders and alignments used by every sheet.
"""
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

# ---------------------------------------------------------------------------
# Palette
# ---------------------------------------------------------------------------
NAVY = "1A237E"
BLUE = "0D47A1"
ZEBRA = "F5F5F5"
GRID = "CCCCCC"
MUTED = "666666"
ROSE = "FFEBEE"


def _font(size: int, color: str = "000000", **kw) -> Font:
    return Font(name="Calibri", size=size, color=color, **kw)


def _solid(color: str) -> PatternFill:
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


# ---------------------------------------------------------------------------
# Fonts
# ---------------------------------------------------------------------------
TITLE_FONT = _font(22, NAVY, bold=True)
SUBTITLE_FONT = _font(11, MUTED, italic=True)
SECTION_FONT = _font(13, NAVY, bold=True)
HEADER_FONT = _font(11, "FFFFFF", bold=True)
DATA_FONT = _font(10)
KPI_VALUE_FONT = _font(24, BLUE, bold=True)
KPI_LABEL_FONT = _font(9, MUTED)

# ---------------------------------------------------------------------------
# Fills
# ---------------------------------------------------------------------------
HEADER_FILL = _solid(NAVY)
ZEBRA_FILL = _solid(ZEBRA)
HIGHLIGHT_FILLS = {
    "warning": _solid(ROSE),    # record has values kept as raw text
}

# ---------------------------------------------------------------------------
# Borders
# ---------------------------------------------------------------------------
_grid = Side(style="thin", color=GRID)
CELL_BORDER = Border(left=_grid, right=_grid, top=_grid, bottom=_grid)
HEADER_BORDER = Border(
    left=Side(style="thin", color=NAVY),
    right=Side(style="thin", color=NAVY),
    top=Side(style="thin", color=NAVY),
    bottom=Side(style="medium", color=NAVY),
)

# ---------------------------------------------------------------------------
# Alignments
# ---------------------------------------------------------------------------
CENTER = Alignment(horizontal="center", vertical="center")
LEFT = Alignment(horizontal="left", vertical="center")
RIGHT = Alignment(horizontal="right", vertical="center")
