"""Styled Excel workbook building."""
from .formatters import add_kpi_card, excel_value, write_cell
from .writer import Column, ExcelWriter
