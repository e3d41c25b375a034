"""
Upload tokenization: CSV / gzipped CSV / XLSX bytes → raw rows + raw headers.
"""
from __future__ import annotations

import gzip
import io
import zipfile
from pathlib import Path

import pandas as pd

from ipdr.config import UPLOAD_EXTENSIONS
from ipdr.data.errors import TokenizeError


def _frame_to_rows(df: pd.DataFrame) -> tuple[list[dict], list[str]]:
    df = df.rename(columns=str)
    return df.to_dict("records"), list(df.columns)


def _read_csv(content: bytes) -> pd.DataFrame:
    return pd.read_csv(
        io.BytesIO(content),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        encoding="utf-8-sig",
    )


def _read_xlsx(content: bytes) -> pd.DataFrame:
    return pd.read_excel(
        io.BytesIO(content),
        dtype=str,
        keep_default_na=False,
        engine="openpyxl",
    )


def read_upload(filename: str, content: bytes) -> tuple[list[dict], list[str]]:
    """Split an uploaded file into rows (header → raw string cell) and headers.

    Raises TokenizeError for unsupported types or files the parser rejects.
    An empty file yields zero rows; deciding that is fatal is the caller's job.
    """
    name = (filename or "").lower()
    if not name.endswith(UPLOAD_EXTENSIONS):
        raise TokenizeError(f"Unsupported file type: '{filename}'")

    try:
        if name.endswith(".gz"):
            content = gzip.decompress(content)
        if not content.strip():
            return [], []
        if name.endswith(".xlsx"):
            df = _read_xlsx(content)
        else:
            df = _read_csv(content)
    except pd.errors.EmptyDataError:
        return [], []
    except (pd.errors.ParserError, zipfile.BadZipFile, UnicodeDecodeError, OSError, ValueError) as e:
        raise TokenizeError(f"Failed to parse '{filename}': {e}") from e

    if df.empty:
        return [], [str(c) for c in df.columns]

    # Rows where every cell is blank are not records
    df = df.fillna("").astype(str)
    blank = df.apply(lambda col: col.str.strip() == "").all(axis=1)
    return _frame_to_rows(df[~blank])


def read_path(path: str | Path) -> tuple[list[dict], list[str]]:
    """Tokenize a file from disk (CLI entry point)."""
    path = Path(path)
    if not path.exists():
        raise TokenizeError(f"File not found: {path}")
    return read_upload(path.name, path.read_bytes())
