"""
Tabular reader: turns an uploaded CSV/Excel buffer into a raw grid of cells.
"""

import csv
import logging
from io import BytesIO, StringIO
from zipfile import BadZipFile

import pandas as pd

from navaroo.parser.errors import UnsupportedFileError

logger = logging.getLogger(__name__)

CSV_ENCODINGS = ["utf-8", "utf-8-sig", "latin1"]
EXCEL_SUFFIXES = (".xlsx", ".xlsm")


def _frame_to_grid(df: pd.DataFrame) -> list[list]:
    grid = []
    for row in df.itertuples(index=False, name=None):
        grid.append([None if _is_missing(v) else v for v in row])
    return grid


def _is_missing(val) -> bool:
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def _read_csv_text(text: str, filename: str) -> list[list]:
    # Exports start with one-cell title rows, so size the frame by the widest row
    width = max((len(r) for r in csv.reader(StringIO(text))), default=0)
    if width == 0:
        return []
    try:
        df = pd.read_csv(StringIO(text), header=None, names=range(width),
                         dtype=object, skip_blank_lines=False)
    except pd.errors.ParserError as e:
        raise UnsupportedFileError(f"Could not read CSV file {filename}: {e}") from e
    return _frame_to_grid(df)


def read_grid(content: bytes, filename: str, sheet_name=0) -> list[list]:
    """Read a CSV or Excel buffer into a list of rows. Missing cells become None."""
    name = filename.lower()

    if name.endswith(".csv"):
        for enc in CSV_ENCODINGS:
            try:
                text = content.decode(enc)
            except UnicodeDecodeError:
                continue
            return _read_csv_text(text, filename)
        raise UnsupportedFileError(f"Could not read CSV file {filename}")
    elif name.endswith(EXCEL_SUFFIXES):
        try:
            df = pd.read_excel(BytesIO(content), sheet_name=sheet_name, header=None, engine="openpyxl")
        except (BadZipFile, KeyError, OSError, ValueError) as e:
            raise UnsupportedFileError(f"Could not read Excel file {filename}: {e}") from e
        grid = _frame_to_grid(df)
        logger.info(f"Read {len(grid)} rows from {filename}")
        return grid
    else:
        raise UnsupportedFileError(f"Unsupported file type: {filename}")


def sheet_names(content: bytes, filename: str) -> list[str]:
    """Workbook sheet names; CSV files have none."""
    if not filename.lower().endswith(EXCEL_SUFFIXES):
        return []
    try:
        with pd.ExcelFile(BytesIO(content), engine="openpyxl") as xls:
            return [str(s) for s in xls.sheet_names]
    except (BadZipFile, KeyError, OSError, ValueError) as e:
        raise UnsupportedFileError(f"Could not read Excel file {filename}: {e}") from e


def read_upload(uploaded_file) -> tuple[str, bytes]:
    """Return (name, content) from a Streamlit-style upload, rewinding it afterwards."""
    name = uploaded_file.name
    content = uploaded_file.read()
    uploaded_file.seek(0)
    return name, content
