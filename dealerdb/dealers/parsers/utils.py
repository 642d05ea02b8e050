"""Shared parser utilities — file reading and cell cleaning for dealer imports."""

import re


_EMPTY = ('', 'nan', 'None', 'NaN', 'none', 'null')


def read_file(file_path, sheet_name=0):
    """Read Excel (.xlsx/.xls) or CSV file into a pandas DataFrame of strings.

    No header row is assumed; callers decide whether the first row is one.
    """
    import pandas as pd
    if file_path.lower().endswith('.csv'):
        return pd.read_csv(file_path, dtype=str, keep_default_na=False, header=None)
    return pd.read_excel(file_path, sheet_name=sheet_name, dtype=str,
                         keep_default_na=False, header=None)


def safe_str(val):
    """Convert to string, return None for empty/nan."""
    if val is None:
        return None
    s = str(val).strip()
    if s in _EMPTY:
        return None
    return s


def clean_cell(val):
    """safe_str() with '' instead of None — the schema stores blanks as ''."""
    return safe_str(val) or ''


def normalize_dealer_number(val):
    """Dealer numbers read from Excel may arrive as floats ('1001.0')."""
    s = clean_cell(val)
    if re.fullmatch(r'\d+\.0+', s):
        s = s.split('.')[0]
    return s


def looks_like_header(first_row):
    """True when the first cell is a column title rather than a dealer number."""
    first = clean_cell(first_row[0]) if len(first_row) else ''
    return bool(first) and not any(ch.isdigit() for ch in first)
