"""Dealer Import Service — reads a spreadsheet export and upserts it through DealerRepository.

Columns are positional (no header names are relied on):
dealer number, name, DBA, street, box, city, state, zip, county,
phone, fax, email, salesman code.
"""

import logging

from ..parsers.utils import read_file, clean_cell, normalize_dealer_number, looks_like_header
from ..repositories.dealer_repository import IMPORT_COLUMNS

logger = logging.getLogger('dealerdb.dealers.services.import')

SUPPORTED_EXTENSIONS = ('.xlsx', '.xls', '.csv')


def iter_rows(df):
    """Yield cleaned 13-field tuples from a header-less DataFrame.

    A leading title row is skipped. Short rows are padded, extra columns dropped.
    """
    width = len(IMPORT_COLUMNS)
    records = df.values.tolist()
    if records and looks_like_header(records[0]):
        records = records[1:]
    for record in records:
        values = [clean_cell(v) for v in record[:width]]
        values += [''] * (width - len(values))
        values[0] = normalize_dealer_number(values[0])
        if not any(values):
            continue
        yield tuple(values)


def read_rows(file_path):
    """Read every dealer row from an .xlsx/.xls/.csv file."""
    df = read_file(file_path)
    if df is None or df.empty:
        return []
    return list(iter_rows(df))


def import_file(file_path, repo):
    """Import one spreadsheet. Returns {'rowsProcessed': n}."""
    rows = read_rows(file_path)
    logger.info(f'Read {len(rows)} rows from {file_path.split("/")[-1]}')
    if not rows:
        return {'rowsProcessed': 0}
    return {'rowsProcessed': repo.import_batch(rows)}
