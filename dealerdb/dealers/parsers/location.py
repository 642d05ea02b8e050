"""City/state/zip recovery for legacy address rows.

Some records were keyed with the whole "City ST 12345" string in the city
column and blank state/zip columns. recover_location() splits such values
back apart. It is best effort and favors keeping a record over dropping it:
a row is usable for the map once it has a city and at least one of state or
zip. Only upper-case tokens count as state abbreviations, so city names such
as "Isle La Motte" or "Lake In The Hills" are left alone.
"""
import re
from typing import NamedTuple

US_STATES = frozenset({
    'AL', 'AK', 'AZ', 'AR', 'CA', 'CO', 'CT', 'DE', 'FL', 'GA',
    'HI', 'ID', 'IL', 'IN', 'IA', 'KS', 'KY', 'LA', 'ME', 'MD',
    'MA', 'MI', 'MN', 'MS', 'MO', 'MT', 'NE', 'NV', 'NH', 'NJ',
    'NM', 'NY', 'NC', 'ND', 'OH', 'OK', 'OR', 'PA', 'RI', 'SC',
    'SD', 'TN', 'TX', 'UT', 'VT', 'VA', 'WA', 'WV', 'WI', 'WY',
    'DC', 'PR',
})

# Trailing ZIP or ZIP+4, optionally preceded by a comma
_TRAILING_ZIP = re.compile(r'[\s,]*\b(\d{5})(?:-\d{4})?\s*$')
_TOKEN = re.compile(r'[A-Z]{2}')


class LocationResult(NamedTuple):
    city: str
    state: str
    zip_code: str
    recovered: bool
    valid: bool


def _clean(value):
    return '' if value is None else str(value).strip()


def _find_state_token(city):
    """Return (index, token) of the first embedded state abbreviation, or None.

    The token must be a standalone upper-case two-letter word that is not the
    first word.
    """
    words = list(re.finditer(r'[^\s,]+', city))
    for match in words[1:]:
        word = match.group(0)
        if _TOKEN.fullmatch(word) and word in US_STATES:
            return match.start(), word
    return None


def recover_location(raw_city, raw_state, raw_zip):
    """Split state and zip tokens out of a merged city field.

    Blank state/zip columns are backfilled from the recovered tokens; values
    already present in those columns are never overwritten.

    >>> recover_location('Richmond VA 23220', '', '')
    LocationResult(city='Richmond', state='VA', zip_code='23220', recovered=True, valid=True)
    """
    city = _clean(raw_city)
    state = _clean(raw_state)
    zip_code = _clean(raw_zip)
    original = (city, state, zip_code)

    zip_match = _TRAILING_ZIP.search(city)
    if zip_match and zip_match.start() > 0:
        if not zip_code:
            zip_code = zip_match.group(1)
        city = city[:zip_match.start()]

    found = _find_state_token(city)
    if found:
        index, token = found
        if not state:
            state = token
        city = city[:index]

    city = city.rstrip(' ,')
    recovered = (city, state, zip_code) != original
    valid = bool(city) and bool(state or zip_code)
    return LocationResult(city, state, zip_code, recovered, valid)
