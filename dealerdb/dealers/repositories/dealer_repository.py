"""Dealer Repository — list, coordinates, detail, update and import for dealerships.

Table columns are snake_case; rows leave the repository keyed by the
CamelCase names the browser client uses (KPMDealerNumber, DealershipName, ...).
"""

import logging

from core.base_repository import BaseRepository
from core.errors import DealerNotFoundError
from ..parsers.location import recover_location

logger = logging.getLogger('dealerdb.dealers.repositories.dealer')

ADDRESS_FIELDS = ('StreetAddress', 'BoxNumber', 'City', 'State', 'ZipCode', 'County')
CONTACT_FIELDS = ('MainPhone', 'FaxNumber', 'MainEmail')
LINE_FIELDS = ('LineName', 'AccountNumber')

# Positional layout of an import row
IMPORT_COLUMNS = (
    'dealer_number', 'dealership_name', 'dba',
    'street_address', 'box_number', 'city', 'state', 'zip_code', 'county',
    'main_phone', 'fax_number', 'main_email',
    'salesman_code',
)

_DEALER_SQL = '''
    SELECT d.dealer_number AS "KPMDealerNumber",
           d.dealership_name AS "DealershipName",
           d.dba AS "DBA",
           d.salesman_code AS "SalesmanCode",
           s.salesman_name AS "SalesmanName"
    FROM dealerships d
    LEFT JOIN salesman s ON s.salesman_code = d.salesman_code
    WHERE d.dealer_number = %s
'''

_ADDRESS_SQL = '''
    SELECT street_address AS "StreetAddress",
           box_number AS "BoxNumber",
           city AS "City",
           state AS "State",
           zip_code AS "ZipCode",
           county AS "County"
    FROM addresses
    WHERE dealer_number = %s
    LIMIT 1
'''

_CONTACT_SQL = '''
    SELECT main_phone AS "MainPhone",
           fax_number AS "FaxNumber",
           main_email AS "MainEmail"
    FROM contact_information
    WHERE dealer_number = %s
    LIMIT 1
'''

_LINES_SQL = '''
    SELECT line_name AS "LineName",
           account_number AS "AccountNumber"
    FROM lines_carried
    WHERE dealer_number = %s
    ORDER BY id
'''

_UPSERT_ADDRESS_SQL = '''
    INSERT INTO addresses
        (dealer_number, street_address, box_number, city, state, zip_code, county)
    VALUES (%s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (dealer_number) DO UPDATE SET
        street_address = EXCLUDED.street_address,
        box_number = EXCLUDED.box_number,
        city = EXCLUDED.city,
        state = EXCLUDED.state,
        zip_code = EXCLUDED.zip_code,
        county = EXCLUDED.county
'''

_UPSERT_CONTACT_SQL = '''
    INSERT INTO contact_information (dealer_number, main_phone, fax_number, main_email)
    VALUES (%s, %s, %s, %s)
    ON CONFLICT (dealer_number) DO UPDATE SET
        main_phone = EXCLUDED.main_phone,
        fax_number = EXCLUDED.fax_number,
        main_email = EXCLUDED.main_email
'''

_UPSERT_DEALER_SQL = '''
    INSERT INTO dealerships (dealer_number, dealership_name, dba, salesman_code)
    VALUES (%s, %s, %s, %s)
    ON CONFLICT (dealer_number) DO UPDATE SET
        dealership_name = EXCLUDED.dealership_name,
        dba = EXCLUDED.dba,
        salesman_code = EXCLUDED.salesman_code
'''


def _text(value):
    return '' if value is None else str(value)


def _shaped(row, fields):
    """Return a dict carrying every field; absent row or NULL column -> ''."""
    row = row or {}
    return {f: _text(row.get(f)) for f in fields}


def _like_pattern(text):
    """Substring ILIKE pattern with the user's % and _ matched literally."""
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def _section(payload, key):
    section = payload.get(key)
    return section if isinstance(section, dict) else {}


class DealerRepository(BaseRepository):

    def get_dealer_list(self, search=None, salesman_code=None):
        """Dealer summaries ordered by name, one per dealer number."""
        conditions, params = [], []
        if search:
            term = _like_pattern(search.strip())
            conditions.append('''(d.dealership_name ILIKE %s ESCAPE '\\' OR d.dba ILIKE %s ESCAPE '\\'
                                  OR d.dealer_number ILIKE %s ESCAPE '\\'
                                  OR c.main_phone ILIKE %s ESCAPE '\\')''')
            params.extend([term, term, term, term])
        if salesman_code:
            conditions.append('d.salesman_code = %s')
            params.append(salesman_code)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ''
        rows = self.query_all(
            f'''SELECT DISTINCT ON (d.dealership_name, d.dealer_number)
                       d.dealer_number AS "KPMDealerNumber",
                       d.dealership_name AS "DealershipName",
                       d.dba AS "DBA",
                       d.salesman_code AS "SalesmanCode"
                FROM dealerships d
                LEFT JOIN contact_information c ON c.dealer_number = d.dealer_number
                {where}
                ORDER BY d.dealership_name, d.dealer_number''',
            tuple(params)
        )
        for row in rows:
            row['DBA'] = _text(row.get('DBA'))
            row['SalesmanCode'] = _text(row.get('SalesmanCode'))
        return rows

    def get_dealer_coordinates(self):
        """Dealers with a usable address for the map view.

        City/state/zip are run through recover_location(); rows that remain
        incomplete are left out.
        """
        rows = self.query_all('''
            SELECT d.dealer_number AS "KPMDealerNumber",
                   d.dealership_name AS "DealershipName",
                   d.dba AS "DBA",
                   d.salesman_code AS "SalesmanCode",
                   a.street_address AS "StreetAddress",
                   a.city AS "City",
                   a.state AS "State",
                   a.zip_code AS "ZipCode",
                   a.county AS "County"
            FROM dealerships d
            JOIN addresses a ON a.dealer_number = d.dealer_number
            WHERE COALESCE(a.street_address, '') <> '' AND COALESCE(a.city, '') <> ''
            ORDER BY d.dealership_name, d.dealer_number
        ''')
        result = []
        for row in rows:
            location = recover_location(row.get('City'), row.get('State'), row.get('ZipCode'))
            if not location.valid:
                logger.debug(f"Skipping dealer {row['KPMDealerNumber']}: incomplete location "
                             f"{row.get('City')!r}/{row.get('State')!r}/{row.get('ZipCode')!r}")
                continue
            row.update(City=location.city, State=location.state, ZipCode=location.zip_code)
            row['DBA'] = _text(row.get('DBA'))
            row['SalesmanCode'] = _text(row.get('SalesmanCode'))
            row['County'] = _text(row.get('County'))
            result.append(row)
        return result

    def _assemble(self, cursor, dealer_number):
        cursor.execute(_DEALER_SQL, (dealer_number,))
        dealer = cursor.fetchone()
        if not dealer:
            raise DealerNotFoundError(dealer_number)
        cursor.execute(_ADDRESS_SQL, (dealer_number,))
        address = cursor.fetchone()
        cursor.execute(_CONTACT_SQL, (dealer_number,))
        contact = cursor.fetchone()
        cursor.execute(_LINES_SQL, (dealer_number,))
        lines = cursor.fetchall() or []
        return {
            'KPMDealerNumber': dealer['KPMDealerNumber'],
            'DealershipName': _text(dealer['DealershipName']),
            'DBA': _text(dealer['DBA']),
            'address': _shaped(address, ADDRESS_FIELDS),
            'contact': _shaped(contact, CONTACT_FIELDS),
            'lines': [_shaped(line, LINE_FIELDS) for line in lines],
            'salesman': {
                'SalesmanName': _text(dealer['SalesmanName']),
                'SalesmanCode': _text(dealer['SalesmanCode']),
            },
        }

    def get_dealer_detail(self, dealer_number):
        """Fully shaped detail record. Raises DealerNotFoundError."""
        return self.execute_many(lambda cursor: self._assemble(cursor, dealer_number))

    def update_dealer(self, dealer_number, payload):
        """Apply an edited detail record in one transaction and return the new detail.

        Lines are replaced wholesale; the salesman is reassigned only when a
        non-empty SalesmanCode is supplied.
        """
        address = _shaped(_section(payload, 'address'), ADDRESS_FIELDS)
        contact = _shaped(_section(payload, 'contact'), CONTACT_FIELDS)
        lines = [_shaped(line, LINE_FIELDS) for line in (payload.get('lines') or [])
                 if isinstance(line, dict)]
        salesman_code = _text(_section(payload, 'salesman').get('SalesmanCode')).strip()

        def _work(cursor):
            cursor.execute(
                'UPDATE dealerships SET dealership_name = %s, dba = %s WHERE dealer_number = %s',
                (_text(payload.get('DealershipName')), _text(payload.get('DBA')), dealer_number)
            )
            if cursor.rowcount == 0:
                raise DealerNotFoundError(dealer_number)
            cursor.execute(_UPSERT_ADDRESS_SQL, (dealer_number,) + tuple(
                address[f] for f in ADDRESS_FIELDS))
            cursor.execute(_UPSERT_CONTACT_SQL, (dealer_number,) + tuple(
                contact[f] for f in CONTACT_FIELDS))
            cursor.execute('DELETE FROM lines_carried WHERE dealer_number = %s', (dealer_number,))
            for line in lines:
                cursor.execute(
                    'INSERT INTO lines_carried (dealer_number, line_name, account_number) VALUES (%s, %s, %s)',
                    (dealer_number, line['LineName'], line['AccountNumber'])
                )
            if salesman_code:
                cursor.execute(
                    'UPDATE dealerships SET salesman_code = %s WHERE dealer_number = %s',
                    (salesman_code, dealer_number)
                )
            return self._assemble(cursor, dealer_number)

        detail = self.execute_many(_work)
        logger.info(f'Dealer {dealer_number} updated ({len(lines)} lines)')
        return detail

    def import_batch(self, rows):
        """Upsert dealer, address and contact for each positional row.

        Later rows for the same dealer number overwrite earlier ones. Lines are
        not touched. Rows without a dealer number are skipped. The batch runs
        in one transaction, so a storage error leaves nothing applied.

        Returns:
            Number of rows written
        """
        width = len(IMPORT_COLUMNS)

        def _work(cursor):
            processed = 0
            for raw in rows:
                values = [_text(v).strip() for v in list(raw)[:width]]
                values += [''] * (width - len(values))
                record = dict(zip(IMPORT_COLUMNS, values))
                number = record['dealer_number']
                if not number:
                    continue
                cursor.execute(_UPSERT_DEALER_SQL, (
                    number, record['dealership_name'], record['dba'] or None,
                    record['salesman_code'] or None))
                cursor.execute(_UPSERT_ADDRESS_SQL, (
                    number, record['street_address'], record['box_number'], record['city'],
                    record['state'], record['zip_code'], record['county']))
                cursor.execute(_UPSERT_CONTACT_SQL, (
                    number, record['main_phone'], record['fax_number'], record['main_email']))
                processed += 1
            return processed

        count = self.execute_many(_work)
        logger.info(f'Imported {count} dealer rows')
        return count
