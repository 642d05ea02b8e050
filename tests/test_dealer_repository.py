"""Unit tests for DealerRepository and SalesmanRepository.

Tests for dealers.repositories:
- get_dealer_list (plain, search, salesman filter, NULL normalization, storage error)
- get_dealer_coordinates (recovery applied, invalid rows excluded)
- get_dealer_detail (found, missing child rows, not found)
- update_dealer (statement order, empty lines, salesman reassignment, not found, storage error)
- import_batch (upserts, skipped rows, padding, storage error)
"""
import sys
import os

import pytest
import psycopg2
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'dealerdb'))

from core.errors import DealerNotFoundError, StorageError
from dealers.repositories import DealerRepository, SalesmanRepository


def _mock_db():
    """Create mock Database, conn and cursor wired together."""
    db = MagicMock()
    conn = MagicMock()
    cursor = MagicMock()
    db.get_db.return_value = conn
    db.transaction.return_value.__enter__.return_value = conn
    db.transaction.return_value.__exit__.return_value = False
    conn.cursor.return_value = cursor
    return db, conn, cursor


def _sql(call):
    return ' '.join(call.args[0].split())


def _dealer_row(number='1001', name='Acme Trucks', dba=None, code='S9', salesman='Pat Doe'):
    return {'KPMDealerNumber': number, 'DealershipName': name, 'DBA': dba,
            'SalesmanCode': code, 'SalesmanName': salesman}


# ==================== get_dealer_list() ====================

class TestGetDealerList:

    def test_returns_rows_ordered_by_name(self):
        db, conn, cursor = _mock_db()
        cursor.fetchall.return_value = [
            {'KPMDealerNumber': '2', 'DealershipName': 'Alpha', 'DBA': None, 'SalesmanCode': None},
            {'KPMDealerNumber': '1', 'DealershipName': 'Beta', 'DBA': 'B Co', 'SalesmanCode': 'S1'},
        ]

        rows = DealerRepository(db).get_dealer_list()

        assert [r['KPMDealerNumber'] for r in rows] == ['2', '1']
        sql = _sql(cursor.execute.call_args)
        assert 'DISTINCT ON (d.dealership_name, d.dealer_number)' in sql
        assert sql.endswith('ORDER BY d.dealership_name, d.dealer_number')
        assert 'WHERE' not in sql
        db.release_db.assert_called_once_with(conn)

    def test_null_dba_and_salesman_become_empty_strings(self):
        db, conn, cursor = _mock_db()
        cursor.fetchall.return_value = [
            {'KPMDealerNumber': '1', 'DealershipName': 'Alpha', 'DBA': None, 'SalesmanCode': None},
        ]
        rows = DealerRepository(db).get_dealer_list()
        assert rows[0]['DBA'] == ''
        assert rows[0]['SalesmanCode'] == ''

    def test_search_matches_name_dba_number_and_phone(self):
        db, conn, cursor = _mock_db()
        cursor.fetchall.return_value = []

        DealerRepository(db).get_dealer_list(search=' acme ')

        sql = _sql(cursor.execute.call_args)
        params = cursor.execute.call_args.args[1]
        assert 'd.dealership_name ILIKE %s' in sql
        assert 'c.main_phone ILIKE %s' in sql
        assert params == ('%acme%',) * 4

    def test_search_wildcards_matched_literally(self):
        db, conn, cursor = _mock_db()
        cursor.fetchall.return_value = []

        DealerRepository(db).get_dealer_list(search='50%_off\\')

        sql = _sql(cursor.execute.call_args)
        params = cursor.execute.call_args.args[1]
        assert sql.count("ESCAPE '\\'") == 4
        assert params == ('%50\\%\\_off\\\\%',) * 4

    def test_salesman_filter(self):
        db, conn, cursor = _mock_db()
        cursor.fetchall.return_value = []

        DealerRepository(db).get_dealer_list(salesman_code='S9')

        assert 'd.salesman_code = %s' in _sql(cursor.execute.call_args)
        assert cursor.execute.call_args.args[1] == ('S9',)

    def test_storage_failure_raises_storage_error_and_releases(self):
        db, conn, cursor = _mock_db()
        cursor.execute.side_effect = psycopg2.OperationalError('server closed the connection')

        with pytest.raises(StorageError) as exc_info:
            DealerRepository(db).get_dealer_list()

        assert 'server closed the connection' in exc_info.value.message
        assert exc_info.value.operation == 'query'
        db.release_db.assert_called_once_with(conn)

    def test_connection_failure_raises_storage_error(self):
        db, conn, cursor = _mock_db()
        db.get_db.side_effect = psycopg2.OperationalError('could not connect')

        with pytest.raises(StorageError):
            DealerRepository(db).get_dealer_list()
        db.release_db.assert_not_called()


# ==================== get_dealer_coordinates() ====================

class TestGetDealerCoordinates:

    def _row(self, number, city, state='', zip_code=''):
        return {'KPMDealerNumber': number, 'DealershipName': f'Dealer {number}', 'DBA': None,
                'SalesmanCode': None, 'StreetAddress': '1 Main St', 'City': city,
                'State': state, 'ZipCode': zip_code, 'County': None}

    def test_recovers_merged_city(self):
        db, conn, cursor = _mock_db()
        cursor.fetchall.return_value = [self._row('1', 'Richmond VA 23220')]

        rows = DealerRepository(db).get_dealer_coordinates()

        assert len(rows) == 1
        assert rows[0]['City'] == 'Richmond'
        assert rows[0]['State'] == 'VA'
        assert rows[0]['ZipCode'] == '23220'
        assert rows[0]['County'] == ''

    def test_excludes_unrecoverable_rows(self):
        db, conn, cursor = _mock_db()
        cursor.fetchall.return_value = [
            self._row('1', 'Asheville'),
            self._row('2', 'Raleigh', 'NC', '27601'),
        ]

        rows = DealerRepository(db).get_dealer_coordinates()

        assert [r['KPMDealerNumber'] for r in rows] == ['2']

    def test_query_requires_street_and_city(self):
        db, conn, cursor = _mock_db()
        cursor.fetchall.return_value = []
        DealerRepository(db).get_dealer_coordinates()
        sql = _sql(cursor.execute.call_args)
        assert "COALESCE(a.street_address, '') <> ''" in sql
        assert "COALESCE(a.city, '') <> ''" in sql


# ==================== get_dealer_detail() ====================

class TestGetDealerDetail:

    def test_assembles_all_sections(self):
        db, conn, cursor = _mock_db()
        cursor.fetchone.side_effect = [
            _dealer_row(dba='Acme'),
            {'StreetAddress': '1 Main St', 'BoxNumber': '', 'City': 'Raleigh',
             'State': 'NC', 'ZipCode': '27601', 'County': 'Wake'},
            {'MainPhone': '555-0100', 'FaxNumber': None, 'MainEmail': 'a@b.com'},
        ]
        cursor.fetchall.return_value = [{'LineName': 'Volvo', 'AccountNumber': 'V100'}]

        detail = DealerRepository(db).get_dealer_detail('1001')

        assert detail == {
            'KPMDealerNumber': '1001',
            'DealershipName': 'Acme Trucks',
            'DBA': 'Acme',
            'address': {'StreetAddress': '1 Main St', 'BoxNumber': '', 'City': 'Raleigh',
                        'State': 'NC', 'ZipCode': '27601', 'County': 'Wake'},
            'contact': {'MainPhone': '555-0100', 'FaxNumber': '', 'MainEmail': 'a@b.com'},
            'lines': [{'LineName': 'Volvo', 'AccountNumber': 'V100'}],
            'salesman': {'SalesmanName': 'Pat Doe', 'SalesmanCode': 'S9'},
        }
        assert cursor.execute.call_count == 4
        assert 'LEFT JOIN salesman' in _sql(cursor.execute.call_args_list[0])

    def test_missing_address_and_contact_are_fully_shaped(self):
        db, conn, cursor = _mock_db()
        cursor.fetchone.side_effect = [_dealer_row(code=None, salesman=None), None, None]
        cursor.fetchall.return_value = []

        detail = DealerRepository(db).get_dealer_detail('1001')

        assert detail['address'] == {'StreetAddress': '', 'BoxNumber': '', 'City': '',
                                     'State': '', 'ZipCode': '', 'County': ''}
        assert detail['contact'] == {'MainPhone': '', 'FaxNumber': '', 'MainEmail': ''}
        assert detail['lines'] == []
        assert detail['salesman'] == {'SalesmanName': '', 'SalesmanCode': ''}
        assert detail['DBA'] == ''

    def test_not_found(self):
        db, conn, cursor = _mock_db()
        cursor.fetchone.return_value = None

        with pytest.raises(DealerNotFoundError) as exc_info:
            DealerRepository(db).get_dealer_detail('9999')

        assert exc_info.value.dealer_number == '9999'
        assert cursor.execute.call_count == 1


# ==================== update_dealer() ====================

_PAYLOAD = {
    'DealershipName': 'Acme Trucks',
    'DBA': '',
    'address': {'StreetAddress': '1 Main St', 'City': 'Raleigh', 'State': 'NC',
                'ZipCode': '27601', 'County': 'Wake', 'BoxNumber': ''},
    'contact': {'MainPhone': '555-0100', 'FaxNumber': '', 'MainEmail': 'a@b.com'},
    'lines': [{'LineName': 'Volvo', 'AccountNumber': 'V100'},
              {'LineName': 'Mack', 'AccountNumber': 'M7'}],
    'salesman': {'SalesmanCode': 'S9'},
}


def _prime_reassembly(cursor):
    cursor.rowcount = 1
    cursor.fetchone.side_effect = [_dealer_row(), None, None]
    cursor.fetchall.return_value = []


class TestUpdateDealer:

    def test_statement_order(self):
        db, conn, cursor = _mock_db()
        _prime_reassembly(cursor)

        DealerRepository(db).update_dealer('1001', _PAYLOAD)

        statements = [_sql(c) for c in cursor.execute.call_args_list]
        assert statements[0].startswith('UPDATE dealerships SET dealership_name')
        assert statements[1].startswith('INSERT INTO addresses')
        assert 'ON CONFLICT (dealer_number) DO UPDATE' in statements[1]
        assert statements[2].startswith('INSERT INTO contact_information')
        assert statements[3].startswith('DELETE FROM lines_carried')
        assert statements[4].startswith('INSERT INTO lines_carried')
        assert statements[5].startswith('INSERT INTO lines_carried')
        assert statements[6].startswith('UPDATE dealerships SET salesman_code')
        # followed by the four reassembly reads
        assert len(statements) == 11
        db.transaction.assert_called_once()

    def test_parameters(self):
        db, conn, cursor = _mock_db()
        _prime_reassembly(cursor)

        DealerRepository(db).update_dealer('1001', _PAYLOAD)

        calls = cursor.execute.call_args_list
        assert calls[0].args[1] == ('Acme Trucks', '', '1001')
        assert calls[1].args[1] == ('1001', '1 Main St', '', 'Raleigh', 'NC', '27601', 'Wake')
        assert calls[2].args[1] == ('1001', '555-0100', '', 'a@b.com')
        assert calls[4].args[1] == ('1001', 'Volvo', 'V100')
        assert calls[5].args[1] == ('1001', 'Mack', 'M7')
        assert calls[6].args[1] == ('S9', '1001')

    def test_empty_lines_only_deletes(self):
        db, conn, cursor = _mock_db()
        _prime_reassembly(cursor)

        DealerRepository(db).update_dealer('1001', {**_PAYLOAD, 'lines': []})

        statements = [_sql(c) for c in cursor.execute.call_args_list]
        assert any(s.startswith('DELETE FROM lines_carried') for s in statements)
        assert not any(s.startswith('INSERT INTO lines_carried') for s in statements)

    def test_blank_salesman_code_not_reassigned(self):
        db, conn, cursor = _mock_db()
        _prime_reassembly(cursor)

        DealerRepository(db).update_dealer('1001', {**_PAYLOAD, 'salesman': {'SalesmanCode': '  '}})

        statements = [_sql(c) for c in cursor.execute.call_args_list]
        assert not any(s.startswith('UPDATE dealerships SET salesman_code') for s in statements)

    def test_missing_sections_default_to_blank(self):
        db, conn, cursor = _mock_db()
        _prime_reassembly(cursor)

        DealerRepository(db).update_dealer('1001', {'DealershipName': 'Acme'})

        calls = cursor.execute.call_args_list
        assert calls[0].args[1] == ('Acme', '', '1001')
        assert calls[1].args[1] == ('1001', '', '', '', '', '', '')
        assert calls[2].args[1] == ('1001', '', '', '')

    def test_returns_reassembled_detail(self):
        db, conn, cursor = _mock_db()
        _prime_reassembly(cursor)

        detail = DealerRepository(db).update_dealer('1001', _PAYLOAD)

        assert detail['KPMDealerNumber'] == '1001'
        assert set(detail) == {'KPMDealerNumber', 'DealershipName', 'DBA',
                               'address', 'contact', 'lines', 'salesman'}

    def test_unknown_dealer_raises_before_other_writes(self):
        db, conn, cursor = _mock_db()
        cursor.rowcount = 0

        with pytest.raises(DealerNotFoundError):
            DealerRepository(db).update_dealer('9999', _PAYLOAD)

        assert cursor.execute.call_count == 1
        exit_args = db.transaction.return_value.__exit__.call_args.args
        assert exit_args[0] is DealerNotFoundError

    def test_storage_error_propagates_through_transaction(self):
        db, conn, cursor = _mock_db()
        cursor.rowcount = 1
        cursor.execute.side_effect = [None, psycopg2.IntegrityError('duplicate key')]

        with pytest.raises(StorageError) as exc_info:
            DealerRepository(db).update_dealer('1001', _PAYLOAD)

        assert exc_info.value.operation == 'transaction'
        exit_args = db.transaction.return_value.__exit__.call_args.args
        assert exit_args[0] is psycopg2.IntegrityError


# ==================== import_batch() ====================

def _import_row(number, name='Acme', city='Raleigh', code='S9'):
    return (number, name, '', '1 Main St', '', city, 'NC', '27601', 'Wake',
            '555-0100', '', 'a@b.com', code)


class TestImportBatch:

    def test_upserts_three_tables_per_row(self):
        db, conn, cursor = _mock_db()

        count = DealerRepository(db).import_batch([_import_row('1'), _import_row('2')])

        assert count == 2
        statements = [_sql(c) for c in cursor.execute.call_args_list]
        assert len(statements) == 6
        assert statements[0].startswith('INSERT INTO dealerships')
        assert 'ON CONFLICT (dealer_number) DO UPDATE' in statements[0]
        assert statements[1].startswith('INSERT INTO addresses')
        assert statements[2].startswith('INSERT INTO contact_information')
        assert not any('lines_carried' in s for s in statements)

    def test_row_values(self):
        db, conn, cursor = _mock_db()

        DealerRepository(db).import_batch([_import_row('1', code='')])

        calls = cursor.execute.call_args_list
        assert calls[0].args[1] == ('1', 'Acme', None, None)
        assert calls[1].args[1] == ('1', '1 Main St', '', 'Raleigh', 'NC', '27601', 'Wake')
        assert calls[2].args[1] == ('1', '555-0100', '', 'a@b.com')

    def test_blank_dealer_number_skipped(self):
        db, conn, cursor = _mock_db()

        count = DealerRepository(db).import_batch([_import_row(''), _import_row('7')])

        assert count == 1
        assert cursor.execute.call_count == 3

    def test_short_row_padded(self):
        db, conn, cursor = _mock_db()

        count = DealerRepository(db).import_batch([('42', 'Short Row')])

        assert count == 1
        assert cursor.execute.call_args_list[1].args[1] == ('42', '', '', '', '', '', '')

    def test_empty_batch(self):
        db, conn, cursor = _mock_db()
        assert DealerRepository(db).import_batch([]) == 0

    def test_fails_fast_on_storage_error(self):
        db, conn, cursor = _mock_db()
        cursor.execute.side_effect = [None, None, None, psycopg2.DataError('value too long')]

        with pytest.raises(StorageError):
            DealerRepository(db).import_batch([_import_row('1'), _import_row('2'), _import_row('3')])

        assert cursor.execute.call_count == 4


# ==================== SalesmanRepository ====================

class TestSalesmanRepository:

    def test_get_all(self):
        db, conn, cursor = _mock_db()
        cursor.fetchall.return_value = [{'SalesmanCode': 'S9', 'SalesmanName': 'Pat Doe'}]

        assert SalesmanRepository(db).get_all() == [{'SalesmanCode': 'S9', 'SalesmanName': 'Pat Doe'}]
        assert 'ORDER BY salesman_name' in _sql(cursor.execute.call_args)
