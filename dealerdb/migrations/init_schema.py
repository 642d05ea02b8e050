"""Database schema initialization.

Contains the CREATE TABLE and CREATE INDEX statements for the dealer
directory. Every statement is idempotent.

Called by Database.init_schema() at application start.
"""


def create_schema(cursor):
    """Create all dealer directory tables and indexes.

    Args:
        cursor: Database cursor inside an open transaction
    """
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS salesman (
            salesman_code TEXT PRIMARY KEY,
            salesman_name TEXT NOT NULL DEFAULT ''
        )
    ''')

    # salesman_code is deliberately not a foreign key: imports may reference
    # salesmen that have not been loaded yet
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS dealerships (
            dealer_number TEXT PRIMARY KEY,
            dealership_name TEXT NOT NULL DEFAULT '',
            dba TEXT,
            salesman_code TEXT
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS addresses (
            dealer_number TEXT NOT NULL UNIQUE REFERENCES dealerships(dealer_number) ON DELETE CASCADE,
            street_address TEXT NOT NULL DEFAULT '',
            box_number TEXT NOT NULL DEFAULT '',
            city TEXT NOT NULL DEFAULT '',
            state TEXT NOT NULL DEFAULT '',
            zip_code TEXT NOT NULL DEFAULT '',
            county TEXT NOT NULL DEFAULT ''
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS contact_information (
            dealer_number TEXT NOT NULL UNIQUE REFERENCES dealerships(dealer_number) ON DELETE CASCADE,
            main_phone TEXT NOT NULL DEFAULT '',
            fax_number TEXT NOT NULL DEFAULT '',
            main_email TEXT NOT NULL DEFAULT ''
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS lines_carried (
            id SERIAL PRIMARY KEY,
            dealer_number TEXT NOT NULL REFERENCES dealerships(dealer_number) ON DELETE CASCADE,
            line_name TEXT NOT NULL DEFAULT '',
            account_number TEXT NOT NULL DEFAULT ''
        )
    ''')

    cursor.execute('CREATE INDEX IF NOT EXISTS idx_dealerships_name ON dealerships(dealership_name)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_dealerships_salesman ON dealerships(salesman_code)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_lines_carried_dealer ON lines_carried(dealer_number)')
