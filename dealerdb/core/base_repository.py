"""Base Repository — eliminates connection boilerplate across all repos.

Provides query_all() and execute_many() that acquire a connection from the
injected Database, release it on every exit path, and translate driver
errors into StorageError.

Usage:
    class MyRepo(BaseRepository):
        def list_things(self):
            return self.query_all('SELECT * FROM things ORDER BY name')

        def complex_op(self):
            def _work(cursor):
                cursor.execute('UPDATE ...')
                cursor.execute('INSERT ...')
                return cursor.fetchone()
            return self.execute_many(_work)
"""
from contextlib import contextmanager

import psycopg2

from database import get_cursor, dict_from_row
from .errors import StorageError


@contextmanager
def storage_errors(operation):
    """Re-raise any psycopg2 error as StorageError tagged with the operation."""
    try:
        yield
    except psycopg2.Error as e:
        raise StorageError.from_driver(e, operation=operation) from e


class BaseRepository:

    def __init__(self, db):
        self.db = db

    def query_all(self, sql, params=None):
        """Execute a SELECT and return all rows as list of dicts."""
        with storage_errors('query'):
            conn = self.db.get_db()
            try:
                cursor = get_cursor(conn)
                cursor.execute(sql, params or ())
                return [dict_from_row(r) for r in cursor.fetchall()]
            finally:
                self.db.release_db(conn)

    def execute_many(self, callback):
        """Execute multiple statements in a single transaction.

        Args:
            callback: Function that receives (cursor) and returns a result.
                      All statements within callback share one connection/transaction.

        Returns:
            Whatever callback returns
        """
        with storage_errors('transaction'):
            with self.db.transaction() as conn:
                return callback(get_cursor(conn))
