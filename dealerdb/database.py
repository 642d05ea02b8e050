"""Dealer Directory database module.

Owns the PostgreSQL connection pool. A Database instance is built once from
Settings at process start and injected into repositories; every request
acquires its own connection and returns it on all exit paths.
"""
import logging
import threading
import time
from contextlib import contextmanager

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor


logger = logging.getLogger('dealerdb.database')


def get_cursor(conn):
    """Get cursor with dict row factory."""
    return conn.cursor(cursor_factory=RealDictCursor)


def dict_from_row(row):
    """Convert a database row to a dictionary with proper date serialization."""
    if row is None:
        return None
    result = dict(row)
    for key, value in result.items():
        if hasattr(value, 'isoformat'):
            result[key] = value.isoformat()
    return result


class Database:
    """Thread-safe connection pool wrapper (lazy initialization)."""

    def __init__(self, settings, pool_factory=None):
        self.settings = settings
        self._pool_factory = pool_factory or pool.ThreadedConnectionPool
        self._pool = None
        self._pool_lock = threading.Lock()
        self._ping_cache = {'ok': False, 'ts': 0}

    def _get_pool(self):
        if self._pool is None:
            with self._pool_lock:
                if self._pool is None:
                    self._pool = self._pool_factory(
                        minconn=self.settings.pool_min_conn,
                        maxconn=self.settings.pool_max_conn,
                        keepalives=1,
                        keepalives_idle=30,
                        keepalives_interval=10,
                        keepalives_count=5,
                        connect_timeout=5,
                        **self.settings.connection_kwargs()
                    )
                    logger.info(f'Connection pool created: min={self.settings.pool_min_conn}, '
                                f'max={self.settings.pool_max_conn}')
        return self._pool

    def _getconn_with_timeout(self, timeout=None):
        """Get connection from pool with timeout to prevent indefinite blocking.

        ThreadedConnectionPool.getconn() raises PoolError immediately when the
        pool is exhausted, so keep retrying until the deadline passes.
        """
        if timeout is None:
            timeout = self.settings.pool_timeout
        deadline = time.monotonic() + timeout
        while True:
            try:
                return self._get_pool().getconn()
            except pool.PoolError as e:
                if time.monotonic() >= deadline:
                    raise psycopg2.OperationalError(
                        f'Connection pool exhausted — timed out after {timeout}s waiting for available connection'
                    ) from e
                time.sleep(0.05)

    def get_db(self):
        """Get a validated connection from the pool.

        Stale connections (closed by the server) are discarded and replaced.
        Retries up to 3 times to handle multiple stale connections in pool.
        """
        max_retries = 3
        last_error = None

        for attempt in range(max_retries):
            conn = self._getconn_with_timeout()
            try:
                with conn.cursor() as cur:
                    cur.execute('SELECT 1')
                conn.rollback()
                conn.autocommit = True
                return conn
            except (psycopg2.OperationalError, psycopg2.InterfaceError, psycopg2.DatabaseError) as e:
                last_error = e
                logger.warning(f'Stale connection discarded (attempt {attempt + 1}/{max_retries}): {e}')
                try:
                    self._get_pool().putconn(conn, close=True)
                except pool.PoolError:
                    pass

        raise psycopg2.OperationalError(f'Failed to get valid connection after {max_retries} attempts: {last_error}')

    def release_db(self, conn):
        """Return connection to pool; broken connections are closed instead."""
        if conn is None or self._pool is None:
            return
        try:
            if conn.closed:
                self._pool.putconn(conn, close=True)
                return
            conn.autocommit = False
            self._pool.putconn(conn)
        except (psycopg2.Error, pool.PoolError):
            try:
                self._pool.putconn(conn, close=True)
            except pool.PoolError:
                pass

    @contextmanager
    def connection(self):
        """Context manager for a pooled connection - auto-releases to pool."""
        conn = self.get_db()
        try:
            yield conn
        finally:
            self.release_db(conn)

    @contextmanager
    def transaction(self):
        """Context manager for atomic database transactions.

        Usage:
            with db.transaction() as conn:
                cursor = get_cursor(conn)
                cursor.execute('UPDATE ...')
                cursor.execute('INSERT ...')
            # Auto-commits on success, auto-rollbacks on exception
        """
        conn = self.get_db()
        try:
            conn.autocommit = False
            yield conn
            conn.commit()
            logger.debug('Transaction committed successfully')
        except Exception as e:
            conn.rollback()
            logger.warning(f'Transaction rolled back: {e}')
            raise
        finally:
            self.release_db(conn)

    def ping(self):
        """Ping the database; result cached for 5 seconds.

        Returns True if successful, False otherwise.
        """
        now = time.time()
        if self._ping_cache['ok'] and (now - self._ping_cache['ts']) < 5:
            return True
        try:
            with self.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute('SELECT 1')
            self._ping_cache['ok'] = True
            self._ping_cache['ts'] = now
            return True
        except psycopg2.Error as e:
            logger.warning(f'Database ping failed: {e}')
            self._ping_cache['ok'] = False
            return False

    def init_schema(self):
        """Create tables and indexes if absent.

        Skips when the dealerships table already exists so workers do not
        re-issue DDL on every startup.
        """
        with self.transaction() as conn:
            cursor = get_cursor(conn)
            cursor.execute("""
                SELECT EXISTS (
                    SELECT FROM information_schema.tables
                    WHERE table_schema = 'public' AND table_name = 'dealerships'
                )
            """)
            if cursor.fetchone()['exists']:
                logger.info('Database schema already initialized — skipping init_schema()')
                return False

            from migrations.init_schema import create_schema
            create_schema(cursor)
        logger.info('Database schema initialized successfully')
        return True

    def close(self):
        """Close every pooled connection."""
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
