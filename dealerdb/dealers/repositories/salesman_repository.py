"""Salesman Repository — read-only lookup of salesman codes and names."""

from core.base_repository import BaseRepository


class SalesmanRepository(BaseRepository):

    def get_all(self):
        return self.query_all('''
            SELECT salesman_code AS "SalesmanCode",
                   COALESCE(salesman_name, '') AS "SalesmanName"
            FROM salesman
            ORDER BY salesman_name, salesman_code
        ''')
