from .dealer_repository import DealerRepository
from .salesman_repository import SalesmanRepository

__all__ = ['DealerRepository', 'SalesmanRepository']
