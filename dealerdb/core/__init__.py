"""Dealer Directory core module.

Shared infrastructure used by the dealers section:
- Runtime configuration (Settings)
- Domain exceptions
- Base repository over the connection pool
- Logging and API helpers
"""
