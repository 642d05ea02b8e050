"""Domain exceptions shared by repositories, services and routes."""


class ConfigError(ValueError):
    """Invalid configuration detected at startup."""


class DealerNotFoundError(LookupError):
    """No dealerships row exists for the requested dealer number."""

    def __init__(self, dealer_number):
        self.dealer_number = dealer_number
        super().__init__(f'No dealer with number {dealer_number!r}')


class StorageError(Exception):
    """Connection, query or constraint failure reported by the database driver.

    Keeps the driver's message and SQLSTATE code so routes can pass them
    through for diagnostics.
    """

    def __init__(self, message, code=None, operation=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.operation = operation

    @classmethod
    def from_driver(cls, exc, operation=None):
        message = getattr(exc, 'pgerror', None) or str(exc) or exc.__class__.__name__
        return cls(message.strip(), code=getattr(exc, 'pgcode', None), operation=operation)
