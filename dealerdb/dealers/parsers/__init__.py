from .location import recover_location, LocationResult, US_STATES

__all__ = ['recover_location', 'LocationResult', 'US_STATES']
