"""Dealer Directory — dealerships, addresses, contacts and product lines.

Blueprint serving the dealer list, map coordinates, detail/edit and
spreadsheet import endpoints consumed by the browser client.
"""
from flask import Blueprint

dealers_bp = Blueprint('dealers', __name__)

from . import routes  # noqa: E402, F401
