"""Shared API utilities — request validation and structured error responses.

Every failure body has a human-readable 'error' summary and a machine
'details' string; storage failures add the driver's SQLSTATE 'code'.
"""
import logging

from flask import jsonify, request

from .logging_config import log_with_context

logger = logging.getLogger('dealerdb.api')


# ============== Request Validation ==============

def get_json_or_error():
    """Get JSON object from request body with null check.

    Returns (data, error_response) tuple. Caller pattern:
        data, error = get_json_or_error()
        if error:
            return error
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, error_response('Invalid request', 'Request body must be a JSON object', 400)
    return data, None


# ============== Error Handling ==============

def error_response(summary, details=None, status_code=500, code=None):
    """Build the (json, status) pair for an error."""
    body = {'error': summary, 'details': details or summary}
    if code:
        body['code'] = code
    return jsonify(body), status_code


def storage_error_response(e, summary):
    """500 response for a StorageError, passing the driver message and code through."""
    log_with_context(logger, logging.ERROR, f'{summary}: {e.message}',
                     code=e.code, operation=e.operation)
    return error_response(summary, e.message, 500, code=e.code)
