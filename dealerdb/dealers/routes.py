"""Dealer API routes — list, coordinates, detail, update, salesmen and import endpoints."""

import os
import tempfile
import zipfile
import logging
from flask import jsonify, request, current_app

from . import dealers_bp
from .services.import_service import import_file, SUPPORTED_EXTENSIONS
from core.errors import DealerNotFoundError, StorageError
from core.utils.api_helpers import get_json_or_error, error_response, storage_error_response

logger = logging.getLogger('dealerdb.dealers.routes')


def _repos():
    return current_app.extensions['dealerdb']


def _not_found(dealer_number):
    return error_response('Dealer not found', f'No dealer with number {dealer_number}', 404)


# ════════════════════════════════════════════════════════════════
# Dealers
# ════════════════════════════════════════════════════════════════

@dealers_bp.route('/api/dealers', methods=['GET'])
def api_dealers():
    try:
        rows = _repos()['dealers'].get_dealer_list(
            search=request.args.get('search'),
            salesman_code=request.args.get('salesman'),
        )
    except StorageError as e:
        return storage_error_response(e, 'Failed to fetch dealers')
    return jsonify(rows)


@dealers_bp.route('/api/dealers/coordinates', methods=['GET'])
def api_dealer_coordinates():
    try:
        rows = _repos()['dealers'].get_dealer_coordinates()
    except StorageError as e:
        return storage_error_response(e, 'Failed to fetch dealer coordinates')
    return jsonify(rows)


@dealers_bp.route('/api/dealers/<dealer_number>', methods=['GET'])
@dealers_bp.route('/api/dealers/<dealer_number>/details', methods=['GET'])
def api_dealer_detail(dealer_number):
    try:
        detail = _repos()['dealers'].get_dealer_detail(dealer_number)
    except DealerNotFoundError:
        return _not_found(dealer_number)
    except StorageError as e:
        return storage_error_response(e, 'Failed to fetch dealer details')
    return jsonify(detail)


@dealers_bp.route('/api/dealers/<dealer_number>', methods=['PUT'])
def api_dealer_update(dealer_number):
    data, error = get_json_or_error()
    if error:
        return error
    if not isinstance(data.get('lines') or [], list):
        return error_response('Invalid request', "'lines' must be a list", 400)
    try:
        detail = _repos()['dealers'].update_dealer(dealer_number, data)
    except DealerNotFoundError:
        return _not_found(dealer_number)
    except StorageError as e:
        return storage_error_response(e, 'Failed to update dealer')
    return jsonify(detail)


# ════════════════════════════════════════════════════════════════
# Salesmen
# ════════════════════════════════════════════════════════════════

@dealers_bp.route('/api/salesmen', methods=['GET'])
def api_salesmen():
    try:
        rows = _repos()['salesmen'].get_all()
    except StorageError as e:
        return storage_error_response(e, 'Failed to fetch salesmen')
    return jsonify(rows)


# ════════════════════════════════════════════════════════════════
# Import
# ════════════════════════════════════════════════════════════════

@dealers_bp.route('/api/import', methods=['POST'])
def api_import():
    """Upload and import an Excel/CSV dealer export.
    Form data: file (multipart)
    """
    file = request.files.get('file')
    if not file or not file.filename:
        return error_response('Failed to import data', 'No file uploaded', 400)

    ext = os.path.splitext(file.filename)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        return error_response('Failed to import data',
                              f'Only {", ".join(SUPPORTED_EXTENSIONS)} files supported', 400)

    with tempfile.NamedTemporaryFile(delete=False, suffix=ext) as tmp:
        file.save(tmp)
        tmp_path = tmp.name

    try:
        stats = import_file(tmp_path, _repos()['dealers'])
    except StorageError as e:
        return storage_error_response(e, 'Failed to import data')
    except (ValueError, zipfile.BadZipFile) as e:
        # pandas/openpyxl parse failures
        logger.warning(f'Unreadable import file {file.filename}: {e}')
        return error_response('Failed to import data', str(e)[:500], 400)
    finally:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass

    return jsonify({'message': 'Data imported successfully', **stats})
