"""Dealer Directory API — application factory and entry point.

Run locally:  python dealerdb/app.py
Gunicorn:     gunicorn --chdir dealerdb 'app:create_app()'
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, request, jsonify
from flask_compress import Compress
from flask_cors import CORS

from core.config import Settings
from core.utils.logging_config import setup_logging, get_logger
from database import Database
from dealers import dealers_bp
from dealers.repositories import DealerRepository, SalesmanRepository

app_logger = get_logger('dealerdb.app')


def create_app(settings=None, database=None, repositories=None):
    """Build the Flask app.

    Args:
        settings: Settings instance; read from the environment when omitted.
        database: Database to inject; built from settings when omitted.
        repositories: Optional {'dealers': ..., 'salesmen': ...} overrides (tests).
    """
    settings = settings or Settings.from_env()
    setup_logging(level=settings.log_level)
    app_logger.info('Dealer directory app loading...')

    app = Flask(__name__)
    app.config['DEALERDB_SETTINGS'] = settings
    app.json.sort_keys = False

    Compress(app)
    CORS(
        app,
        origins=list(settings.allowed_origins),
        methods=['GET', 'PUT', 'POST', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type'],
        supports_credentials=True,
    )

    if repositories is None:
        database = database or Database(settings)
        if settings.init_schema:
            database.init_schema()
        repositories = {
            'dealers': DealerRepository(database),
            'salesmen': SalesmanRepository(database),
        }
    app.extensions['dealerdb'] = repositories
    app.extensions['dealerdb_database'] = database

    app.register_blueprint(dealers_bp)

    @app.route('/')
    def index():
        return jsonify({'message': 'KPM Dealer Database API'})

    @app.route('/health')
    def health():
        db = app.extensions['dealerdb_database']
        ok = db.ping() if db is not None else False
        status = 200 if ok else 503
        return jsonify({'status': 'healthy' if ok else 'unhealthy', 'database': ok}), status

    # ============== Global Error Handlers ==============

    @app.errorhandler(404)
    def handle_404(e):
        return jsonify({'error': 'Not found', 'details': request.path}), 404

    @app.errorhandler(405)
    def handle_405(e):
        return jsonify({'error': 'Method not allowed', 'details': request.method}), 405

    @app.errorhandler(500)
    def handle_500(e):
        app_logger.exception('Unhandled 500 error')
        return jsonify({'error': 'An internal error occurred', 'details': str(e)}), 500

    app_logger.info(f'Dealer directory startup complete — {len(app.url_map._rules)} routes registered, '
                    f'{len(settings.allowed_origins)} CORS origins')
    return app


if __name__ == '__main__':
    _settings = Settings.from_env()
    create_app(_settings).run(host='0.0.0.0', port=_settings.port)
