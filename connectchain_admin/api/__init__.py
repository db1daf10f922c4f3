# connectchain_admin/api/__init__.py
from typing import Optional

from flask import Flask, send_from_directory

from connectchain_admin.api.categories import categories_bp
from connectchain_admin.api.errors import register_error_handlers
from connectchain_admin.api.orders import orders_bp
from connectchain_admin.api.products import products_bp
from connectchain_admin.api.request_parsing import MAX_FILE_SIZE
from connectchain_admin.api.suppliers import suppliers_bp
from connectchain_admin.api.users import users_bp
from connectchain_admin.db import db
from connectchain_admin.logging_setup import get_logger
from connectchain_admin.media import MediaStore, LocalMediaStore, get_media_store

logger = get_logger('api')

# Ten images per request plus form fields
MAX_CONTENT_LENGTH = 10 * MAX_FILE_SIZE + 1024 * 1024


def create_app(connection_string: Optional[str] = None,
               media_store: Optional[MediaStore] = None) -> Flask:
    """Build the admin API application.

    Args:
        connection_string: Database URL, defaults to the configured one
        media_store: Media store, defaults to the MEDIA configuration

    Returns:
        Flask application with all blueprints registered under /api
    """
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH
    app.json.sort_keys = False

    db.initialize(connection_string)
    app.extensions['media_store'] = media_store or get_media_store()

    for blueprint in (products_bp, categories_bp, suppliers_bp, users_bp, orders_bp):
        app.register_blueprint(blueprint)
    register_error_handlers(app)

    store = app.extensions['media_store']
    if isinstance(store, LocalMediaStore):
        @app.route('/media/<path:storage_id>', methods=['GET'])
        def serve_media(storage_id):
            return send_from_directory(store.directory, storage_id)

    @app.teardown_appcontext
    def remove_session(exception=None):
        db.remove_session()

    logger.info(f"Admin API created with {len(app.blueprints)} blueprints")
    return app


__all__ = ['create_app']
