# connectchain_admin/api/errors.py
"""
Error to HTTP translation.

Every ConnectChainError carries an ErrorKind. The kind alone decides the
status code, and every kind has an entry in STATUS_BY_KIND.
"""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from connectchain_admin.exceptions import ConnectChainError, ErrorKind
from connectchain_admin.logging_setup import get_logger, log_exception

logger = get_logger('api')

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.STATE_CONFLICT: 409,
    ErrorKind.UPLOAD: 500,
    ErrorKind.TIMEOUT: 503,
    ErrorKind.INTERNAL: 500,
}

_missing = set(ErrorKind) - set(STATUS_BY_KIND)
if _missing:
    raise RuntimeError(f"No HTTP status for error kinds: {sorted(kind.name for kind in _missing)}")


def status_for(kind: ErrorKind) -> int:
    return STATUS_BY_KIND[kind]


def handle_connectchain_error(error: ConnectChainError):
    status = status_for(error.kind)
    if status >= 500:
        log_exception('api', error, f"{error.kind.name} error")
    else:
        logger.info(f"{error.kind.name}: {error.message}")

    body = error.to_dict()
    if error.kind is ErrorKind.INTERNAL:
        # Internal details stay in the log
        body = {'success': False, 'message': error.default_message}
    return jsonify(body), status


def handle_http_error(error: HTTPException):
    if error.code == 404:
        message = 'Route not found'
    else:
        message = error.description or error.name
    return jsonify({'success': False, 'message': message}), error.code


def handle_unexpected_error(error: Exception):
    log_exception('api', error, "Unhandled error")
    return jsonify({'success': False, 'message': 'Internal server error'}), 500


def register_error_handlers(app) -> None:
    app.register_error_handler(ConnectChainError, handle_connectchain_error)
    app.register_error_handler(HTTPException, handle_http_error)
    app.register_error_handler(Exception, handle_unexpected_error)
