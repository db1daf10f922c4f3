from .config import config
from .db import db, session_scope
from .logging_setup import logger, get_logger
from .exceptions import (
    ConnectChainError, ErrorKind, ValidationError, NotFoundError, ConflictError,
    StateConflictError, UploadError, OperationTimeoutError
)

__all__ = [
    'config',
    'db',
    'session_scope',
    'logger',
    'get_logger',
    'ConnectChainError',
    'ErrorKind',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'StateConflictError',
    'UploadError',
    'OperationTimeoutError'
]
