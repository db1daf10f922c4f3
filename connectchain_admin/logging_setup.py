import logging
import logging.handlers
import time
from pathlib import Path

from connectchain_admin.config import config

ROOT_LOGGER_NAME = 'connectchain'


class Logger:
    """Logging manager for the ConnectChain admin backend.

    Component loggers ('api', 'product_service', ...) live under the
    'connectchain' logger and share its rotating 'connectchain.log' file.
    Multi-step writes (reconciler runs, status cascades) are additionally
    recorded in 'operations.log' with their duration and outcome.
    """

    _instance = None
    _loggers = {}

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._log_config = config.log_config
        self._log_dir = Path(self._log_config['directory'])
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._formatter = logging.Formatter(self._log_config['format'])

        self._package_logger = self._build_logger(ROOT_LOGGER_NAME, 'connectchain.log')
        self._operations_logger = self._build_logger(f"{ROOT_LOGGER_NAME}.operations", 'operations.log')
        self._app_logger = self.get_logger('app')

        self._initialized = True

    def _level(self):
        return getattr(logging, self._log_config['level'].upper(), logging.INFO)

    def _file_handler(self, filename):
        handler = logging.handlers.RotatingFileHandler(
            self._log_dir / filename,
            maxBytes=self._log_config['max_size_mb'] * 1024 * 1024,
            backupCount=self._log_config['backup_count'],
            encoding='utf-8'
        )
        handler.setFormatter(self._formatter)
        return handler

    def _build_logger(self, name, filename):
        """Attach a rotating file handler (and console output when enabled)."""
        built = logging.getLogger(name)
        built.setLevel(self._level())
        for handler in built.handlers[:]:
            built.removeHandler(handler)

        built.addHandler(self._file_handler(filename))
        if name == ROOT_LOGGER_NAME:
            if self._log_config['console_output']:
                console_handler = logging.StreamHandler()
                console_handler.setFormatter(self._formatter)
                built.addHandler(console_handler)
            # Keep our records out of the host application's root handlers
            built.propagate = False
        return built

    def get_logger(self, name):
        """Get a component logger.

        Args:
            name: Component name, e.g. 'product_service'

        Returns:
            Logger writing to the shared connectchain log
        """
        if name not in self._loggers:
            component = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
            component.setLevel(self._level())
            self._loggers[name] = component
        return self._loggers[name]

    def log_exception(self, logger_name, exception, message=None):
        """Log an exception together with its own traceback.

        Args:
            logger_name: Component name
            exception: Exception object, raised or not
            message: Optional message to include
        """
        text = f"{message}: {exception}" if message else str(exception)
        self.get_logger(logger_name).error(
            text, exc_info=(type(exception), exception, exception.__traceback__)
        )

    @property
    def app_logger(self):
        return self._app_logger

    def operation_start_log(self, operation_name, additional_info=None):
        """Record the start of a multi-step write.

        Args:
            operation_name: e.g. 'product_update'
            additional_info: Optional dict describing the input

        Returns:
            Handle to pass to operation_end_log
        """
        self._operations_logger.info(
            f"{operation_name} started {additional_info or {}}"
        )
        return {
            'operation_name': operation_name,
            'started': time.perf_counter(),
        }

    def operation_end_log(self, log_info, success=True, result_info=None):
        """Record the outcome and duration of a multi-step write."""
        elapsed_ms = (time.perf_counter() - log_info['started']) * 1000
        outcome = 'committed' if success else 'rolled back'
        line = f"{log_info['operation_name']} {outcome} in {elapsed_ms:.1f} ms {result_info or {}}"

        if success:
            self._operations_logger.info(line)
        else:
            self._operations_logger.error(line)

# Global logger instance
logger = Logger()

def get_logger(name):
    """Get a component logger."""
    return logger.get_logger(name)

def log_exception(logger_name, exception, message=None):
    """Log an exception with its traceback."""
    logger.log_exception(logger_name, exception, message)
