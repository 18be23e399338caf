import logging
import logging.handlers
import traceback
from datetime import datetime
from pathlib import Path

from inventory_reconciler.config import config


class Logger:
    """Logging manager for the Inventory Reconciler."""

    _instance = None
    _loggers = {}

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the logger if not already initialized."""
        if self._initialized:
            return

        self._log_config = config.log_config
        directory = self._log_config['directory']
        self._log_dir = Path(directory) if directory else None

        # Create log directory if it doesn't exist
        if self._log_dir is not None and not self._log_dir.exists():
            self._log_dir.mkdir(parents=True)

        self._initialized = True

    def _level(self):
        level_name = str(self._log_config['level']).upper()
        return getattr(logging, level_name, logging.INFO)

    def _file_handler(self, filename, formatter):
        handler = logging.handlers.RotatingFileHandler(
            self._log_dir / filename,
            maxBytes=self._log_config['max_size_mb'] * 1024 * 1024,
            backupCount=self._log_config['backup_count']
        )
        handler.setFormatter(formatter)
        return handler

    def configure_root_logger(self, level=None):
        """Route module-level loggers (services, store) to reconciler.log and the console.

        Args:
            level: Optional level overriding the configured one
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(level if level is not None else self._level())

        # Remove existing handlers
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        formatter = logging.Formatter(self._log_config['format'])
        if self._log_config['console_output']:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)
        if self._log_dir is not None:
            root_logger.addHandler(self._file_handler('reconciler.log', formatter))

        if level is not None:
            self.set_level(level)

    def get_logger(self, name):
        """Get a logger with the specified name.

        Args:
            name: Name of the logger

        Returns:
            Configured logger instance
        """
        if name in self._loggers:
            return self._loggers[name]

        logger = logging.getLogger(name)
        logger.setLevel(self._level())

        # Remove existing handlers to prevent duplicates
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        formatter = logging.Formatter(self._log_config['format'])

        if self._log_dir is not None:
            logger.addHandler(self._file_handler(f"{name}.log", formatter))

        if self._log_config['console_output']:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        # Prevent propagation to root logger to avoid duplicates
        logger.propagate = False

        self._loggers[name] = logger
        return logger

    def set_level(self, level):
        """Change the level of every logger created so far."""
        for logger in self._loggers.values():
            logger.setLevel(level)

    def log_exception(self, logger_name, exception, message=None):
        """Log an exception with stack trace.

        Args:
            logger_name: Logger name
            exception: Exception object
            message: Optional message to include
        """
        logger = self.get_logger(logger_name)

        if message:
            logger.error(f"{message}: {str(exception)}")
        else:
            logger.error(str(exception))

        logger.error(traceback.format_exc())

    def batch_start_log(self, process_name, additional_info=None):
        """Log the start of a batch process.

        Args:
            process_name: Name of the batch process
            additional_info: Optional additional information

        Returns:
            Dictionary with batch process logging information
        """
        batch_logger = self.get_logger('batch')
        start_time = datetime.now()

        log_info = {
            'process_name': process_name,
            'start_time': start_time,
            'additional_info': additional_info
        }

        batch_logger.info(f"Starting batch process: {process_name}")
        if additional_info:
            batch_logger.info(f"Process info: {additional_info}")

        return log_info

    def batch_end_log(self, log_info, success=True, result_info=None):
        """Log the end of a batch process.

        Args:
            log_info: Dictionary with batch process logging information
            success: Whether the batch process succeeded
            result_info: Optional result information
        """
        batch_logger = self.get_logger('batch')
        end_time = datetime.now()

        process_name = log_info.get('process_name', 'Unknown')
        start_time = log_info.get('start_time', end_time)
        duration = end_time - start_time

        if success:
            batch_logger.info(f"Completed batch process: {process_name}")
        else:
            batch_logger.error(f"Failed batch process: {process_name}")

        batch_logger.info(f"Process duration: {duration}")

        if result_info:
            batch_logger.info(f"Process results: {result_info}")


# Global logger instance
logger = Logger()


def get_logger(name):
    """Get a logger with the specified name."""
    return logger.get_logger(name)
