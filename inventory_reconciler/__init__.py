from .config import config
from .logging_setup import logger, get_logger
from .exceptions import (
    ReconcilerError, ConfigError, StoreError, PayloadError, ResolutionError
)

__all__ = [
    'config',
    'logger',
    'get_logger',
    'ReconcilerError',
    'ConfigError',
    'StoreError',
    'PayloadError',
    'ResolutionError'
]
