"""
Utility package for the GLOF risk analysis.

This package provides logging, decorators, file helpers and results
persistence shared by the data and model packages.
"""

from glof_risk.utils.logging_utils import logger, get_logger, log_step, LoggingManager
from glof_risk.utils.decorators import log_errors, timed
from glof_risk.utils.file_utils import ensure_dir_exists, save_json

__all__ = [
    'logger', 'get_logger', 'log_step', 'LoggingManager',
    'log_errors', 'timed',
    'ensure_dir_exists', 'save_json',
]
