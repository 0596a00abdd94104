"""JSON log output for applications that embed the auth service."""

import logging
from typing import Union

from pythonjsonlogger import jsonlogger

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def setup_logger(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Send root logger output to stderr as JSON, one object per line.

    Calling this more than once does not stack handlers.
    """
    logger = logging.getLogger()
    logger.setLevel(level)
    for handler in logger.handlers:
        if isinstance(handler.formatter, jsonlogger.JsonFormatter):
            return logger

    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(
        LOG_FORMAT,
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    ))
    logger.addHandler(handler)
    return logger
