import logging
import os
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(component_name: str = 'code_stream', log_level: Optional[str] = None) -> logging.Logger:
    """Attach a stdout handler to the component logger.

    The level comes from `log_level`, else the LOG_LEVEL environment
    variable, else WARNING. Calling it again only updates the level.
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'WARNING')
    level = getattr(logging, log_level.upper(), logging.WARNING)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
