"""
Logging configuration utility.
"""

import logging
import sys

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ('urllib3', 'requests')


def setup_logging(
    level: str = 'INFO',
    format_str: str = None,
    log_file: str = None
) -> logging.Logger:
    """
    Configure the root logger for the monitor.

    Replaces any existing handlers with a stdout handler and, if
    ``log_file`` is given, an appending file handler.

    Args:
        level: Log level name; unknown names fall back to INFO
        format_str: Log message format
        log_file: Optional file to also write logs to

    Returns:
        The root logger
    """
    if format_str is None:
        format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    formatter = logging.Formatter(format_str)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    return root_logger
