import logging
import os
from logging.handlers import RotatingFileHandler

LOGGER_NAME = 'ldap_reset'


def setup_logger(log_dir='logs', level='INFO'):
    """Configure logger"""
    # Create logs directory (if it doesn't exist)
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Reconfiguring (tests, repeated create_app) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Max 10MB per file, keep 5 backup files
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, 'password_reset.log'),
        maxBytes=10*1024*1024,
        backupCount=5,
        encoding='utf-8'
    )
    console_handler = logging.StreamHandler()

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger
