#!/usr/bin/env python3
"""
Logging Configuration for the charter reservation core
Provides detailed logging for debugging reservation state and the offline queue
"""

import os
import logging
import logging.handlers
from datetime import datetime
from typing import Dict, Optional

from tracking import t

DEFAULT_LOG_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'logs', 'latest_log')

# Component loggers and their level in (production, development)
COMPONENT_LEVELS: Dict[str, tuple] = {
    'ReservationStateManager': (logging.INFO, logging.DEBUG),
    'OfflineMutationQueue': (logging.INFO, logging.DEBUG),
    'ReservationService': (logging.INFO, logging.DEBUG),
    'ResourceRegistry': (logging.WARNING, logging.DEBUG),
    'ReservationContainer': (logging.INFO, logging.DEBUG),
    'JsonFileStore': (logging.WARNING, logging.DEBUG),
    'NetworkStatus': (logging.INFO, logging.DEBUG),
}


def setup_logging(log_dir: Optional[str] = None, production_mode: Optional[bool] = None) -> str:
    """
    Set up logging with multiple handlers and detailed formatting.

    Previous logs in ``log_dir`` are cleared before the new session starts.

    Args:
        log_dir: Directory for log files. Defaults to ``logs/latest_log``.
        production_mode: Overrides the ``PRODUCTION_MODE`` environment flag.

    Returns:
        The directory the log files are written to.
    """
    t('logging_config.setup_logging')
    if production_mode is None:
        production_mode = os.getenv('PRODUCTION_MODE', 'true').lower() == 'true'
    log_dir = log_dir or DEFAULT_LOG_DIR

    # Clear previous logs in the directory
    if os.path.exists(log_dir):
        for filename in os.listdir(log_dir):
            file_path = os.path.join(log_dir, filename)
            try:
                if os.path.isfile(file_path) or os.path.islink(file_path):
                    os.unlink(file_path)
            except OSError as e:
                print(f'Failed to delete {file_path}. Reason: {e}')

    os.makedirs(log_dir, exist_ok=True)

    main_log_file = os.path.join(log_dir, 'reservations.log')
    debug_log_file = os.path.join(log_dir, 'reservations_debug.log')
    error_log_file = os.path.join(log_dir, 'reservations_errors.log')
    queue_log_file = os.path.join(log_dir, 'offline_queue.log')

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING if production_mode else logging.DEBUG)

    # Clear existing handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # Detailed formatter with file, line, and function information
    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d in %(funcName)s()] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Console formatter (less detailed for readability)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING if production_mode else logging.INFO)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    main_file_handler = logging.handlers.RotatingFileHandler(
        main_log_file,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    main_file_handler.setLevel(logging.WARNING if production_mode else logging.INFO)
    main_file_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(main_file_handler)

    # Debug log file handler - only enabled in development mode
    if not production_mode:
        debug_file_handler = logging.handlers.RotatingFileHandler(
            debug_log_file,
            maxBytes=50*1024*1024,  # 50MB
            backupCount=3,
            encoding='utf-8'
        )
        debug_file_handler.setLevel(logging.DEBUG)
        debug_file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(debug_file_handler)

    error_file_handler = logging.handlers.RotatingFileHandler(
        error_log_file,
        maxBytes=5*1024*1024,  # 5MB
        backupCount=5,
        encoding='utf-8'
    )
    error_file_handler.setLevel(logging.ERROR)
    error_file_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(error_file_handler)

    # Dedicated offline queue log
    queue_handler = logging.handlers.RotatingFileHandler(
        queue_log_file,
        maxBytes=20*1024*1024,  # 20MB
        backupCount=5,
        encoding='utf-8'
    )
    queue_handler.setLevel(logging.INFO if production_mode else logging.DEBUG)
    queue_handler.setFormatter(detailed_formatter)

    queue_logger = logging.getLogger('OfflineMutationQueue')
    for handler in list(queue_logger.handlers):
        queue_logger.removeHandler(handler)
        handler.close()
    queue_logger.addHandler(queue_handler)

    for name, (production_level, development_level) in COMPONENT_LEVELS.items():
        logging.getLogger(name).setLevel(production_level if production_mode else development_level)

    root_logger.info("="*80)
    root_logger.info(f"Reservation core logging initialized - {datetime.now()}")
    root_logger.info(f"Production Mode: {'ON' if production_mode else 'OFF'}")
    root_logger.info(f"Main log: {main_log_file}")
    if not production_mode:
        root_logger.info(f"Debug log: {debug_log_file}")
    root_logger.info(f"Error log: {error_log_file}")
    root_logger.info(f"Offline queue log: {queue_log_file}")
    root_logger.info("="*80)
    return log_dir


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name

    Args:
        name: Logger name (usually the component class name)

    Returns:
        logging.Logger instance
    """
    return logging.getLogger(name)

