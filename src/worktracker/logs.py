import logging
import os
import sys
from pathlib import Path

def _log_dir() -> Path:
    env_dir = os.getenv('WORKTRACKER_LOG_DIR', '')
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".local" / "share" / "worktracker" / "logs"

def setup_logging():
    """Set up logging configuration for worktracker package with environment-based levels."""
    # Determine log level from environment
    env_level = os.getenv('WORKTRACKER_LOG_LEVEL', '').upper()
    is_debug = os.getenv('WORKTRACKER_DEBUG', '').lower() in ('1', 'true', 'yes')

    # Default: warnings and errors only
    if is_debug:
        level = logging.DEBUG
    elif env_level:
        level = getattr(logging, env_level, logging.WARNING)
    else:
        level = logging.WARNING

    log_format = '[%(asctime)s] %(levelname)-8s [%(name)s:%(funcName)s:%(lineno)d] %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'

    detailed_formatter = logging.Formatter(log_format, date_format)
    console_formatter = logging.Formatter(
        '%(levelname)-8s [%(name)s] %(message)s' if is_debug
        else '%(levelname)s: %(message)s'
    )

    # Console handler (respects environment level); stdout is reserved for command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(console_formatter)
    console_handler.setLevel(level)

    logger = logging.getLogger('worktracker')
    logger.setLevel(logging.DEBUG)  # Logger accepts all, handlers filter
    logger.handlers.clear()
    logger.addHandler(console_handler)
    logger.propagate = False

    # File handler (always detailed)
    log_dir = None
    try:
        log_dir = _log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "worktracker.log", encoding="utf-8")
    except (OSError, RuntimeError) as e:
        logger.warning(f"File logging disabled, cannot use log directory {log_dir}: {e}")
    else:
        file_handler.setFormatter(detailed_formatter)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    return logger

# Initialize logging when package is imported
setup_logging()

def get_logger(name: str = None):
    """Get a logger instance for a specific module."""
    if name:
        return logging.getLogger(f'worktracker.{name}')
    return logging.getLogger('worktracker')
