# segmenter/LoggingSetup.py
import sys
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from .ConfigLoader import DEFAULT_CONFIG

# Engine, transcriber and capture callbacks all log, so the thread is part of every line
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] [%(threadName)s] %(message)s'


def setup_logging(logs_dir: Path,
                  log_config: Optional[Dict[str, Any]] = None,
                  verbose: bool = False,
                  console: bool = True) -> Path:
    """
    Route root logging to a rotating file in logs_dir and, optionally, stdout.

    File name, level, rotation and the third-party loggers held at WARNING
    come from the 'logging' config section. The -v flag overrides the level
    with DEBUG. Download libraries are quieted even in verbose mode so a
    model fetch does not bury the per-window engine traces.

    Args:
        logs_dir: Directory to store log files
        log_config: The 'logging' section of the configuration (defaults if None)
        verbose: Force DEBUG level
        console: Also log to stdout

    Returns:
        Path of the active log file
    """
    settings = log_config if log_config is not None else DEFAULT_CONFIG['logging']
    level = logging.DEBUG if verbose else getattr(logging, settings['level'])

    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / settings['file']

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [RotatingFileHandler(
        log_file,
        maxBytes=settings['max_bytes'],
        backupCount=settings['backup_count'],
        encoding='utf-8'
    )]
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in settings['quiet_loggers']:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(f"Logging to {log_file} at {logging.getLevelName(level)}")
    return log_file
