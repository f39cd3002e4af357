"""
Logging setup for the pipeline.

Everything logs through module-level loggers; this module only attaches
handlers to the root logger: a colored console handler (colorlog) and an
optional plain-text run log file.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import colorlog


DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}


def _console_handler(format_string: str, color_output: bool) -> logging.Handler:
    if color_output:
        handler = colorlog.StreamHandler(sys.stdout)
        handler.setFormatter(colorlog.ColoredFormatter('%(log_color)s' + format_string, log_colors=LOG_COLORS))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(format_string))
    return handler


def _file_handler(log_file: str, format_string: str) -> logging.Handler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding='utf-8')
    handler.setFormatter(logging.Formatter(format_string))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console_output: bool = True,
    color_output: bool = True,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Replace the root logger's handlers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a run log file
        console_output: Log to stdout
        color_output: Color the console output by level
        format_string: Record format shared by all handlers

    Returns:
        The root logger

    Raises:
        ValueError: for an unknown level name
    """
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    format_string = format_string or DEFAULT_FORMAT
    handlers = []
    if console_output:
        handlers.append(_console_handler(format_string, color_output))
    if log_file:
        handlers.append(_file_handler(log_file, format_string))

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    for handler in handlers:
        handler.setLevel(numeric_level)
        root.addHandler(handler)
    return root


def setup_logging_from_config(config: Dict[str, Any], verbose: bool = False) -> logging.Logger:
    """
    Configure logging from the 'system.logging' and 'paths' config sections.

    With file_logging enabled each run gets its own
    <output_dir>/<logs_dir>/trainhog_<timestamp>.log.

    Args:
        config: Full configuration dictionary
        verbose: Force DEBUG level regardless of config
    """
    log_config = (config.get('system') or {}).get('logging') or {}
    paths = config.get('paths') or {}

    log_file = None
    if log_config.get('file_logging', False):
        logs_dir = Path(paths.get('output_dir', 'genfiles')) / paths.get('logs_dir', 'logs')
        log_file = str(logs_dir / f"trainhog_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")

    return setup_logging(
        level='DEBUG' if verbose else log_config.get('level', 'INFO'),
        log_file=log_file,
        console_output=log_config.get('console_logging', True),
        color_output=log_config.get('color_output', True),
        format_string=log_config.get('format')
    )
