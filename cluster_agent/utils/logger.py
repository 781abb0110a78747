"""
Logger setup module for the cluster agent.
Provides functions to configure logging based on external settings.
"""
import os
import logging
import logging.handlers
import tempfile
from typing import Optional, Dict, Tuple

ROOT_LOGGER_NAME = 'cluster_agent'
DEFAULT_CONSOLE_LEVEL_NAME = 'WARNING'
DEFAULT_FILE_LEVEL_NAME = 'DEBUG'
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_loggers: Dict[str, logging.Logger] = {}


def _get_log_level(level_name: str, default_level: int = logging.INFO) -> int:
    """
    Convert log level string to logging level constant.

    :param level_name: Name of the log level (e.g., 'DEBUG')
    :type level_name: str
    :param default_level: Default level to use if level_name is invalid
    :type default_level: int
    :return: The corresponding logging level constant
    :rtype: int
    """
    level_name_upper = str(level_name).upper()
    level = logging.getLevelName(level_name_upper)
    if isinstance(level, int):
        return level
    else:
        logging.warning(f"Invalid log level name '{level_name}'. Using default level {logging.getLevelName(default_level)}.")
        return default_level


def _check_directory_writable(directory_path: str) -> Tuple[bool, str]:
    """
    Check if a directory exists and is writable by the current process.

    :param directory_path: Path to the directory to check
    :type directory_path: str
    :return: Tuple (is_writable, message)
    :rtype: Tuple[bool, str]
    """
    if not directory_path:
        return False, "Directory path is empty"

    if not os.path.exists(directory_path):
        try:
            os.makedirs(directory_path, exist_ok=True)
        except OSError as e:
            return False, f"Error creating directory {directory_path}: {e}"

    if not os.path.isdir(directory_path):
        return False, f"{directory_path} exists but is not a directory"

    if not os.access(directory_path, os.W_OK):
        return False, f"Permission denied writing to directory {directory_path}"
    return True, f"Directory {directory_path} is writable"


def _get_fallback_log_directory() -> str:
    """
    Get a fallback directory for logs under the system temp directory.

    :return: Path to a fallback directory for logging
    :rtype: str
    """
    return os.path.join(tempfile.gettempdir(), "cluster-agent", "logs")


def _resolve_log_file_path(logger: logging.Logger, log_file_path: str) -> Optional[str]:
    """
    Picks a writable location for the log file, falling back to the temp directory.
    """
    log_dir = os.path.dirname(log_file_path)
    if not log_dir:
        log_dir = os.getcwd()
        log_file_path = os.path.join(log_dir, log_file_path)

    is_writable, msg = _check_directory_writable(log_dir)
    if is_writable:
        return log_file_path

    fallback_dir = _get_fallback_log_directory()
    fallback_path = os.path.join(fallback_dir, os.path.basename(log_file_path))
    logger.warning(f"Cannot use specified log directory: {msg}. Falling back to {fallback_path}")

    is_writable, msg = _check_directory_writable(fallback_dir)
    if not is_writable:
        logger.error(f"Cannot use fallback log directory either: {msg}. File logging will be disabled.")
        return None
    return fallback_path


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    log_format: str = DEFAULT_LOG_FORMAT,
    console_level_name: str = DEFAULT_CONSOLE_LEVEL_NAME,
    file_level_name: str = DEFAULT_FILE_LEVEL_NAME,
    log_file_path: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5
) -> Tuple[logging.Logger, bool]:
    """
    Sets up and configures a logger instance.

    Unlike :func:`get_logger`, calling this again for the same name replaces
    the existing handlers, so the CLI can reconfigure the package logger once
    the configuration file has been read.

    :param name: The name for the logger
    :type name: str
    :param log_format: The format string for log messages
    :type log_format: str
    :param console_level_name: Logging level for console output
    :type console_level_name: str
    :param file_level_name: Logging level for file output
    :type file_level_name: str
    :param log_file_path: Path to the log file. If None, file logging is disabled
    :type log_file_path: Optional[str]
    :param max_bytes: Maximum size of the log file before rotation
    :type max_bytes: int
    :param backup_count: Number of backup log files to keep
    :type backup_count: int
    :return: The configured logger and whether file logging was enabled
    :rtype: Tuple[logging.Logger, bool]
    """
    logger = logging.getLogger(name)
    console_level = _get_log_level(console_level_name, logging.WARNING)
    file_level = _get_log_level(file_level_name, logging.DEBUG)
    lowest_level = min(console_level, file_level) if log_file_path else console_level
    logger.setLevel(lowest_level)

    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)

    # Console output goes to stderr so it never interleaves with command output
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_logging_success = False
    if log_file_path:
        resolved_path = _resolve_log_file_path(logger, log_file_path)
        try:
            if resolved_path:
                file_handler = logging.handlers.RotatingFileHandler(
                    resolved_path,
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                    encoding='utf-8'
                )
                file_handler.setLevel(file_level)
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)

                logger.info(f"File logging enabled to: {resolved_path}")
                file_logging_success = True
        except OSError as e:
            logger.error(f"Failed to set up file logging to {resolved_path}: {e}")

        if not file_logging_success:
            logger.warning("File logging requested but could not be set up. Logging to console only.")

    _loggers[name] = logger
    return logger, file_logging_success


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance by name.

    Names outside the package hierarchy are placed under it, so every module
    logger shares the handlers installed on the package logger. The package
    logger itself is set up with default settings on first use.

    :param name: The name of the logger to retrieve
    :type name: str
    :return: The logger instance
    :rtype: logging.Logger
    """
    if ROOT_LOGGER_NAME not in _loggers:
        setup_logger(ROOT_LOGGER_NAME)

    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + '.'):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
