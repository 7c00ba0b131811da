import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from src.chatstore.config import LOGS_DIR


class ColorFormatter(logging.Formatter):
    """A logging formatter that adds color to console output."""

    GREY = "\x1b[38;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    CYAN = "\x1b[36;20m"
    RESET = "\x1b[0m"

    BASE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s:%(funcName)s:%(lineno)d - %(message)s"

    # Define the format for each log level
    FORMATS = {
        logging.DEBUG: f"{CYAN}{BASE_FORMAT}{RESET}",
        logging.INFO: f"{GREY}{BASE_FORMAT}{RESET}",
        logging.WARNING: f"{YELLOW}{BASE_FORMAT}{RESET}",
        logging.ERROR: f"{RED}{BASE_FORMAT}{RESET}",
        logging.CRITICAL: f"{BOLD_RED}{BASE_FORMAT}{RESET}",
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, self.BASE_FORMAT)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


class LoggingService:
    """
    A service to configure centralized logging for the application.
    """
    LOG_FILE = "chatstore.log"
    _HANDLER_MARKER = "_chatstore_handler"

    @staticmethod
    def setup_logging(level: Union[int, str] = logging.INFO, log_dir: Optional[Path] = None) -> Path:
        """
        Configures the root logger for file and console output.
        Calling it again replaces the handlers it installed earlier.

        Args:
            level: Console log level; the file always receives DEBUG.
            log_dir: Directory for the rotating log file (defaults to LOGS_DIR).

        Returns:
            Path of the log file.
        """
        target_dir = Path(log_dir) if log_dir else LOGS_DIR
        target_dir.mkdir(parents=True, exist_ok=True)
        log_file_path = target_dir / LoggingService.LOG_FILE

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        for handler in list(root_logger.handlers):
            if getattr(handler, LoggingService._HANDLER_MARKER, False):
                root_logger.removeHandler(handler)
                handler.close()

        # Create console handler with color formatter
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(ColorFormatter())

        # Create rotating file handler
        file_handler = RotatingFileHandler(
            log_file_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(ColorFormatter.BASE_FORMAT))

        for handler in (console_handler, file_handler):
            setattr(handler, LoggingService._HANDLER_MARKER, True)
            root_logger.addHandler(handler)

        logging.info("Logging service initialized.")
        return log_file_path
