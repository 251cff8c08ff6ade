import logging
import os
import time
from logging.handlers import RotatingFileHandler

from app.core.config import GetEnv, ReadIntEnv


class LocalTimeFormatter(logging.Formatter):
    converter = time.localtime


def setup_logging() -> None:
    log_level = (GetEnv("LOG_LEVEL", "INFO") or "INFO").upper()
    # An empty LOG_FILE_PATH keeps logging on the console only.
    log_file_path = os.getenv("LOG_FILE_PATH", "/app/logs/backend.log").strip()
    max_bytes = ReadIntEnv("LOG_MAX_BYTES", 5000000)
    backup_count = ReadIntEnv("LOG_BACKUP_COUNT", 5)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    formatter = LocalTimeFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file_path, maxBytes=max_bytes, backupCount=backup_count
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.getLogger("uvicorn.access").handlers.clear()
