import logging.config
from pathlib import Path

from app.config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 3


def configure_logging(config: Settings) -> None:
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        }
    }
    if config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "default",
            "filename": config.log_file,
            "maxBytes": MAX_LOG_BYTES,
            "backupCount": LOG_BACKUPS,
            "encoding": "utf-8",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": handlers,
            "root": {"level": config.log_level, "handlers": list(handlers)},
            # kafka-python is chatty at INFO about connection state.
            "loggers": {"kafka": {"level": "WARNING"}},
        }
    )
