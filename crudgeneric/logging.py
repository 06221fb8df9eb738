import logging
import logging.config

from crudgeneric.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root and library loggers.

    Safe to call more than once; later calls replace the handler config.
    """
    resolved = (level or settings.log_level).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                }
            },
            "loggers": {
                "crudgeneric": {
                    "handlers": ["console"],
                    "level": resolved,
                    "propagate": False,
                }
            },
            "root": {"handlers": ["console"], "level": "WARNING"},
        }
    )
