import logging
import time

from pythonjsonlogger import jsonlogger

from .config import Settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(timestamp)s %(levelname)s %(service)s %(environment)s %(name)s %(message)s"

# Loggers from the Firebase/Google client stack that are too chatty at INFO
NOISY_LOGGERS = ('google', 'google.auth', 'urllib3', 'grpc', 'httpx')


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps every record with the service and environment."""

    def __init__(self, *args, service: str, environment: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = service
        self.environment = environment

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['service'] = self.service
        log_record['environment'] = self.environment
        log_record['timestamp'] = time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created))


def setup_logging(settings: Settings) -> None:
    """Configure the root logger for the application."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    if settings.log_json:
        handler.setFormatter(ServiceJsonFormatter(
            JSON_FORMAT,
            service=settings.service_name,
            environment=settings.environment
        ))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
