"""
Logging setup shared by the whole service.

Every record carries the correlation id of the request that produced it
(``-`` outside of a request).
"""
import logging
import sys
from contextvars import ContextVar

from visaforge.core.config import settings

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = correlation_id_var.get()
        return True


def setup_logging(level: str = "INFO") -> logging.Logger:
    root = logging.getLogger()
    if not any(getattr(h, "_visaforge", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(CorrelationIdFilter())
        handler._visaforge = True
        root.addHandler(handler)
    root.setLevel(level.upper())
    # boto / httpx are chatty at INFO
    for noisy in ("botocore", "boto3", "urllib3", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return logging.getLogger("visaforge")


logger = setup_logging(settings.LOG_LEVEL)
