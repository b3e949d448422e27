import logging
import logging.config
import re

from .request_id import get_request_id

LOG_FORMAT = "%(levelname)s %(name)s request_id=%(request_id)s %(message)s"

# Applied in order. Chat text is user data and never reaches the logs.
_REDACTIONS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r'(?i)("content"\s*:\s*")(?:[^"\\]|\\.)*(")'), r"\1[redacted]\2"),
    (re.compile(r"(?i)\bbearer\s+[A-Za-z0-9\-._~+/]+=*"), "Bearer [redacted]"),
    (
        re.compile(r"(?i)\b(authorization|token|secret|api_key|apikey|password)\b\s*[:=]\s*([^\s,;]+)"),
        r"\1=[redacted]",
    ),
)


def redact_text(text: str) -> str:
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


class RedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_text(record.getMessage())
        record.args = ()
        return True


def build_logging_config(log_level: str) -> dict:
    level = log_level.upper()
    # uvicorn installs its own handlers unless it is routed here explicitly.
    server_loggers = {
        name: {"handlers": ["console"], "level": level, "propagate": False}
        for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_id": {"()": RequestIdFilter},
            "redact": {"()": RedactionFilter},
        },
        "formatters": {"standard": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": ["request_id", "redact"],
                "level": level,
            }
        },
        "loggers": server_loggers,
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(log_level: str) -> None:
    logging.config.dictConfig(build_logging_config(log_level))
