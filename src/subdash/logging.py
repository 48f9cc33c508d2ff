"""ABOUTME: structlog and stdlib logging wiring for the CLI
ABOUTME: Log lines go to stderr so they never mix with command output on stdout"""

import logging.config

import structlog

from subdash import config

timestamper = structlog.processors.TimeStamper(fmt="iso")

# records from third party loggers get the same level and timestamp keys as ours
foreign_chain = [
    structlog.stdlib.add_log_level,
    timestamper,
]

JSON_HANDLER = "json_stderr"
CONSOLE_HANDLER = "console_stderr"
active_handler = CONSOLE_HANDLER if config.is_development() else JSON_HANDLER


def _formatter(renderer) -> dict:
    return {
        "()": structlog.stdlib.ProcessorFormatter,
        "processor": renderer,
        "foreign_pre_chain": foreign_chain,
    }


def _stderr_handler(formatter: str, level: str) -> dict:
    return {
        "level": level,
        "class": "logging.StreamHandler",
        "stream": "ext://sys.stderr",
        "formatter": formatter,
    }


logging.config.dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": _formatter(structlog.dev.ConsoleRenderer(colors=False)),
        "json": _formatter(structlog.processors.JSONRenderer()),
    },
    "handlers": {
        JSON_HANDLER: _stderr_handler("json", "INFO"),
        CONSOLE_HANDLER: _stderr_handler("console", "DEBUG"),
    },
    "loggers": {
        "": {
            "handlers": [active_handler],
            "level": "INFO",
        },
        # aiosqlite logs every statement at DEBUG
        "aiosqlite": {
            "level": "WARNING",
        },
    },
})

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


def logging_setup(log_level: int = logging.INFO) -> None:
    """Apply LOG_LEVEL to the root logger and its handler, and DB_ECHO to SQLAlchemy."""
    handler = logging.getHandlerByName(active_handler)
    assert handler is not None
    handler.setLevel(log_level)
    logging.getLogger().setLevel(log_level)

    if config.bool_environ_get("DB_ECHO"):
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
