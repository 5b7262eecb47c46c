"""
Logging configuration for the source console
"""
import logging

import structlog


def configure_app_logging(verbose: bool = False):
    """Configure application logging."""
    log_level = logging.DEBUG if verbose else logging.INFO

    app_loggers = [
        'console_core',
        'source_console',
    ]

    for logger_name in app_loggers:
        logging.getLogger(logger_name).setLevel(log_level)

    # Keep the HTTP client quiet unless debugging
    logging.getLogger('httpx').setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Route structlog events through the stdlib handlers configured by the caller
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
