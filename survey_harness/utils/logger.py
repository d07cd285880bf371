import logging
import os
from typing import Optional

import structlog


def _level(name: Optional[str]) -> int:
    # Per-request lines are debug; test runs stay at INFO unless LOGGING_LEVEL says otherwise
    return logging.getLevelNamesMapping().get((name or "INFO").upper(), logging.INFO)


def configure_logging(level: Optional[str] = None, env_mode: Optional[str] = None) -> None:
    """
    Configure structlog for harness and test output.

    Console rendering for local/staging runs, one JSON object per line
    elsewhere (CI). Arguments fall back to LOGGING_LEVEL and ENV_MODE.
    """
    env_mode = (env_mode or os.getenv("ENV_MODE", "LOCAL")).lower()

    # dict_tracebacks works with JSONRenderer, format_exc_info works with ConsoleRenderer
    if env_mode in ("local", "staging"):
        exception_processor = structlog.processors.format_exc_info
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        exception_processor = structlog.processors.dict_tracebacks
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            exception_processor,
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                }
            ),
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level(level or os.getenv("LOGGING_LEVEL"))),
        cache_logger_on_first_use=False,
    )


configure_logging()

logger: structlog.stdlib.BoundLogger = structlog.get_logger("survey_harness")
