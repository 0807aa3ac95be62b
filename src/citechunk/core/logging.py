import os
import sys
from typing import Any, Literal

import structlog

LogFormat = Literal["json", "plain", "auto"]


def _should_use_json_format() -> bool:
    """Determine if JSON format should be used based on environment."""
    ci_vars = ["CI", "CONTINUOUS_INTEGRATION", "GITHUB_ACTIONS", "JENKINS_URL"]
    if any(os.environ.get(var) for var in ci_vars):
        return True

    # Redirected stderr means a machine is reading the log stream
    return bool(not sys.stderr.isatty())


def _renderer(use_json: bool) -> Any:
    if use_json:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_logging(format_type: LogFormat = "auto") -> None:
    """
    Setup structured logging for chunking runs.

    Logs go to stderr so chunk records streamed on stdout stay clean. Values
    bound with ``bind_run_context`` (profile, worker count) are merged into
    every event logged while the run is active.

    Args:
        format_type: "json" for JSON output, "plain" for human-readable,
                "auto" to auto-detect based on TTY/CI.
    """
    use_json = format_type == "json" or (format_type == "auto" and _should_use_json_format())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _renderer(use_json),
        ],
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def bind_run_context(**fields: Any) -> Any:
    """Context manager binding run-level fields to every log event inside it."""
    return structlog.contextvars.bound_contextvars(**fields)


# Lazy proxy: picks up whatever setup_logging configured at call time
log = structlog.get_logger(component="citechunk")
