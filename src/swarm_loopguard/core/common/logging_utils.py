"""
Logging utilities for swarm-loopguard.

This module provides:
- Environment tagging (test/prod) on every log record
- Redaction of API keys and bearer tokens from log records and persisted text
- One-shot configuration of stdlib logging and structlog for the hook process

All handlers write to stderr: stdout carries the hook response.
"""

import contextlib
import logging
import os
import re
import sys
from typing import Any, Literal

import structlog


def _is_running_under_pytest() -> bool:
    """Detect if we're running under pytest."""
    return "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST") is not None


def _get_environment_tag() -> str:
    """Get the environment tag for logging.

    Returns:
        'test' if running under pytest, 'prod' otherwise
    """
    return "test" if _is_running_under_pytest() else "prod"


class EnvironmentTaggingFilter(logging.Filter):
    """Logging filter that adds environment tags to log records."""

    def __init__(self) -> None:
        super().__init__()
        self._env_tag = _get_environment_tag()

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.env_tag = self._env_tag
        return True


class EnvironmentTaggingFormatter(logging.Formatter):
    """Logging formatter that includes environment tags."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: Literal["%", "{", "$"] = "%",
    ) -> None:
        if fmt is None:
            fmt = DEFAULT_LOG_FORMAT
        super().__init__(fmt, datefmt, style=style)


DEFAULT_LOG_FORMAT = (
    "%(asctime)s [%(levelname)-8s] [%(env_tag)s] %(name)s:%(lineno)d %(message)s"
)

# Regular expressions for redacting sensitive information
API_KEY_PATTERN = re.compile(r"(sk-|ak-)[a-zA-Z0-9_-]{20,}")
BEARER_TOKEN_PATTERN = re.compile(r"Bearer\s+([a-zA-Z0-9._~+/-]+=*)")
GITHUB_TOKEN_PATTERN = re.compile(r"\bgh[pousr]_[A-Za-z0-9]{30,}\b")


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger.

    Args:
        name: Optional logger name

    Returns:
        A structured logger
    """
    return structlog.get_logger(name)  # type: ignore


def redact(value: str, mask: str = "***") -> str:
    """Redact a sensitive value, keeping the first and last two characters."""
    if not value:
        return value

    if len(value) > 6:
        return f"{value[0:2]}{mask}{value[-2:]}"
    return mask


def redact_text(text: str, mask: str = "***") -> str:
    """Mask API keys and bearer tokens embedded in free text.

    Prompt excerpts are persisted to disk, so they pass through here first.
    """
    if not text:
        return text

    text = BEARER_TOKEN_PATTERN.sub(f"Bearer {mask}", text)
    text = API_KEY_PATTERN.sub(mask, text)
    return GITHUB_TOKEN_PATTERN.sub(mask, text)


class ApiKeyRedactionFilter(logging.Filter):
    """Logging filter that redacts known API keys from log records.

    Sanitizes `record.msg` and `record.args` (strings or containers of
    strings), replacing explicit keys and generic token patterns with a mask.
    """

    def __init__(
        self, api_keys: list[str] | set[str] | None = None, mask: str = "***"
    ) -> None:
        super().__init__()
        self.mask = mask
        keys = {k for k in (api_keys or []) if k}
        self.patterns: list[re.Pattern[str]] = []
        if keys:
            # Longest first so overlapping keys are fully masked
            escaped = sorted((re.escape(k) for k in keys), key=len, reverse=True)
            self.patterns.append(re.compile("|".join(escaped)))

        self.patterns.extend(
            [API_KEY_PATTERN, BEARER_TOKEN_PATTERN, GITHUB_TOKEN_PATTERN]
        )

    def _sanitize(self, obj: object) -> object:
        """Recursively sanitize strings inside common containers."""
        if isinstance(obj, str):
            s = obj
            for pat in self.patterns:
                if pat is BEARER_TOKEN_PATTERN:
                    s = pat.sub(f"Bearer {self.mask}", s)
                else:
                    s = pat.sub(self.mask, s)
            return s
        if isinstance(obj, dict):
            return {k: self._sanitize(v) for k, v in obj.items()}
        if isinstance(obj, list | tuple):
            return type(obj)(self._sanitize(v) for v in obj)
        return obj

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            if isinstance(record.msg, str):
                record.msg = self._sanitize(record.msg)  # type: ignore[assignment]

            if record.args:
                if isinstance(record.args, dict):
                    record.args = self._sanitize(record.args)  # type: ignore[assignment]
                elif isinstance(record.args, tuple):
                    record.args = tuple(self._sanitize(a) for a in record.args)
        except Exception:
            # Never let logging filtering raise
            return True
        return True


def _configure_structlog(json_logs: bool) -> None:
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(
    level: int = logging.WARNING,
    log_file: str | None = None,
    *,
    json_logs: bool = False,
    api_keys: list[str] | None = None,
) -> None:
    """Configure stdlib logging and structlog for the hook process.

    Args:
        level: Logging level
        log_file: Optional log file path
        json_logs: Render structlog events as JSON instead of console text
        api_keys: Explicit secrets to mask in addition to the generic patterns
    """
    formatter = EnvironmentTaggingFormatter()
    env_filter = EnvironmentTaggingFilter()
    redaction_filter = ApiKeyRedactionFilter(api_keys)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        with contextlib.suppress(OSError):
            os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(env_filter)
        handler.addFilter(redaction_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    _configure_structlog(json_logs)
