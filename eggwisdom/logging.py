"""
Logging setup for the eggwisdom logger hierarchy.

Domain events (boost grants, burn failures, settlements, transfer failures)
attach structured fields with `log_context`:

    logger.info("Boost granted", extra=log_context(user=user, amount=amount))

Text output appends those fields as sorted key=value pairs; JSON output nests
them under "context". Wallet secrets are scrubbed from both the message and
the context unless redaction is switched off.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from dataclasses import dataclass, replace
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

if TYPE_CHECKING:
    from .config import LoggingConfig

LOG_FORMATS = ("text", "json")

_REDACTED = "[REDACTED]"

# Wallet credentials and service keys that must never reach a log sink.
_SECRET_KEY_FRAGMENTS = (
    "access_token",
    "api_key",
    "apikey",
    "auth_token",
    "authorization",
    "mnemonic",
    "password",
    "private_key",
    "projectid",
    "project_id",
    "secret",
    "seed_phrase",
    "signature",
)

# "private_key=abc", "Project-ID: abc", "mnemonic = abc" inside free text.
_RE_INLINE_SECRET = re.compile(
    r"(?P<key>api[_-]?key|private[_-]?key|project[_-]?id|seed[_-]?phrase|mnemonic|password|secret)"
    r"\s*[:=]\s*(?P<value>[^\s,;]+)",
    flags=re.IGNORECASE,
)


# =============================================================================
# Options
# =============================================================================

@dataclass(frozen=True)
class LoggingOptions:
    """Resolved handler settings for configure_logging."""
    level: str = "INFO"
    format: str = "text"
    file: Optional[str] = None
    redact: bool = True

    @classmethod
    def from_config(cls, config: "LoggingConfig") -> "LoggingOptions":
        return cls(level=config.level, format=config.format, file=config.file, redact=config.redact)

    def with_overrides(self, level: Optional[str] = None, format: Optional[str] = None) -> "LoggingOptions":
        """Apply command-line flags; None keeps the configured value."""
        changes: Dict[str, Any] = {}
        if level is not None:
            changes["level"] = level
        if format is not None:
            changes["format"] = format
        return replace(self, **changes)


# =============================================================================
# Structured Context
# =============================================================================

def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    # Amount, Ratio, enums: their str() is the canonical rendering.
    return str(value)


def log_context(**fields: Any) -> Dict[str, Dict[str, Any]]:
    """Build the `extra` mapping carrying structured fields for one record."""
    return {"context": {key: _plain(value) for key, value in fields.items()}}


def _render_pairs(context: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={context[key]}" for key in sorted(context))


# =============================================================================
# Formatters
# =============================================================================

class ContextFormatter(logging.Formatter):
    """Plain text formatter that appends the record's context as key=value pairs."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = getattr(record, "context", None)
        if isinstance(context, Mapping) and context:
            line = f"{line} | {_render_pairs(context)}"
        return line


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context is not None:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_formatter(fmt: str, *, with_time: bool) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    if with_time:
        return ContextFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    return ContextFormatter("%(levelname)s %(name)s: %(message)s")


# =============================================================================
# Redaction
# =============================================================================

def _is_secret_key(key: str) -> bool:
    lowered = key.lower().replace("-", "_")
    return any(fragment in lowered for fragment in _SECRET_KEY_FRAGMENTS)


def redact_text(text: str) -> str:
    return _RE_INLINE_SECRET.sub(lambda match: f"{match.group('key')}={_REDACTED}", text)


def redact_context(value: Any, max_depth: int = 4) -> Any:
    """
    Return a copy of `value` with secret-keyed entries replaced.

    Postconditions:
        - Mapping entries whose key names a secret become "[REDACTED]"
        - Strings are scrubbed of inline key=value secrets
        - Anything nested deeper than max_depth becomes "[REDACTED]"
    """
    if max_depth < 0:
        return _REDACTED
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, bytes):
        return _REDACTED
    if isinstance(value, Mapping):
        return {
            key: _REDACTED if isinstance(key, str) and _is_secret_key(key) else redact_context(item, max_depth - 1)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_context(item, max_depth - 1) for item in value]
    return value


class RedactionFilter(logging.Filter):
    """Handler filter scrubbing secrets from the message and context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_text(record.msg)
        context = getattr(record, "context", None)
        if isinstance(context, Mapping):
            record.context = redact_context(context)
        return True


# =============================================================================
# Setup
# =============================================================================

def configure_logging(options: LoggingOptions) -> None:
    """
    Configure the "eggwisdom" logger hierarchy.

    Preconditions:
        - options.format in LOG_FORMATS

    Postconditions:
        - Records go to stderr, plus a rotating file when options.file is set
        - Every handler redacts secrets unless options.redact is False
        - Repeated calls replace, not duplicate, handlers
    """
    fmt = options.format.strip().lower()
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Invalid log format: {options.format}")

    logger = logging.getLogger("eggwisdom")
    logger.setLevel(getattr(logging, options.level.strip().upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(_build_formatter(fmt, with_time=False))
    handlers: List[logging.Handler] = [stream_handler]

    if options.file:
        file_handler = RotatingFileHandler(options.file, maxBytes=10 * 1024 * 1024, backupCount=3)
        file_handler.setFormatter(_build_formatter(fmt, with_time=True))
        handlers.append(file_handler)

    for handler in handlers:
        if options.redact:
            handler.addFilter(RedactionFilter())
        logger.addHandler(handler)
