"""Structured logging keyed by tool call

Every MCP tool invocation gets a correlation ID and its tool name in context
variables, so log lines from the auth and HTTP layers carry both without
passing them around. Logs always go to stderr: stdout carries the MCP stdio
transport.
"""
import contextvars
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)
tool_name_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'tool_name', default=None
)

# Attributes passed through ``extra=`` that the JSON formatter keeps
EXTRA_FIELDS = ('duration_ms', 'success', 'strategy', 'api', 'status_code')

TEXT_FORMAT = '%(asctime)s %(levelname)-7s %(name)s [%(correlation_id)s %(tool_name)s] %(message)s'


class ToolContextFilter(logging.Filter):
    """Stamp records with the current tool call's correlation ID and tool name"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or '-'
        if not hasattr(record, 'tool_name'):
            record.tool_name = tool_name_var.get() or '-'
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'correlation_id': getattr(record, 'correlation_id', None),
            'tool_name': getattr(record, 'tool_name', None),
        }
        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def start_tool_call(tool_name: str) -> str:
    """Open a new logging context for a tool call and return its correlation ID"""
    correlation_id = uuid.uuid4().hex[:12]
    correlation_id_var.set(correlation_id)
    tool_name_var.set(tool_name)
    return correlation_id


def current_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def mask_secret(value: Optional[str], visible: int = 6) -> str:
    """Render a token or secret for logs without disclosing it."""
    if not value:
        return "<none>"
    if len(value) <= visible * 2:
        return "***"
    return value[:visible] + "..."


def setup_structured_logging(level: str = "INFO", use_json: bool = False) -> None:
    """
    Route all logging to stderr, as text or JSON lines.

    Args:
        level: Root log level name (DEBUG, INFO, WARNING, ERROR)
        use_json: Emit JSON objects instead of the text format
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if use_json else logging.Formatter(TEXT_FORMAT))
    handler.addFilter(ToolContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # httpx logs every request URL at INFO, which includes SOQL text
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def log_tool_execution(
    logger: logging.Logger,
    tool_name: str,
    duration_ms: float,
    success: bool,
    error: Optional[str] = None
) -> None:
    """Write the one summary line every tool call ends with"""
    message = f"{tool_name} {'ok' if success else 'failed'} in {duration_ms:.1f}ms"
    if error:
        message += f": {error}"
    logger.log(
        logging.INFO if success else logging.ERROR,
        message,
        extra={'duration_ms': round(duration_ms, 2), 'success': success},
    )
