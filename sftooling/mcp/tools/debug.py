"""Debug log tools"""
import logging

from sftooling.mcp.server import register_tool
from sftooling.mcp.tools.utils import ResponseSizeManager, related_name
from sftooling.services.salesforce import get_salesforce_clients
from sftooling.utils.validators import validate_limit, validate_record_id

logger = logging.getLogger(__name__)


@register_tool
async def get_debug_logs(limit: int = 10) -> str:
    """Get recent debug logs, newest first.

    Args:
        limit: Number of logs to list (default: 10, max: 100)
    """
    validate_limit(limit, 100)
    logs = await get_salesforce_clients().tooling.get_debug_logs(limit)

    lines = [
        f"• {log.get('Id')} - {log.get('Operation')} ({log.get('DurationMilliseconds')}ms)"
        f" by {related_name(log, 'LogUser') or 'unknown'}, {log.get('Status')}"
        for log in logs
    ]
    return f"Recent Debug Logs ({len(logs)}):\n\n" + "\n".join(lines)


@register_tool
async def get_debug_log_body(log_id: str) -> str:
    """Download the raw text of a debug log.

    Args:
        log_id: ApexLog record ID
    """
    validate_record_id(log_id)
    body = await get_salesforce_clients().tooling.get_debug_log_body(log_id)
    return ResponseSizeManager.check_text_size(f"Debug Log {log_id}:\n\n{body or ''}")
