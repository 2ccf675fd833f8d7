"""Utility functions for MCP tools - error handling and response text"""
import json
import logging
from typing import Any, Dict, List, Optional

from sftooling.services.exceptions import (
    AuthorizationError,
    ConfigurationError,
    TransportError,
)
from sftooling.services.http import extract_error_code

logger = logging.getLogger(__name__)

# Token limits
TOKEN_LIMIT = 25000
TOKEN_WARNING_THRESHOLD = 20000  # 80% of limit


class MCPError:
    """Enhanced error handling with troubleshooting hints"""

    # Common error patterns and their solutions
    ERROR_PATTERNS = {
        "INVALID_SESSION_ID": {
            "hint": "Your session has expired or is invalid.",
            "suggestions": [
                "Re-authenticate with `sf org login web` or check SF_* credentials",
                "Retry the call; an expired cached token is replaced on the next attempt",
            ]
        },
        "MALFORMED_QUERY": {
            "hint": "SOQL query syntax error.",
            "suggestions": [
                "Remove 'AS' keyword from field aliases",
                "Verify field names and relationships are correct",
            ]
        },
        "INVALID_FIELD": {
            "hint": "Field does not exist on this object or is not accessible.",
            "suggestions": [
                "Verify the field API name is correct (check spelling and __c suffix)",
                "Check field-level security permissions",
            ]
        },
        "INVALID_TYPE": {
            "hint": "Object type not found or not accessible.",
            "suggestions": [
                "Verify the object API name is correct",
                "Tooling-only objects (ApexClass, ApexLog, ...) must be queried through the Tooling API",
            ]
        },
        "NOT_FOUND": {
            "hint": "Requested resource not found.",
            "suggestions": [
                "Verify the ID or name is correct",
                "Check if the resource exists in this org",
            ]
        },
        "INSUFFICIENT_ACCESS": {
            "hint": "You don't have permission to perform this operation.",
            "suggestions": [
                "Check your profile and permission sets",
                "Author Apex and View All Data are needed for most Tooling operations",
            ]
        },
        "REQUEST_LIMIT_EXCEEDED": {
            "hint": "API request limit exceeded.",
            "suggestions": [
                "Wait and retry later",
                "Check org limits with get_org_limits()",
            ]
        },
    }

    @classmethod
    def match(cls, error: Exception) -> Optional[Dict[str, Any]]:
        """Find the hint for an error by Salesforce error code, then by message text"""
        code = extract_error_code(error.body) if isinstance(error, TransportError) else None
        if code and code in cls.ERROR_PATTERNS:
            return {"error_type": code, **cls.ERROR_PATTERNS[code]}

        message = str(error).lower()
        for error_code, info in cls.ERROR_PATTERNS.items():
            if error_code.lower() in message:
                return {"error_type": error_code, **info}
        return None

    @classmethod
    def enhance_error(cls, error: Exception, context: Optional[str] = None) -> str:
        """Render an exception as text with troubleshooting hints

        Args:
            error: The exception raised by the operation
            context: Tool or operation name

        Returns:
            Multi-line error text
        """
        prefix = f"Error in {context}" if context else "Error"
        lines = [f"{prefix}: {error}"]

        if isinstance(error, ConfigurationError):
            return lines[0]

        info = cls.match(error)
        if info is None and isinstance(error, AuthorizationError):
            info = cls.ERROR_PATTERNS["INVALID_SESSION_ID"]

        if info:
            lines.append(f"Hint: {info['hint']}")
            lines.extend(f"  - {suggestion}" for suggestion in info["suggestions"])

        return "\n".join(lines)


class ResponseSizeManager:
    """Manage response sizes and provide warnings"""

    @staticmethod
    def estimate_token_count(text: str) -> int:
        """Rough estimation: 1 token ≈ 4 characters"""
        return len(text) // 4

    @staticmethod
    def check_text_size(text: str) -> str:
        """Append a size warning when the text approaches the token limit"""
        estimated_tokens = ResponseSizeManager.estimate_token_count(text)
        if estimated_tokens <= TOKEN_WARNING_THRESHOLD:
            return text

        logger.warning(
            f"Response size warning: {estimated_tokens} tokens "
            f"(threshold: {TOKEN_WARNING_THRESHOLD}, limit: {TOKEN_LIMIT})"
        )
        return (
            f"{text}\n\n[Warning: response is about {estimated_tokens} tokens "
            f"(limit {TOKEN_LIMIT}). Use a LIMIT clause, a name filter or fewer fields.]"
        )


def format_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def strip_attributes(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop the ``attributes`` metadata Salesforce adds to every record"""
    cleaned = []
    for record in records:
        record = {key: value for key, value in record.items() if key != "attributes"}
        for key, value in record.items():
            if isinstance(value, dict) and "attributes" in value:
                record[key] = {k: v for k, v in value.items() if k != "attributes"}
        cleaned.append(record)
    return cleaned


def related_name(record: Dict[str, Any], relationship: str) -> Optional[str]:
    """``record['CreatedBy']['Name']`` without tripping over nulls"""
    related = record.get(relationship)
    if isinstance(related, dict):
        return related.get("Name")
    return None


def format_error_response(error: Exception, context: Optional[str] = None) -> str:
    """Format an error as text with troubleshooting hints

    Args:
        error: Exception object
        context: Additional context about the operation

    Returns:
        Error text for the assistant
    """
    return MCPError.enhance_error(error, context)
