"""Apex class tools: list, inspect, create, update and delete"""
import logging
from typing import Optional

from sftooling.mcp.server import register_tool
from sftooling.services.salesforce import get_salesforce_clients
from sftooling.utils.validators import (
    ValidationError,
    validate_api_name,
    validate_limit,
    validate_record_id,
)

logger = logging.getLogger(__name__)


@register_tool
async def list_apex_classes(name_filter: Optional[str] = None, limit: int = 50) -> str:
    """List Apex classes in the organization with optional name filtering.

    Args:
        name_filter: Only classes whose name contains this text
        limit: Maximum number of classes to show (default: 50, max: 200)

    Returns:
        One entry per class with status, validity and last modified date
    """
    validate_limit(limit, 200)
    tooling = get_salesforce_clients().tooling
    classes = await tooling.get_apex_classes(name_filter)

    header = f"Found {len(classes)} Apex classes"
    if name_filter:
        header += f" matching '{name_filter}'"

    entries = [
        f"• {cls.get('Name')} ({cls.get('Id')})\n"
        f"  Status: {cls.get('Status')}, Valid: {cls.get('IsValid')}\n"
        f"  Modified: {cls.get('LastModifiedDate')}"
        for cls in classes[:limit]
    ]
    return f"{header}:\n\n" + "\n\n".join(entries)


@register_tool
async def get_apex_class(id: str) -> str:
    """Get detailed information about a specific Apex class including its source code.

    Args:
        id: The 15 or 18 character ID of the Apex class
    """
    validate_record_id(id)
    apex_class = await get_salesforce_clients().tooling.get_apex_class(id)

    return (
        f"Apex Class: {apex_class.get('Name')}\n"
        f"ID: {apex_class.get('Id')}\n"
        f"Status: {apex_class.get('Status')}\n"
        f"Valid: {apex_class.get('IsValid')}\n"
        f"API Version: {apex_class.get('ApiVersion')}\n"
        f"Namespace: {apex_class.get('NamespacePrefix') or 'None'}\n"
        f"Lines without comments: {apex_class.get('LengthWithoutComments')}\n"
        f"Last Modified: {apex_class.get('LastModifiedDate')}\n\n"
        f"Body:\n```apex\n{apex_class.get('Body')}\n```"
    )


@register_tool
async def create_apex_class(name: str, body: str) -> str:
    """Create a new Apex class.

    Args:
        name: Class name (max 40 characters)
        body: Full Apex source, e.g. "public class Foo {}"
    """
    validate_api_name(name, max_length=40)
    if not body:
        raise ValidationError("body cannot be empty")

    result = await get_salesforce_clients().tooling.create_apex_class(name, body)

    if result.get("success"):
        logger.info(f"Created Apex class {name} ({result.get('id')})")
        return f"Successfully created Apex class '{name}' with ID: {result.get('id')}"

    errors = "\n".join(f"• {error.get('message')}" for error in result.get("errors", []))
    return f"Failed to create Apex class '{name}':\n{errors}"


@register_tool
async def update_apex_class(id: str, body: str) -> str:
    """Update the source code of an existing Apex class.

    Args:
        id: The 15 or 18 character ID of the Apex class
        body: New Apex source
    """
    validate_record_id(id)
    if not body:
        raise ValidationError("body cannot be empty")

    await get_salesforce_clients().tooling.update_apex_class(id, body)
    return f"Successfully updated Apex class with ID: {id}"


@register_tool
async def delete_apex_class(id: str) -> str:
    """Delete an Apex class (use with caution).

    Args:
        id: The 15 or 18 character ID of the Apex class
    """
    validate_record_id(id)
    await get_salesforce_clients().tooling.delete_apex_class(id)
    logger.warning(f"Deleted Apex class {id}")
    return f"Successfully deleted Apex class with ID: {id}"
