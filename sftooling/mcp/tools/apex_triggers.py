"""Apex trigger and Visualforce page tools"""
import logging
from typing import Optional

from sftooling.mcp.server import register_tool
from sftooling.services.salesforce import get_salesforce_clients
from sftooling.utils.validators import validate_limit, validate_record_id

logger = logging.getLogger(__name__)


@register_tool
async def list_apex_triggers(name_filter: Optional[str] = None, limit: int = 50) -> str:
    """List Apex triggers in the organization with optional name filtering.

    Args:
        name_filter: Only triggers whose name contains this text
        limit: Maximum number of triggers to show (default: 50, max: 200)
    """
    validate_limit(limit, 200)
    triggers = await get_salesforce_clients().tooling.get_apex_triggers(name_filter)

    entries = [
        f"• {trigger.get('Name')} ({trigger.get('Id')})\n"
        f"  Object: {trigger.get('TableEnumOrId')}\n"
        f"  Status: {trigger.get('Status')}, Valid: {trigger.get('IsValid')}"
        for trigger in triggers[:limit]
    ]
    return f"Found {len(triggers)} Apex triggers:\n\n" + "\n\n".join(entries)


@register_tool
async def get_apex_trigger(id: str) -> str:
    """Get detailed information about a specific Apex trigger.

    Args:
        id: The 15 or 18 character ID of the trigger
    """
    validate_record_id(id)
    trigger = await get_salesforce_clients().tooling.get_apex_trigger(id)

    return (
        f"Trigger: {trigger.get('Name')}\n"
        f"Object: {trigger.get('TableEnumOrId')}\n"
        f"Status: {trigger.get('Status')}\n\n"
        f"Body:\n```apex\n{trigger.get('Body')}\n```"
    )


@register_tool
async def list_apex_pages(name_filter: Optional[str] = None, limit: int = 50) -> str:
    """List Visualforce pages.

    Args:
        name_filter: Only pages whose name contains this text
        limit: Maximum number of pages to show (default: 50, max: 200)
    """
    validate_limit(limit, 200)
    pages = await get_salesforce_clients().tooling.get_apex_pages(name_filter)

    entries = [
        f"• {page.get('Name')} ({page.get('Id')})\n  Label: {page.get('MasterLabel')}"
        for page in pages[:limit]
    ]
    return f"Found {len(pages)} Visualforce pages:\n\n" + "\n\n".join(entries)


@register_tool
async def get_apex_page(id: str) -> str:
    """Get detailed information about a Visualforce page including its markup.

    Args:
        id: The 15 or 18 character ID of the page
    """
    validate_record_id(id)
    page = await get_salesforce_clients().tooling.get_apex_page(id)

    return (
        f"Page: {page.get('Name')}\n"
        f"Label: {page.get('MasterLabel')}\n"
        f"Controller: {page.get('ControllerType')}\n\n"
        f"Markup:\n```html\n{page.get('Markup')}\n```"
    )
