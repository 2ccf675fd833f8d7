"""Org management tools: org info and queryable sObjects"""
import logging
from typing import Optional

from sftooling.mcp.server import register_tool
from sftooling.services.salesforce import get_salesforce_clients
from sftooling.utils.validators import soql_like, validate_limit

logger = logging.getLogger(__name__)


@register_tool
async def get_org_info() -> str:
    """Get organization information (name, edition, instance, sandbox flag)."""
    org = await get_salesforce_clients().rest.get_org_info()
    if org is None:
        return "Organization record not visible to the current user"

    return (
        f"Organization: {org.get('Name')}\n"
        f"Type: {org.get('OrganizationType')}\n"
        f"Instance: {org.get('InstanceName')}\n"
        f"Sandbox: {'Yes' if org.get('IsSandbox') else 'No'}"
    )


@register_tool
async def list_sobjects(name_filter: Optional[str] = None, limit: int = 50) -> str:
    """List queryable sObjects from EntityDefinition.

    Args:
        name_filter: Only objects whose API name contains this text
        limit: Maximum number of objects (default: 50, max: 100)
    """
    validate_limit(limit, 100)

    soql = "SELECT QualifiedApiName, Label, IsCustom FROM EntityDefinition WHERE IsQueryable = true"
    if name_filter:
        soql += f" AND QualifiedApiName LIKE '%{soql_like(name_filter)}%'"
    soql += f" ORDER BY QualifiedApiName LIMIT {limit}"

    result = await get_salesforce_clients().tooling.query(soql)
    records = result.get("records", [])

    lines = [
        f"• {obj.get('QualifiedApiName')} - {obj.get('Label')}{' (Custom)' if obj.get('IsCustom') else ''}"
        for obj in records
    ]
    return f"Available SObjects ({len(records)}):\n\n" + "\n".join(lines)
