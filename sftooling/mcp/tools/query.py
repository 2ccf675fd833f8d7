"""SOQL query tools for the Tooling and Data APIs"""
import logging
import time

from sftooling.mcp.server import register_tool
from sftooling.mcp.tools.utils import ResponseSizeManager, format_json, strip_attributes
from sftooling.services.routing import is_tooling_query
from sftooling.services.salesforce import get_salesforce_clients
from sftooling.utils.validators import validate_api_name, validate_limit, validate_soql_query

logger = logging.getLogger(__name__)


@register_tool
async def execute_tooling_query(soql: str, limit: int = 100) -> str:
    """Execute a SOQL query against the Tooling API.

    Args:
        soql: SOQL text, e.g. "SELECT Id, Name FROM ApexClass"
        limit: Maximum number of records to include in the output (max: 2000)
    """
    validate_soql_query(soql)
    validate_limit(limit, 2000)

    result = await get_salesforce_clients().tooling.query(soql)
    records = strip_attributes(result.get("records", [])[:limit])

    text = f"Query Results ({result.get('totalSize', 0)} total):\n\n{format_json(records)}"
    return ResponseSizeManager.check_text_size(text)


@register_tool
async def execute_soql_query(soql: str, fetch_all: bool = False, limit: int = 200) -> str:
    """Execute a SOQL query, routed to the Tooling API when it names a Tooling-only object.

    Args:
        soql: SOQL text
        fetch_all: Follow pagination links until ``limit`` records are collected
        limit: Maximum number of records to return (max: 2000)
    """
    validate_soql_query(soql)
    validate_limit(limit, 2000)

    rest = get_salesforce_clients().rest
    if fetch_all:
        result = await rest.query_all(soql, max_records=limit)
    else:
        result = await rest.query(soql)

    api = "Tooling" if is_tooling_query(soql) else "Data"
    records = strip_attributes(result.get("records", [])[:limit])

    text = (
        f"Query Results via {api} API ({result.get('totalSize', 0)} total, "
        f"{len(records)} shown, done: {result.get('done', True)}):\n\n{format_json(records)}"
    )
    return ResponseSizeManager.check_text_size(text)


@register_tool
async def describe_tooling_object(sobject_type: str) -> str:
    """Get schema information for a Tooling API object.

    Args:
        sobject_type: Tooling object API name, e.g. "ApexClass"
    """
    validate_api_name(sobject_type)
    result = await get_salesforce_clients().tooling.describe(sobject_type)

    return (
        f"{result.get('name')} Object:\n"
        f"Label: {result.get('label')}\n"
        f"Creatable: {result.get('createable')}\n"
        f"Fields: {len(result.get('fields') or [])}"
    )


@register_tool
async def analyze_soql_performance(soql: str) -> str:
    """Run a SOQL query and report its wall-clock execution time.

    Args:
        soql: SOQL text to time
    """
    validate_soql_query(soql)

    start = time.perf_counter()
    result = await get_salesforce_clients().rest.query(soql)
    duration_ms = (time.perf_counter() - start) * 1000

    return (
        "SOQL Performance:\n"
        f"Execution Time: {duration_ms:.0f}ms\n"
        f"Records: {len(result.get('records', []))}\n"
        f"Total Size: {result.get('totalSize', 0)}"
    )
