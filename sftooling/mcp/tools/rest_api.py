"""REST API tools: org limits, generic calls and sObject describes"""
import logging
from typing import Any, Dict, List, Optional

from sftooling.mcp.server import register_tool
from sftooling.mcp.tools.utils import ResponseSizeManager, format_json
from sftooling.services.exceptions import TransportError
from sftooling.services.salesforce import get_salesforce_clients
from sftooling.utils.validators import ValidationError, validate_api_name, validate_http_method

logger = logging.getLogger(__name__)

HIGH_USAGE_PERCENT = 80
MEDIUM_USAGE_PERCENT = 50


def summarize_limits(limits: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Usage figures for every limit that reports Max and Remaining"""
    summary = []
    for name, value in limits.items():
        if isinstance(value, dict) and "Max" in value and "Remaining" in value:
            maximum = value["Max"]
            used = maximum - value["Remaining"]
            percent = (used / maximum * 100) if maximum else 0.0
            summary.append({
                "name": name,
                "max": maximum,
                "used": used,
                "remaining": value["Remaining"],
                "percent": percent,
            })
        else:
            summary.append({"name": name, "value": value})
    return summary


def usage_marker(percent: float) -> str:
    if percent > HIGH_USAGE_PERCENT:
        return "HIGH"
    if percent > MEDIUM_USAGE_PERCENT:
        return "MEDIUM"
    return "OK"


@register_tool
async def get_org_limits() -> str:
    """Get organization limits with usage percentages, high usage first."""
    limits = summarize_limits(await get_salesforce_clients().rest.get_limits())

    lines = ["Organization Limits Summary:", ""]
    high = [item for item in limits if item.get("percent", 0) > MEDIUM_USAGE_PERCENT]
    if high:
        lines.append("High Usage Items:")
        lines.extend(
            f"  [{usage_marker(item['percent'])}] {item['name']}: "
            f"{item['used']}/{item['max']} ({item['percent']:.1f}%)"
            for item in high
        )
        lines.append("")

    lines.append("All Limits:")
    for item in limits:
        if "percent" in item:
            lines.append(
                f"[{usage_marker(item['percent'])}] {item['name']}: {item['used']}/{item['max']} "
                f"({item['percent']:.1f}%) - {item['remaining']} remaining"
            )
        else:
            lines.append(f"{item['name']}: {format_json(item['value'])}")

    return "\n".join(lines)


@register_tool
async def call_rest_api(
    endpoint: str,
    method: str = "GET",
    body: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None
) -> str:
    """Make a generic REST API call to Salesforce.

    Args:
        endpoint: Path relative to /services/data/vXX.X/, e.g. "limits" or "sobjects/Account/describe"
        method: GET, POST, PATCH or DELETE
        body: JSON body for POST and PATCH
        params: Query string parameters
    """
    if not endpoint or not endpoint.strip():
        raise ValidationError("endpoint cannot be empty")
    method = validate_http_method(method)

    result = await get_salesforce_clients().rest.call_api(endpoint, method, body, params)
    text = f"REST API Response ({method} {endpoint}):\n\n{format_json(result)}"
    return ResponseSizeManager.check_text_size(text)


@register_tool
async def get_sobjects_list() -> str:
    """List every sObject the REST API exposes with its CRUD capabilities."""
    result = await get_salesforce_clients().rest.get_sobjects()

    sobjects = [
        {
            "name": obj.get("name"),
            "label": obj.get("label"),
            "keyPrefix": obj.get("keyPrefix"),
            "custom": obj.get("custom"),
            "queryable": obj.get("queryable"),
            "createable": obj.get("createable"),
            "updateable": obj.get("updateable"),
            "deletable": obj.get("deletable"),
        }
        for obj in (result or {}).get("sobjects", [])
    ]
    text = f"Available SObjects ({len(sobjects)} total):\n\n{format_json(sobjects)}"
    return ResponseSizeManager.check_text_size(text)


@register_tool
async def describe_sobject(sobject_type: str) -> str:
    """Describe a Data API sObject: capabilities, field and record type counts.

    Args:
        sobject_type: sObject API name, e.g. "Account"
    """
    validate_api_name(sobject_type)
    try:
        describe = await get_salesforce_clients().rest.describe(sobject_type)
    except TransportError as e:
        if e.status_code == 404:
            return f"SObject '{sobject_type}' not found"
        raise

    summary = {
        "name": describe.get("name"),
        "label": describe.get("label"),
        "keyPrefix": describe.get("keyPrefix"),
        "custom": describe.get("custom"),
        "queryable": describe.get("queryable"),
        "createable": describe.get("createable"),
        "updateable": describe.get("updateable"),
        "deletable": describe.get("deletable"),
        "fieldsCount": len(describe.get("fields") or []),
        "recordTypeInfos": len(describe.get("recordTypeInfos") or []),
    }
    return f"SObject Description for {sobject_type}:\n\n{format_json(summary)}"
