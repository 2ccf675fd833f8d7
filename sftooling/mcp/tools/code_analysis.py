"""Code coverage, test execution, symbol tables and static checks for Apex"""
import logging
from typing import List, Optional

from sftooling.mcp.server import register_tool
from sftooling.mcp.tools.utils import related_name
from sftooling.services.salesforce import get_salesforce_clients
from sftooling.utils.validators import ValidationError, validate_record_id

logger = logging.getLogger(__name__)


def coverage_percent(covered: int, uncovered: int) -> float:
    total = covered + uncovered
    return (covered / total * 100) if total > 0 else 0.0


def sharing_declaration(body: str) -> str:
    """Sharing keyword declared by an Apex class body"""
    lowered = body.lower()
    if "without sharing" in lowered:
        return "without sharing"
    if "inherited sharing" in lowered:
        return "inherited sharing"
    if "with sharing" in lowered:
        return "with sharing"
    return "none"


@register_tool
async def get_code_coverage(
    apex_class_or_trigger_id: Optional[str] = None,
    min_coverage: Optional[float] = None
) -> str:
    """Get code coverage information for Apex classes and triggers.

    Args:
        apex_class_or_trigger_id: Restrict to one class or trigger
        min_coverage: Only show entries at or above this percentage (0-100)
    """
    if apex_class_or_trigger_id:
        validate_record_id(apex_class_or_trigger_id)
    if min_coverage is not None and not 0 <= min_coverage <= 100:
        raise ValidationError(f"min_coverage must be between 0 and 100, got {min_coverage}")

    coverage = await get_salesforce_clients().tooling.get_code_coverage(apex_class_or_trigger_id)

    lines = []
    for item in coverage:
        covered = item.get("NumLinesCovered") or 0
        uncovered = item.get("NumLinesUncovered") or 0
        percentage = coverage_percent(covered, uncovered)
        if min_coverage is not None and percentage < min_coverage:
            continue
        name = related_name(item, "ApexClassOrTrigger") or item.get("ApexClassOrTriggerId")
        lines.append(f"• {name}: {percentage:.1f}% ({covered}/{covered + uncovered})")

    return f"Code Coverage ({len(lines)} items):\n\n" + "\n".join(lines)


@register_tool
async def run_tests(class_ids: Optional[List[str]] = None) -> str:
    """Execute Apex tests asynchronously.

    Args:
        class_ids: IDs of the test classes to run
    """
    for class_id in class_ids or []:
        validate_record_id(class_id)

    result = await get_salesforce_clients().tooling.run_tests(class_ids)
    job_id = result.get("id") if isinstance(result, dict) else result
    logger.info(f"Enqueued Apex test run {job_id}")
    return f"Test execution started. Job ID: {job_id}"


@register_tool
async def get_test_results(async_apex_job_id: str) -> str:
    """Get the status of an asynchronous Apex test run.

    Args:
        async_apex_job_id: Job ID returned by run_tests
    """
    validate_record_id(async_apex_job_id)
    job = await get_salesforce_clients().tooling.get_test_results(async_apex_job_id)
    if job is None:
        return f"No test run found with job ID {async_apex_job_id}"

    return (
        f"Test Run {job.get('Id')}:\n"
        f"Status: {job.get('Status')}\n"
        f"Items processed: {job.get('JobItemsProcessed')}/{job.get('TotalJobItems')}\n"
        f"Errors: {job.get('NumberOfErrors')}"
    )


@register_tool
async def get_symbol_table(apex_class_id: str) -> str:
    """Get the symbol table of an Apex class.

    Args:
        apex_class_id: The 15 or 18 character ID of the Apex class
    """
    validate_record_id(apex_class_id)
    record = await get_salesforce_clients().tooling.get_symbol_table(apex_class_id)
    if record is None:
        return f"No Apex class found with ID {apex_class_id}"

    table = record.get("SymbolTable") or {}
    return (
        f"Symbol Table for {record.get('Name')}:\n\n"
        f"Methods: {len(table.get('methods') or [])}\n"
        f"Properties: {len(table.get('properties') or [])}\n"
        f"Variables: {len(table.get('variables') or [])}"
    )


@register_tool
async def validate_syntax(apex_class_id: str) -> str:
    """Report whether an Apex class currently compiles.

    Args:
        apex_class_id: The 15 or 18 character ID of the Apex class
    """
    validate_record_id(apex_class_id)
    apex_class = await get_salesforce_clients().tooling.get_apex_class(apex_class_id)

    return (
        f"Syntax Validation for {apex_class.get('Name')}:\n"
        f"Status: {apex_class.get('Status')}\n"
        f"Valid: {apex_class.get('IsValid')}"
    )


@register_tool
async def check_apex_sharing(apex_class_id: str) -> str:
    """Check the sharing declaration of an Apex class.

    Args:
        apex_class_id: The 15 or 18 character ID of the Apex class
    """
    validate_record_id(apex_class_id)
    apex_class = await get_salesforce_clients().tooling.get_apex_class(apex_class_id)
    sharing = sharing_declaration(apex_class.get("Body") or "")

    return (
        f"Sharing Analysis for {apex_class.get('Name')}:\n"
        f"Sharing Type: {sharing if sharing != 'none' else 'inherited from caller'}\n"
        f"Declaration: {'Present' if sharing != 'none' else 'Missing'}"
    )
