"""Async Apex job monitoring tools"""
import logging
from typing import Any, Dict, Optional

from sftooling.mcp.server import register_tool
from sftooling.mcp.tools.utils import related_name
from sftooling.services.salesforce import get_salesforce_clients
from sftooling.utils.validators import validate_limit, validate_record_id

logger = logging.getLogger(__name__)


def format_job(job: Dict[str, Any]) -> str:
    line = (
        f"• {job.get('Id')} [{job.get('JobType')}] {job.get('Status')}"
        f" - {job.get('JobItemsProcessed')}/{job.get('TotalJobItems')} items,"
        f" {job.get('NumberOfErrors')} errors"
    )
    class_name = related_name(job, "ApexClass")
    if class_name:
        line += f"\n  Class: {class_name}"
    if job.get("MethodName"):
        line += f"\n  Method: {job.get('MethodName')}"
    line += f"\n  Created: {job.get('CreatedDate')} by {related_name(job, 'CreatedBy') or 'unknown'}"
    return line


@register_tool
async def list_async_apex_jobs(status_filter: Optional[str] = None, limit: int = 100) -> str:
    """List async Apex jobs (batch, queueable, future, test runs), newest first.

    Args:
        status_filter: Queued, Preparing, Processing, Completed, Failed, Aborted or Holding
        limit: Maximum number of jobs (default: 100, max: 2000)
    """
    validate_limit(limit, 2000)
    jobs = await get_salesforce_clients().tooling.get_async_apex_jobs(status_filter, limit)
    return f"Async Apex Jobs ({len(jobs)}):\n\n" + "\n".join(format_job(job) for job in jobs)


@register_tool
async def get_async_apex_job(job_id: str) -> str:
    """Get details of a single async Apex job.

    Args:
        job_id: AsyncApexJob record ID
    """
    validate_record_id(job_id)
    job = await get_salesforce_clients().tooling.get_async_apex_job(job_id)
    if job is None:
        return f"No async Apex job found with ID {job_id}"

    text = format_job(job)
    if job.get("ExtendedStatus"):
        text += f"\n  Extended Status: {job.get('ExtendedStatus')}"
    if job.get("CompletedDate"):
        text += f"\n  Completed: {job.get('CompletedDate')}"
    return text


@register_tool
async def search_async_apex_jobs(
    status: Optional[str] = None,
    job_type: Optional[str] = None,
    apex_class_name: Optional[str] = None,
    created_date_from: Optional[str] = None,
    created_date_to: Optional[str] = None,
    limit: int = 100
) -> str:
    """Search async Apex jobs by status, type, class name and creation date.

    Args:
        status: Job status, e.g. "Completed"
        job_type: BatchApex, Queueable, Future, ScheduledApex, TestRequest, ...
        apex_class_name: Only jobs whose Apex class name contains this text
        created_date_from: SOQL datetime lower bound, e.g. 2024-01-01T00:00:00Z
        created_date_to: SOQL datetime upper bound
        limit: Maximum number of jobs (default: 100, max: 2000)
    """
    validate_limit(limit, 2000)
    jobs = await get_salesforce_clients().tooling.search_async_apex_jobs(
        status=status,
        job_type=job_type,
        apex_class_name=apex_class_name,
        created_date_from=created_date_from,
        created_date_to=created_date_to,
        limit=limit,
    )
    return f"Matching Async Apex Jobs ({len(jobs)}):\n\n" + "\n".join(format_job(job) for job in jobs)
