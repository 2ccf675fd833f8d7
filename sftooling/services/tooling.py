"""Salesforce Tooling API client

Generic sObject CRUD against ``/services/data/vXX.X/tooling/`` plus the
queries the tool layer needs for Apex classes, triggers, Visualforce pages,
code coverage, debug logs, test runs and async Apex jobs.
"""
import logging
from typing import Any, Dict, List, Optional

from sftooling.services.http import SalesforceHttpClient
from sftooling.utils.validators import soql_like, soql_quote, validate_soql_datetime

logger = logging.getLogger(__name__)

APEX_CLASS_FIELDS = (
    "Id, Name, Body, NamespacePrefix, ApiVersion, Status, IsValid, BodyCrc, "
    "LengthWithoutComments, LastModifiedDate, CreatedDate"
)
APEX_TRIGGER_FIELDS = (
    "Id, Name, Body, TableEnumOrId, NamespacePrefix, ApiVersion, Status, IsValid, BodyCrc, "
    "LengthWithoutComments, LastModifiedDate, CreatedDate"
)
APEX_PAGE_FIELDS = (
    "Id, Name, Markup, NamespacePrefix, ApiVersion, MasterLabel, Description, ControllerType, "
    "ControllerKey, LastModifiedDate, CreatedDate"
)
ASYNC_JOB_FIELDS = (
    "Id, Status, JobType, MethodName, JobItemsProcessed, TotalJobItems, NumberOfErrors, "
    "CompletedDate, CreatedDate, CreatedBy.Name"
)


class ToolingClient(SalesforceHttpClient):
    """Client for the Tooling API family"""

    api_family = "tooling"

    @property
    def base_path(self) -> str:
        return f"/services/data/v{self.api_version}/tooling/"

    # --- generic operations ---

    async def query(self, soql: str) -> Dict[str, Any]:
        return await self.request("GET", "query/", params={"q": soql})

    async def query_more(self, next_records_url: str) -> Dict[str, Any]:
        # Continuation links already name their API family.
        return await self.request("GET", next_records_url)

    async def describe(self, sobject_type: str) -> Dict[str, Any]:
        return await self.request("GET", f"sobjects/{sobject_type}/describe/")

    async def create(self, sobject_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", f"sobjects/{sobject_type}/", json=data)

    async def get(self, sobject_type: str, record_id: str, fields: Optional[List[str]] = None) -> Dict[str, Any]:
        params = {"fields": ",".join(fields)} if fields else None
        return await self.request("GET", f"sobjects/{sobject_type}/{record_id}", params=params)

    async def update(self, sobject_type: str, record_id: str, data: Dict[str, Any]) -> None:
        await self.request("PATCH", f"sobjects/{sobject_type}/{record_id}", json=data)

    async def delete(self, sobject_type: str, record_id: str) -> None:
        await self.request("DELETE", f"sobjects/{sobject_type}/{record_id}")

    async def _records(self, soql: str) -> List[Dict[str, Any]]:
        result = await self.query(soql)
        return result.get("records", [])

    @staticmethod
    def _named(fields: str, sobject: str, name_filter: Optional[str]) -> str:
        soql = f"SELECT {fields} FROM {sobject}"
        if name_filter:
            soql += f" WHERE Name LIKE '%{soql_like(name_filter)}%'"
        return soql + " ORDER BY Name"

    # --- Apex classes ---

    async def get_apex_classes(self, name_filter: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._records(self._named(APEX_CLASS_FIELDS, "ApexClass", name_filter))

    async def get_apex_class(self, class_id: str) -> Dict[str, Any]:
        return await self.get("ApexClass", class_id)

    async def create_apex_class(self, name: str, body: str) -> Dict[str, Any]:
        return await self.create("ApexClass", {"Name": name, "Body": body})

    async def update_apex_class(self, class_id: str, body: str) -> None:
        await self.update("ApexClass", class_id, {"Body": body})

    async def delete_apex_class(self, class_id: str) -> None:
        await self.delete("ApexClass", class_id)

    # --- Apex triggers ---

    async def get_apex_triggers(self, name_filter: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._records(self._named(APEX_TRIGGER_FIELDS, "ApexTrigger", name_filter))

    async def get_apex_trigger(self, trigger_id: str) -> Dict[str, Any]:
        return await self.get("ApexTrigger", trigger_id)

    async def create_apex_trigger(self, name: str, body: str, table_enum_or_id: str) -> Dict[str, Any]:
        return await self.create("ApexTrigger", {
            "Name": name,
            "Body": body,
            "TableEnumOrId": table_enum_or_id,
        })

    async def update_apex_trigger(self, trigger_id: str, body: str) -> None:
        await self.update("ApexTrigger", trigger_id, {"Body": body})

    async def delete_apex_trigger(self, trigger_id: str) -> None:
        await self.delete("ApexTrigger", trigger_id)

    # --- Visualforce pages ---

    async def get_apex_pages(self, name_filter: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._records(self._named(APEX_PAGE_FIELDS, "ApexPage", name_filter))

    async def get_apex_page(self, page_id: str) -> Dict[str, Any]:
        return await self.get("ApexPage", page_id)

    async def create_apex_page(self, name: str, markup: str, master_label: Optional[str] = None) -> Dict[str, Any]:
        return await self.create("ApexPage", {
            "Name": name,
            "Markup": markup,
            "MasterLabel": master_label or name,
        })

    async def update_apex_page(self, page_id: str, markup: str) -> None:
        await self.update("ApexPage", page_id, {"Markup": markup})

    async def delete_apex_page(self, page_id: str) -> None:
        await self.delete("ApexPage", page_id)

    # --- coverage, symbols, logs, tests ---

    async def get_code_coverage(self, apex_class_or_trigger_id: Optional[str] = None) -> List[Dict[str, Any]]:
        soql = (
            "SELECT ApexClassOrTriggerId, ApexClassOrTrigger.Name, NumLinesCovered, "
            "NumLinesUncovered, Coverage FROM ApexCodeCoverageAggregate"
        )
        if apex_class_or_trigger_id:
            soql += f" WHERE ApexClassOrTriggerId = '{soql_quote(apex_class_or_trigger_id)}'"
        logger.debug("Code coverage SOQL: %s", soql)
        return await self._records(soql)

    async def get_symbol_table(self, apex_class_id: str) -> Optional[Dict[str, Any]]:
        records = await self._records(
            f"SELECT Id, Name, SymbolTable FROM ApexClass WHERE Id = '{soql_quote(apex_class_id)}'"
        )
        return records[0] if records else None

    async def get_debug_logs(self, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._records(
            "SELECT Id, Application, DurationMilliseconds, Location, LogLength, LogUser.Name, "
            "Operation, Request, StartTime, Status FROM ApexLog "
            f"ORDER BY StartTime DESC LIMIT {int(limit)}"
        )

    async def get_debug_log_body(self, log_id: str) -> str:
        return await self.request("GET", f"sobjects/ApexLog/{log_id}/Body")

    async def run_tests(self, class_ids: Optional[List[str]] = None) -> Any:
        """Enqueue an asynchronous test run; Salesforce answers with the job id."""
        return await self.request("POST", "runTestsAsynchronous/", json={
            "tests": [{"classId": class_id} for class_id in class_ids or []],
            "maxFailedTests": 1,
        })

    async def get_test_results(self, async_apex_job_id: str) -> Optional[Dict[str, Any]]:
        records = await self._records(
            "SELECT Id, Status, JobItemsProcessed, TotalJobItems, NumberOfErrors FROM AsyncApexJob "
            f"WHERE Id = '{soql_quote(async_apex_job_id)}'"
        )
        return records[0] if records else None

    # --- async Apex jobs ---

    async def get_async_apex_jobs(self, status_filter: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        soql = f"SELECT {ASYNC_JOB_FIELDS} FROM AsyncApexJob"
        if status_filter:
            soql += f" WHERE Status = '{soql_quote(status_filter)}'"
        soql += f" ORDER BY CreatedDate DESC LIMIT {int(limit)}"
        return await self._records(soql)

    async def get_async_apex_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        records = await self._records(
            f"SELECT {ASYNC_JOB_FIELDS}, ExtendedStatus FROM AsyncApexJob WHERE Id = '{soql_quote(job_id)}'"
        )
        return records[0] if records else None

    async def search_async_apex_jobs(
        self,
        status: Optional[str] = None,
        job_type: Optional[str] = None,
        apex_class_name: Optional[str] = None,
        created_date_from: Optional[str] = None,
        created_date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Filter async Apex jobs; date bounds are SOQL datetime literals (unquoted)."""
        soql = f"SELECT {ASYNC_JOB_FIELDS}, ApexClass.Name FROM AsyncApexJob WHERE Id != NULL"

        if status:
            soql += f" AND Status = '{soql_quote(status)}'"
        if job_type:
            soql += f" AND JobType = '{soql_quote(job_type)}'"
        if apex_class_name:
            soql += f" AND ApexClass.Name LIKE '%{soql_like(apex_class_name)}%'"
        if created_date_from:
            soql += f" AND CreatedDate >= {validate_soql_datetime(created_date_from)}"
        if created_date_to:
            soql += f" AND CreatedDate <= {validate_soql_datetime(created_date_to)}"

        soql += f" ORDER BY CreatedDate DESC LIMIT {int(limit or 100)}"
        return await self._records(soql)
