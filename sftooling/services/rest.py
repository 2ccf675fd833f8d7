"""Salesforce REST (Data) API client with Tooling-aware query routing"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from sftooling.services.auth import TokenProvider
from sftooling.services.http import SalesforceHttpClient
from sftooling.services.routing import is_tooling_query
from sftooling.services.tooling import ToolingClient
from sftooling.utils.validators import ValidationError

logger = logging.getLogger(__name__)


class RestClient(SalesforceHttpClient):
    """Client for the standard Data API.

    ``query`` hands SOQL that mentions a Tooling-only object to the Tooling
    client; everything else goes to ``/query``. Both clients share the same
    token provider, so they authenticate once between them.
    """

    api_family = "data"

    def __init__(
        self,
        auth: TokenProvider,
        tooling: Optional[ToolingClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        api_version: Optional[str] = None,
    ):
        super().__init__(auth, http_client=http_client, api_version=api_version)
        self._owns_tooling = tooling is None
        self.tooling = tooling or ToolingClient(auth, http_client=http_client, api_version=api_version)

    # --- generic operations ---

    async def call_api(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Call a Data API resource. ``endpoint`` is relative to the versioned base
        path, or a ``/services/...`` path on the org's own instance."""
        if endpoint.lower().startswith(("http://", "https://", "//")):
            raise ValidationError("endpoint must be a path on the org instance, not an absolute URL")
        json_body = body if method in ("POST", "PATCH") else None
        return await self.request(method, endpoint, params=params or None, json=json_body)

    async def query(self, soql: str) -> Dict[str, Any]:
        if is_tooling_query(soql):
            return await self.tooling.query(soql)
        return await self.request("GET", "query/", params={"q": soql})

    async def query_more(self, next_records_url: str) -> Dict[str, Any]:
        return await self.request("GET", next_records_url)

    async def query_all(self, soql: str, max_records: Optional[int] = None) -> Dict[str, Any]:
        """Follow ``nextRecordsUrl`` until done or ``max_records`` is reached."""
        result = await self.query(soql)
        records: List[Dict[str, Any]] = list(result.get("records", []))

        while not result.get("done", True) and result.get("nextRecordsUrl"):
            if max_records is not None and len(records) >= max_records:
                break
            result = await self.query_more(result["nextRecordsUrl"])
            records.extend(result.get("records", []))

        if max_records is not None:
            records = records[:max_records]

        return {
            "totalSize": result.get("totalSize", len(records)),
            "done": result.get("done", True),
            "records": records,
        }

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

    # --- org level resources ---

    async def get_limits(self) -> Dict[str, Any]:
        return await self.call_api("limits")

    async def get_sobjects(self) -> Dict[str, Any]:
        return await self.call_api("sobjects")

    async def get_org_info(self) -> Optional[Dict[str, Any]]:
        # Organization is a Data API object, never routed to Tooling.
        soql = "SELECT Id, Name, OrganizationType, InstanceName, IsSandbox FROM Organization LIMIT 1"
        result = await self.request("GET", "query/", params={"q": soql})
        records = result.get("records", [])
        return records[0] if records else None

    async def get_auth(self) -> Dict[str, str]:
        token = await self.auth.get_access_token()
        return {
            "token": token,
            "instance_url": self.auth.get_instance_url(),
            "api_version": self.api_version,
        }

    async def aclose(self) -> None:
        if self._owns_tooling:
            await self.tooling.aclose()
        await super().aclose()
