import json

import httpx
import pytest

from conftest import INSTANCE_URL
from sftooling.services.auth import TokenProvider
from sftooling.services.exceptions import (
    AuthorizationError,
    BadRequestError,
    TransportError,
)
from sftooling.services.http import AUTH_FAILED_MESSAGE, BAD_REQUEST_MESSAGE
from sftooling.services.rest import RestClient
from sftooling.services.tooling import ToolingClient
from sftooling.utils.validators import ValidationError

DATA = "/services/data/v59.0/"
TOOLING = "/services/data/v59.0/tooling/"


def ok(payload=None, status=200) -> httpx.Response:
    return httpx.Response(status, json=payload if payload is not None else {"totalSize": 0, "done": True, "records": []})


@pytest.fixture
def sf(make_config, cli_session, mock_http, clock):
    """Tooling and REST clients on a CLI session, plus a swappable response handler"""

    class Harness:
        handler = staticmethod(lambda request: ok())

    harness = Harness()
    http = mock_http(lambda request: harness.handler(request))
    auth = TokenProvider(make_config(), http_client=http.client, session_source=cli_session, clock=clock)
    harness.http = http
    harness.tooling = ToolingClient(auth, http_client=http.client)
    harness.rest = RestClient(auth, tooling=harness.tooling, http_client=http.client)
    return harness


def soql_of(request: httpx.Request) -> str:
    return request.url.params["q"]


class TestUrlBuilding:
    def test_relative_path_gets_family_prefix(self, sf):
        assert sf.tooling.build_url("query/", INSTANCE_URL) == INSTANCE_URL + TOOLING + "query/"
        assert sf.rest.build_url("/limits", INSTANCE_URL) == INSTANCE_URL + DATA + "limits"

    def test_services_path_only_gets_instance_url(self, sf):
        path = "/services/data/v59.0/tooling/query/01gD0000002HU6KIAW-2000"
        assert sf.rest.build_url(path, INSTANCE_URL) == INSTANCE_URL + path

    def test_absolute_url_is_verbatim(self, sf):
        url = "https://other.my.salesforce.com/services/data/v59.0/limits"
        assert sf.tooling.build_url(url, INSTANCE_URL) == url

    def test_api_version_override(self, make_config, no_cli):
        auth = TokenProvider(make_config(api_version="61.0"), session_source=no_cli)
        assert ToolingClient(auth, api_version="60.0").base_path == "/services/data/v60.0/tooling/"
        assert RestClient(auth).base_path == "/services/data/v61.0/"


class TestRequests:
    @pytest.mark.asyncio
    async def test_bearer_and_json_headers(self, sf):
        await sf.tooling.query("SELECT Id FROM ApexClass")

        request = sf.http.requests[0]
        assert request.headers["Authorization"] == "Bearer CLI_TOKEN"
        assert request.headers["Accept"] == "application/json"
        assert request.url.path == TOOLING + "query/"
        assert soql_of(request) == "SELECT Id FROM ApexClass"

    @pytest.mark.asyncio
    async def test_tooling_object_routes_to_tooling_api(self, sf):
        await sf.rest.query("SELECT Id FROM AsyncApexJob")
        assert sf.http.requests[0].url.path == TOOLING + "query/"

    @pytest.mark.asyncio
    async def test_data_object_routes_to_data_api(self, sf):
        await sf.rest.query("SELECT Id FROM Account")
        assert sf.http.requests[0].url.path == DATA + "query/"

    @pytest.mark.asyncio
    async def test_query_more_uses_next_records_url(self, sf):
        next_url = "/services/data/v59.0/query/01gD0000002HU6KIAW-2000"
        await sf.rest.query_more(next_url)
        assert str(sf.http.requests[0].url) == INSTANCE_URL + next_url

    @pytest.mark.asyncio
    async def test_query_more_follows_absolute_url_exactly(self, sf):
        next_url = "https://cs42.my.salesforce.com/services/data/v58.0/tooling/query/01gXX-2000"
        await sf.tooling.query_more(next_url)
        assert str(sf.http.requests[0].url) == next_url

    @pytest.mark.asyncio
    async def test_query_all_follows_pages_up_to_max(self, sf):
        pages = iter([
            ok({"totalSize": 5, "done": False, "nextRecordsUrl": "/services/data/v59.0/query/X-2",
                "records": [{"Id": "1"}, {"Id": "2"}]}),
            ok({"totalSize": 5, "done": False, "nextRecordsUrl": "/services/data/v59.0/query/X-4",
                "records": [{"Id": "3"}, {"Id": "4"}]}),
        ])
        sf.handler = lambda request: next(pages)

        result = await sf.rest.query_all("SELECT Id FROM Account", max_records=3)

        assert [r["Id"] for r in result["records"]] == ["1", "2", "3"]
        assert result["done"] is False
        assert len(sf.http.requests) == 2
        assert sf.http.requests[1].url.path == "/services/data/v59.0/query/X-2"

    @pytest.mark.asyncio
    async def test_401_is_authorization_error_without_retry(self, sf):
        sf.handler = lambda request: httpx.Response(
            401, json=[{"message": "Session expired or invalid", "errorCode": "INVALID_SESSION_ID"}]
        )

        with pytest.raises(AuthorizationError) as exc_info:
            await sf.rest.get_limits()

        assert str(exc_info.value) == AUTH_FAILED_MESSAGE
        assert exc_info.value.status_code == 401
        assert len(sf.http.requests) == 1

    @pytest.mark.asyncio
    async def test_400_surfaces_salesforce_message(self, sf):
        sf.handler = lambda request: httpx.Response(
            400, json=[{"message": "unexpected token: FORM", "errorCode": "MALFORMED_QUERY"}]
        )

        with pytest.raises(BadRequestError) as exc_info:
            await sf.tooling.query("SELECT Id FORM ApexClass")

        assert str(exc_info.value) == "MALFORMED_QUERY: unexpected token: FORM"
        assert exc_info.value.body[0]["errorCode"] == "MALFORMED_QUERY"

    @pytest.mark.asyncio
    async def test_400_without_body_uses_generic_message(self, sf):
        sf.handler = lambda request: httpx.Response(400)

        with pytest.raises(BadRequestError) as exc_info:
            await sf.rest.call_api("sobjects/Account", "POST", {"Name": "x"})

        assert str(exc_info.value) == BAD_REQUEST_MESSAGE

    @pytest.mark.asyncio
    async def test_other_status_is_transport_error(self, sf):
        sf.handler = lambda request: httpx.Response(500, text="upstream failure")

        with pytest.raises(TransportError) as exc_info:
            await sf.rest.get_sobjects()

        error = exc_info.value
        assert not isinstance(error, (AuthorizationError, BadRequestError))
        assert error.status_code == 500
        assert isinstance(error.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self, sf):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        sf.handler = handler

        with pytest.raises(TransportError) as exc_info:
            await sf.tooling.describe("ApexClass")

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectTimeout)


class TestToolingOperations:
    @pytest.mark.asyncio
    async def test_create_apex_class(self, sf):
        sf.handler = lambda request: ok({"id": "01pXXXXXXXXXXXXAAA", "success": True, "errors": []}, status=201)

        result = await sf.tooling.create_apex_class("Foo", "public class Foo {}")

        request = sf.http.requests[0]
        assert request.method == "POST"
        assert request.url.path == TOOLING + "sobjects/ApexClass/"
        assert json.loads(request.content) == {"Name": "Foo", "Body": "public class Foo {}"}
        assert result == {"id": "01pXXXXXXXXXXXXAAA", "success": True, "errors": []}

    @pytest.mark.asyncio
    async def test_get_with_fields(self, sf):
        sf.handler = lambda request: ok({"Id": "01p000000000001", "Name": "Foo"})

        await sf.tooling.get("ApexClass", "01p000000000001", ["Id", "Name"])

        request = sf.http.requests[0]
        assert request.url.path == TOOLING + "sobjects/ApexClass/01p000000000001"
        assert request.url.params["fields"] == "Id,Name"

    @pytest.mark.asyncio
    async def test_update_and_delete_return_none(self, sf):
        sf.handler = lambda request: httpx.Response(204)

        assert await sf.tooling.update_apex_class("01p000000000001", "public class Foo { }") is None
        assert await sf.tooling.delete_apex_class("01p000000000001") is None

        assert [r.method for r in sf.http.requests] == ["PATCH", "DELETE"]
        assert json.loads(sf.http.requests[0].content) == {"Body": "public class Foo { }"}

    @pytest.mark.asyncio
    async def test_debug_log_body_is_text(self, sf):
        sf.handler = lambda request: httpx.Response(
            200, text="59.0 APEX_CODE,DEBUG\nEXECUTION_STARTED", headers={"content-type": "text/plain"}
        )

        body = await sf.tooling.get_debug_log_body("07L000000000001")

        assert sf.http.requests[0].url.path == TOOLING + "sobjects/ApexLog/07L000000000001/Body"
        assert body.startswith("59.0 APEX_CODE")

    @pytest.mark.asyncio
    async def test_run_tests_payload(self, sf):
        sf.handler = lambda request: ok("707000000000001")

        job_id = await sf.tooling.run_tests(["01p000000000001", "01p000000000002"])

        assert job_id == "707000000000001"
        assert sf.http.requests[0].url.path == TOOLING + "runTestsAsynchronous/"
        assert json.loads(sf.http.requests[0].content) == {
            "tests": [{"classId": "01p000000000001"}, {"classId": "01p000000000002"}],
            "maxFailedTests": 1,
        }

    @pytest.mark.asyncio
    async def test_search_async_apex_jobs(self, sf):
        records = [{"attributes": {"type": "AsyncApexJob"}, "Id": "707000000000001", "Status": "Completed"}]
        sf.handler = lambda request: ok({"totalSize": 1, "done": True, "records": records})

        result = await sf.tooling.search_async_apex_jobs(status="Completed", limit=50)

        soql = soql_of(sf.http.requests[0])
        assert "FROM AsyncApexJob WHERE Id != NULL" in soql
        assert "Status = 'Completed'" in soql
        assert soql.endswith("ORDER BY CreatedDate DESC LIMIT 50")
        assert "JobType" not in soql
        assert result == records

    @pytest.mark.asyncio
    async def test_search_async_apex_jobs_all_filters(self, sf):
        await sf.tooling.search_async_apex_jobs(
            job_type="BatchApex",
            apex_class_name="O'Brien_Batch",
            created_date_from="2024-01-01T00:00:00Z",
            created_date_to="TODAY",
        )

        soql = soql_of(sf.http.requests[0])
        assert "AND JobType = 'BatchApex'" in soql
        assert "AND ApexClass.Name LIKE '%O\\'Brien\\_Batch%'" in soql
        assert "AND CreatedDate >= 2024-01-01T00:00:00Z" in soql
        assert "AND CreatedDate <= TODAY" in soql
        assert soql.endswith("LIMIT 100")

    @pytest.mark.asyncio
    async def test_search_rejects_non_date_literal(self, sf):
        with pytest.raises(ValidationError):
            await sf.tooling.search_async_apex_jobs(created_date_from="2024-01-01' OR Id != NULL")
        assert sf.http.requests == []

    @pytest.mark.asyncio
    async def test_name_filter_is_escaped(self, sf):
        await sf.tooling.get_apex_classes("Acme'")
        assert "WHERE Name LIKE '%Acme\\'%' ORDER BY Name" in soql_of(sf.http.requests[0])


class TestRestOperations:
    @pytest.mark.asyncio
    async def test_call_api_ignores_body_for_get(self, sf):
        sf.handler = lambda request: ok({"DailyApiRequests": {"Max": 100, "Remaining": 90}})

        await sf.rest.call_api("limits", "GET", body={"ignored": True}, params={"a": "b"})

        request = sf.http.requests[0]
        assert request.url.path == DATA + "limits"
        assert request.url.params["a"] == "b"
        assert request.content == b""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("endpoint", [
        "https://collector.example.net/steal",
        "HTTP://collector.example.net/steal",
        "//collector.example.net/steal",
        INSTANCE_URL + "/services/data/v59.0/limits",
    ])
    async def test_call_api_refuses_absolute_urls(self, sf, endpoint):
        with pytest.raises(ValidationError):
            await sf.rest.call_api(endpoint)
        assert sf.http.requests == []

    @pytest.mark.asyncio
    async def test_call_api_accepts_services_path(self, sf):
        sf.handler = lambda request: ok({})

        await sf.rest.call_api("/services/data/v59.0/limits")

        assert str(sf.http.requests[0].url) == INSTANCE_URL + "/services/data/v59.0/limits"

    @pytest.mark.asyncio
    async def test_org_info_uses_data_api(self, sf):
        sf.handler = lambda request: ok({"totalSize": 1, "done": True, "records": [{"Name": "Acme"}]})

        org = await sf.rest.get_org_info()

        assert org == {"Name": "Acme"}
        assert sf.http.requests[0].url.path == DATA + "query/"
        assert "FROM Organization" in soql_of(sf.http.requests[0])

    @pytest.mark.asyncio
    async def test_get_auth(self, sf):
        assert await sf.rest.get_auth() == {
            "token": "CLI_TOKEN",
            "instance_url": INSTANCE_URL,
            "api_version": "59.0",
        }

    @pytest.mark.asyncio
    async def test_one_login_shared_by_both_clients(self, sf, cli_session):
        await sf.rest.query("SELECT Id FROM Account")
        await sf.rest.query("SELECT Id FROM ApexClass")
        await sf.tooling.describe("ApexClass")

        assert cli_session.list_calls == 1
