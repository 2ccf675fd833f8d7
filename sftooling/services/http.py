"""Authenticated HTTP plumbing shared by the Tooling and REST clients"""
import logging
from typing import Any, Dict, Optional

import httpx

from sftooling.services.auth import TokenProvider
from sftooling.services.exceptions import (
    AuthorizationError,
    BadRequestError,
    TransportError,
)

logger = logging.getLogger(__name__)

AUTH_FAILED_MESSAGE = "Authentication failed. Please check your credentials."
BAD_REQUEST_MESSAGE = "Bad Request. Please check your request parameters."


def _response_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def extract_error_message(body: Any) -> Optional[str]:
    """Salesforce errors come as ``[{"message", "errorCode"}]`` or a single dict."""
    if isinstance(body, list) and body and isinstance(body[0], dict):
        return body[0].get("message")
    if isinstance(body, dict):
        return body.get("message") or body.get("error_description")
    return None


def extract_error_code(body: Any) -> Optional[str]:
    if isinstance(body, list) and body and isinstance(body[0], dict):
        return body[0].get("errorCode")
    if isinstance(body, dict):
        return body.get("errorCode") or body.get("error")
    return None


class SalesforceHttpClient:
    """Issues requests against one Salesforce API family.

    Relative paths are joined onto ``{instance_url}{base_path}``. Absolute
    URLs are sent as given, and host-relative ``/services/...`` paths (the
    shape of ``nextRecordsUrl``) only get the instance URL prepended.
    """

    api_family = "data"

    def __init__(
        self,
        auth: TokenProvider,
        http_client: Optional[httpx.AsyncClient] = None,
        api_version: Optional[str] = None,
    ):
        self.auth = auth
        self.api_version = api_version or auth.config.api_version
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=auth.config.request_timeout_seconds)

    @property
    def base_path(self) -> str:
        return f"/services/data/v{self.api_version}/"

    def build_url(self, path: str, instance_url: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if path.startswith("/services/"):
            return instance_url + path
        return instance_url + self.base_path + path.lstrip("/")

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        session = await self.auth.get_session()
        url = self.build_url(path, session.instance_url)
        headers = {
            "Authorization": f"Bearer {session.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

        logger.debug("%s %s", method, url, extra={"api": self.api_family})
        try:
            response = await self._http.request(method, url, params=params, json=json, headers=headers)
        except httpx.RequestError as exc:
            raise TransportError(f"{method} {url} failed: {exc}", url=url) from exc

        return self._handle_response(method, response)

    def _handle_response(self, method: str, response: httpx.Response) -> Any:
        url = str(response.request.url)
        status = response.status_code

        if status == 401:
            logger.error(AUTH_FAILED_MESSAGE, extra={"status_code": status, "api": self.api_family})
            raise AuthorizationError(AUTH_FAILED_MESSAGE, status, _response_body(response), url)

        if status == 400:
            body = _response_body(response)
            message = extract_error_message(body) or BAD_REQUEST_MESSAGE
            code = extract_error_code(body)
            if code:
                message = f"{code}: {message}"
            logger.error(message, extra={"status_code": status, "api": self.api_family})
            raise BadRequestError(message, status, body, url)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = _response_body(response)
            detail = extract_error_message(body) or response.reason_phrase
            code = extract_error_code(body)
            if code:
                detail = f"{code}: {detail}"
            raise TransportError(
                f"{method} {url} returned {status}: {detail}", status, body, url
            ) from exc

        if not response.content:
            return None
        if "json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
