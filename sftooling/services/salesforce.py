"""Process-wide Salesforce client management"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from sftooling.config import SalesforceConfig, get_config, reload_config
from sftooling.services.auth import TokenProvider
from sftooling.services.rest import RestClient
from sftooling.services.tooling import ToolingClient

logger = logging.getLogger(__name__)


@dataclass
class SalesforceClients:
    """Token provider and both API clients, sharing one connection pool."""

    auth: TokenProvider
    tooling: ToolingClient
    rest: RestClient
    http: httpx.AsyncClient

    async def aclose(self) -> None:
        await self.http.aclose()


def create_salesforce_clients(
    config: SalesforceConfig,
    http_client: Optional[httpx.AsyncClient] = None,
) -> SalesforceClients:
    http = http_client or httpx.AsyncClient(timeout=config.request_timeout_seconds)
    auth = TokenProvider(config, http_client=http)
    tooling = ToolingClient(auth, http_client=http)
    rest = RestClient(auth, tooling=tooling, http_client=http)
    return SalesforceClients(auth=auth, tooling=tooling, rest=rest, http=http)


_clients: Optional[SalesforceClients] = None


def get_salesforce_clients() -> SalesforceClients:
    """
    Get the shared Salesforce clients, creating them on first use.

    Nothing is authenticated here; the first API call triggers login.
    """
    global _clients
    if _clients is None:
        config = get_config()
        logger.info("Creating Salesforce clients for %s (API v%s)", config.instance_url, config.api_version)
        _clients = create_salesforce_clients(config)
    return _clients


async def clear_connection_cache() -> None:
    """Drop the shared clients and re-read configuration; the next call rebuilds both"""
    global _clients
    if _clients is not None:
        await _clients.aclose()
        _clients = None
    reload_config()
