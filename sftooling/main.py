# sftooling/main.py
import sys
import logging
from sftooling.config import get_config
from sftooling.mcp.server import mcp_server, tool_registry
from sftooling.services.auth import resolve_strategies
from sftooling.utils.logging import mask_secret, setup_structured_logging

# IMPORTANT: import tool modules so @register_tool executes.
# If you add more tool files later, import them here too.
from sftooling.mcp.tools import apex_classes as _apex_classes  # noqa: F401
from sftooling.mcp.tools import apex_triggers as _apex_triggers  # noqa: F401
from sftooling.mcp.tools import query as _query  # noqa: F401
from sftooling.mcp.tools import code_analysis as _code_analysis  # noqa: F401
from sftooling.mcp.tools import debug as _debug  # noqa: F401
from sftooling.mcp.tools import org_management as _org_management  # noqa: F401
from sftooling.mcp.tools import async_jobs as _async_jobs  # noqa: F401
from sftooling.mcp.tools import rest_api as _rest_api  # noqa: F401

logger = logging.getLogger(__name__)


def main() -> None:
    config = get_config()
    setup_structured_logging(level=config.log_level, use_json=config.log_json)

    logger.info("Instance: %s (API v%s)", config.instance_url, config.api_version)
    logger.info("Target org: %s", config.target_org or "(CLI default)")
    logger.info("Client ID: %s", mask_secret(config.client_id))
    logger.info("Auth strategies: %s", ", ".join(strategy.name for strategy in resolve_strategies(config)))
    logger.info("Tools: %s", ", ".join(tool_registry.keys()) or "(none)")

    # Check for HTTP/SSE mode
    if "--http" in sys.argv or "--sse" in sys.argv:
        logger.info("MCP starting (HTTP/SSE) on %s:%s", config.http_host, config.http_port)
        mcp_server.run(transport="sse")
    else:
        logger.info("MCP starting (stdio)")
        mcp_server.run(transport="stdio")


if __name__ == "__main__":
    main()
