"""FastMCP server instance and the @register_tool decorator"""
import functools
import logging
import time
from typing import Awaitable, Callable, Dict

from mcp.server.fastmcp import FastMCP

from sftooling.config import get_config
from sftooling.mcp.tools.utils import format_error_response
from sftooling.utils.logging import log_tool_execution, start_tool_call

logger = logging.getLogger(__name__)

ToolFunc = Callable[..., Awaitable[str]]

_config = get_config()
mcp_server = FastMCP(_config.mcp_server_name, host=_config.http_host, port=_config.http_port)

# name -> wrapped coroutine, in registration order
tool_registry: Dict[str, ToolFunc] = {}


def register_tool(func: ToolFunc) -> ToolFunc:
    """Register an async tool with the MCP server.

    Each call gets its own correlation ID and a timing log line. Exceptions
    are logged and turned into error text so the assistant sees what failed.
    """
    name = func.__name__

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> str:
        start_tool_call(name)
        start = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.exception(f"{name} failed")
            log_tool_execution(logger, name, (time.perf_counter() - start) * 1000, False, str(e))
            return format_error_response(e, context=name)

        log_tool_execution(logger, name, (time.perf_counter() - start) * 1000, True)
        return result

    tool_registry[name] = wrapper
    mcp_server.tool()(wrapper)
    return wrapper
