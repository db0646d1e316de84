import logging
import sys
import time
from typing import Dict, Callable, List, Literal, Optional
from fastmcp import FastMCP
import uvicorn
from fastmcp.server.http import StarletteWithLifespan
from pydantic_settings import BaseSettings
from starlette.routing import Route
from starlette.responses import JSONResponse

from mcptools.tools import DEFAULT_TOOLS, SERVER_NAME
from telemetry.manager import init_otel, is_otel_enabled, should_enable_otel


logger = logging.getLogger(__name__)

Transport = Literal["http", "streamable-http", "sse"]


def get_log_level(level: str) -> int:
    """Map a level name to a logging constant, defaulting to INFO."""
    return getattr(logging, level.upper(), logging.INFO)


def configure_logging(level: str = "INFO") -> None:
    """Configure logging for the server, interpreter and telemetry loggers."""
    log_level = get_log_level(level)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    for name in ("interpreter", "mcptools", "telemetry"):
        logging.getLogger(name).setLevel(log_level)

    # Reduce noise from third-party loggers unless debugging
    if log_level > logging.DEBUG:
        for name in ("httpx", "httpcore", "mcp", "fastmcp"):
            logging.getLogger(name).setLevel(logging.WARNING)


class MCPServerSettings(BaseSettings):
    """MCP server configuration from environment variables."""

    mcp_host: str = "0.0.0.0"
    mcp_port: int = 8000
    mcp_log_level: str = "INFO"
    mcp_access_log: bool = False  # Mute uvicorn access logs by default
    mcp_transport: Transport = "http"


class MCPServer:
    """MCP server that hosts the calculator and script tools via FastMCP."""

    def __init__(self, settings: MCPServerSettings, tools: Optional[Dict[str, Callable]] = None):
        """Initialize MCP server.

        Args:
            settings: Server settings
            tools: Tools to register; the calculator and execute_python tools when omitted
        """
        self._host = settings.mcp_host
        self._port = settings.mcp_port
        self._log_level = settings.mcp_log_level
        self._access_log = settings.mcp_access_log
        self._transport = settings.mcp_transport
        self.mcp = FastMCP(SERVER_NAME)
        self.tools_registry: Dict[str, Callable] = {}

        self.register_tools(DEFAULT_TOOLS if tools is None else tools)

        logger.info(f"MCPServer initialized on port {self._port} with {len(self.tools_registry)} tools")

    def register_tools(self, tools: Dict[str, Callable]):
        """Register multiple tools with the MCP server.

        Args:
            tools: Dictionary mapping tool names to callable functions
        """
        for name, func in tools.items():
            if not name or not name.replace('_', '').replace('-', '').isalnum():
                raise ValueError(f"Tool name '{name}' contains invalid characters")

            try:
                self.tools_registry[name] = func
                self.mcp.tool(name=name)(func)
                logger.info(f"Registered tool: {name}")

            except Exception as e:
                logger.error(f"Failed to register tool {name}: {e}")
                # Remove from registry if registration failed
                self.tools_registry.pop(name, None)
                raise

    def get_registered_tools(self) -> List[str]:
        """Get list of registered tool names.

        Returns:
            List of tool names
        """
        return list(self.tools_registry.keys())

    def create_app(self, transport: Optional[Transport] = None) -> StarletteWithLifespan:
        """Create FastMCP ASGI app with health probes."""
        mcp_app = self.mcp.http_app(transport=transport or self._transport)

        async def health(request):
            return JSONResponse({
                "status": "healthy",
                "tools": len(self.tools_registry),
                "telemetry": is_otel_enabled(),
                "timestamp": int(time.time())
            })

        async def ready(request):
            return JSONResponse({
                "status": "ready",
                "tools": self.get_registered_tools(),
                "timestamp": int(time.time())
            })

        # Prepend health routes
        mcp_app.routes.insert(0, Route("/health", health))
        mcp_app.routes.insert(1, Route("/ready", ready))

        return mcp_app

    def run(self, transport: Optional[Transport] = None) -> None:
        """Run the MCP server with uvicorn."""
        if should_enable_otel():
            init_otel("minipy-mcp")

        logger.info(f"Starting MCP server on {self._host}:{self._port} with tools: {self.get_registered_tools()}")
        app = self.create_app(transport)
        try:
            uvicorn.run(
                app,
                host=self._host,
                port=self._port,
                log_level=self._log_level.lower(),
                access_log=self._access_log
            )
        except Exception as e:
            logger.error(f"Failed to start MCP server: {e}")
            raise


if __name__ == "__main__":
    settings = MCPServerSettings()
    configure_logging(settings.mcp_log_level)
    server = MCPServer(settings)
    server.run()
