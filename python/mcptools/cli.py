"""minipy command line: run scripts locally or serve the MCP tools."""

import sys
from typing import Optional

import typer

from interpreter import ExecutionAborted, InterpreterError, execute
from mcptools.server import MCPServer, MCPServerSettings, configure_logging

app = typer.Typer(
    help="Restricted Python interpreter and MCP tool server.",
    no_args_is_help=True,
)


@app.command(name="run")
def run_script(
    file: Optional[typer.FileText] = typer.Argument(
        None,
        help="Script to run. Reads standard input when omitted.",
    ),
) -> None:
    """Run a script and print its output."""
    source = file.read() if file is not None else sys.stdin.read()
    try:
        output = execute(source)
    except ExecutionAborted as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=e.exit_code)
    except InterpreterError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    typer.echo(output)


@app.command(name="serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address. Defaults to MCP_HOST."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port. Defaults to MCP_PORT."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level. Defaults to MCP_LOG_LEVEL."),
) -> None:
    """Start the MCP server hosting the calculator and execute_python tools."""
    overrides = {"mcp_host": host, "mcp_port": port, "mcp_log_level": log_level}
    settings = MCPServerSettings(**{k: v for k, v in overrides.items() if v is not None})
    configure_logging(settings.mcp_log_level)
    MCPServer(settings).run()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
