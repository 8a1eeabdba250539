"""Command line entry point: ``opscenter-snowflake``."""

import asyncio
import json
import logging
from typing import Annotated, Any, Awaitable, Callable, Optional

import typer

from . import OpsCenterSnowflake, configure_logging, __version__
from ._error_handling import SnowflakeErrorHandler
from .diagnostics import check_authentication
from .exceptions import OpsCenterSnowflakeError

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="OpsCenter Snowflake - connection checks, SQL and Cortex Agent questions",
    no_args_is_help=True,
)

STATUS_MARKERS = {"success": "OK  ", "failed": "FAIL", "skipped": "SKIP"}


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"opscenter-snowflake {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-V", help="Show version and exit", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


def _run_with_service(operation: Callable[[OpsCenterSnowflake], Awaitable[Any]]) -> Any:
    """Run ``operation`` against a fresh service and always close its session."""

    async def runner() -> Any:
        service = OpsCenterSnowflake()
        try:
            return await operation(service)
        finally:
            await service.close()

    try:
        return asyncio.run(runner())
    except (OpsCenterSnowflakeError, ValueError) as exc:
        status, payload = SnowflakeErrorHandler.to_error_payload(exc)
        typer.echo(json.dumps({"status": status, **payload}), err=True)
        raise typer.Exit(1) from exc


@app.command("check-auth")
def check_auth_command() -> None:
    """Try every configured authentication method and report which ones connect."""
    results = asyncio.run(check_authentication())

    for result in results:
        typer.echo(f"[{STATUS_MARKERS[result.status]}] {result.method.value}: {result.message}")
        if result.details:
            for key, value in result.details.items():
                typer.echo(f"         {key}: {value}")

    succeeded = [result.method.value for result in results if result.status == "success"]
    if not succeeded:
        typer.echo("No authentication method succeeded", err=True)
        raise typer.Exit(1)

    typer.echo(f"Working methods: {', '.join(succeeded)}")


@app.command("query")
def query_command(
    sql: Annotated[str, typer.Argument(help="SQL statement to execute")],
) -> None:
    """Execute a SQL statement and print the rows as JSON."""
    rows = _run_with_service(lambda service: service.query(sql))
    typer.echo(json.dumps(rows, indent=2, default=str))


@app.command("ask")
def ask_command(
    question: Annotated[str, typer.Argument(help="Question about the operations data")],
) -> None:
    """Ask the Cortex Agent a question and print the structured answer."""
    answer = _run_with_service(lambda service: service.ask(question))
    typer.echo(answer.model_dump_json(indent=2))
