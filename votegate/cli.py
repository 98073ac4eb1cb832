"""Command line interface for running and operating Votegate.

Commands:
    serve       Run the API server
    init-db     Create the PostgreSQL schema
    board       Show the feature board
    implement   Start implementation of a feature (operator)
    complete    Mark a feature implemented (operator)
"""

import asyncio
from typing import Optional

import httpx
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from votegate import __version__

DEFAULT_API_URL = "http://localhost:8000"

app = typer.Typer(
    name="votegate",
    help="Feature voting with automatic implementation dispatch",
    add_completion=False,
)
console = Console()


def _api_client(api_url: str) -> httpx.Client:
    return httpx.Client(base_url=api_url, timeout=10.0)


def _fail(response: httpx.Response) -> None:
    try:
        body = response.json()
        detail = body.get("detail") or body.get("error") or response.text
    except ValueError:
        detail = response.text
    console.print(f"[red]Error {response.status_code}:[/red] {detail}")
    raise typer.Exit(code=1)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"votegate version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Votegate command line."""
    load_dotenv()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run("votegate.api.main:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_db() -> None:
    """Create the feature and vote tables in DATABASE_URL."""
    from votegate.bootstrap.database import close_database_engine, get_session_factory
    from votegate.infrastructure.adapters.persistence.postgres_feature_store import (
        PostgresFeatureStore,
    )

    async def _run() -> None:
        try:
            await PostgresFeatureStore(get_session_factory()).create_schema()
        finally:
            await close_database_engine()

    try:
        asyncio.run(_run())
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None
    console.print("[green]Schema ready[/green]")


@app.command()
def board(
    api_url: str = typer.Option(DEFAULT_API_URL, "--api-url", "-u", help="API base URL"),
    user_id: Optional[str] = typer.Option(
        None, "--user", help="Show votes for this user id"
    ),
) -> None:
    """Show the feature board."""
    headers = {"X-User-Id": user_id} if user_id else {}
    with _api_client(api_url) as client:
        response = client.get("/v1/features", headers=headers)
    if response.status_code != 200:
        _fail(response)

    data = response.json()
    table = Table(title=f"Feature board (threshold {data['threshold']})")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Votes", justify="right")
    table.add_column("Voted", justify="center")

    for feature in data["features"] + data["implementedFeatures"]:
        table.add_row(
            feature["id"],
            feature["title"],
            feature["status"],
            str(feature["voteTotal"]),
            "✓" if feature["userHasVoted"] else "",
        )
    console.print(table)


def _operator_headers(token: Optional[str], operator_id: Optional[str]) -> dict[str, str]:
    if not token:
        console.print("[red]Operator token required (--token or OPERATOR_TOKEN)[/red]")
        raise typer.Exit(code=1)
    headers = {"Authorization": f"Bearer {token}"}
    if operator_id:
        headers["X-Operator-Id"] = operator_id
    return headers


@app.command()
def implement(
    feature_id: str = typer.Argument(..., help="Feature to implement"),
    api_url: str = typer.Option(DEFAULT_API_URL, "--api-url", "-u", help="API base URL"),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        envvar="OPERATOR_TOKEN",
        help="Operator token (default: $OPERATOR_TOKEN)",
        show_default=False,
    ),
    operator_id: Optional[str] = typer.Option(None, "--operator", help="Audit name"),
) -> None:
    """Claim a feature and start the implementation agent."""
    headers = _operator_headers(token, operator_id)
    with _api_client(api_url) as client:
        response = client.post(f"/v1/features/{feature_id}/implement", headers=headers)
    if response.status_code != 200:
        _fail(response)

    data = response.json()
    if not data["claimed"]:
        console.print(f"[yellow]{data['message']}[/yellow]")
    elif data["dispatched"]:
        console.print(f"[green]{data['message']}[/green]")
    else:
        console.print(f"[red]{data['message']}[/red]")
        raise typer.Exit(code=2)


@app.command()
def complete(
    feature_id: str = typer.Argument(..., help="Feature to mark implemented"),
    api_url: str = typer.Option(DEFAULT_API_URL, "--api-url", "-u", help="API base URL"),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        envvar="OPERATOR_TOKEN",
        help="Operator token (default: $OPERATOR_TOKEN)",
        show_default=False,
    ),
    operator_id: Optional[str] = typer.Option(None, "--operator", help="Audit name"),
    external_ref: Optional[str] = typer.Option(
        None, "--ref", help="Reference to record (e.g. PR URL)"
    ),
) -> None:
    """Force a feature to implemented (idempotent)."""
    headers = _operator_headers(token, operator_id)
    with _api_client(api_url) as client:
        response = client.post(
            f"/v1/features/{feature_id}/complete",
            headers=headers,
            json={"externalRef": external_ref} if external_ref else None,
        )
    if response.status_code != 200:
        _fail(response)

    data = response.json()
    if data["alreadyImplemented"]:
        console.print("[yellow]Feature was already implemented[/yellow]")
    else:
        console.print(
            f"[green]Feature implemented[/green] (was {data['previousStatus']})"
        )


if __name__ == "__main__":
    app()
