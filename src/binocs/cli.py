"""CLI entry point for binocs."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone

import typer

from binocs.config import BinocsConfig
from binocs.store.base import RequestRecord, RequestStore
from binocs.store.memory import InMemoryRequestStore

app = typer.Typer(
    name="binocs",
    help="Inspect captured HTTP requests and hand them to an AI coding agent.",
    no_args_is_help=True,
)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def demo_records(now: datetime | None = None) -> list[RequestRecord]:
    """A handful of representative requests for trying the inspector."""
    now = now or datetime.now(timezone.utc)
    return [
        RequestRecord(
            id="demo-1",
            method="GET",
            path="/users/42",
            full_url="http://localhost:3000/users/42",
            controller_name="UsersController",
            action_name="show",
            status_code=200,
            duration_ms=12.4,
            ip_address="127.0.0.1",
            created_at=now - timedelta(minutes=5),
            params={"id": "42"},
            request_headers={"Accept": "application/json"},
            response_headers={"Content-Type": "application/json"},
            response_body='{"id": 42, "name": "Ada"}',
            logs=[
                {
                    "type": "controller",
                    "timestamp": (now - timedelta(minutes=5)).isoformat(),
                    "controller": "UsersController",
                    "action": "show",
                    "format": "json",
                    "view_runtime": 3.1,
                    "db_runtime": 1.2,
                    "duration": 12.4,
                }
            ],
        ),
        RequestRecord(
            id="demo-2",
            method="POST",
            path="/orders",
            full_url="http://localhost:3000/orders",
            controller_name="OrdersController",
            action_name="create",
            status_code=302,
            duration_ms=48.0,
            ip_address="127.0.0.1",
            created_at=now - timedelta(minutes=3),
            params={"order": {"sku": "ABC-1", "quantity": 2}},
            request_headers={"Content-Type": "application/json"},
            request_body='{"order": {"sku": "ABC-1", "quantity": 2}}',
            logs=[
                {
                    "type": "redirect",
                    "timestamp": (now - timedelta(minutes=3)).isoformat(),
                    "location": "http://localhost:3000/orders/7",
                    "status": 302,
                }
            ],
        ),
        RequestRecord(
            id="demo-3",
            method="DELETE",
            path="/sessions/current",
            controller_name="SessionsController",
            action_name="destroy",
            status_code=404,
            duration_ms=0.6,
            ip_address="10.0.0.8",
            created_at=now - timedelta(minutes=1),
        ),
        RequestRecord(
            id="demo-4",
            method="PATCH",
            path="/users/42/posts/7",
            full_url="http://localhost:3000/users/42/posts/7",
            controller_name="PostsController",
            action_name="update",
            status_code=500,
            duration_ms=1830.0,
            memory_delta=2_400_000,
            ip_address="10.0.0.8",
            created_at=now - timedelta(seconds=20),
            params={"user_id": "42", "id": "7", "post": {"title": ""}},
            request_body='{"post": {"title": ""}}',
            exception={
                "class": "NoMethodError",
                "message": "undefined method `strip' for nil",
                "backtrace": [
                    "app/models/post.rb:14:in `normalize_title'",
                    "app/controllers/posts_controller.rb:22:in `update'",
                ],
            },
        ),
    ]


def _open_store(config: BinocsConfig, demo: bool) -> RequestStore:
    if demo:
        return InMemoryRequestStore(demo_records())
    if not config.database:
        typer.echo(
            "Error: no database configured. Pass --db, set BINOCS_DATABASE, or use --demo.",
            err=True,
        )
        raise typer.Exit(1)
    if not os.path.isfile(config.database):
        typer.echo(f"Error: Database not found: {config.database}", err=True)
        raise typer.Exit(1)

    from binocs.store.sqlite import SQLiteRequestStore

    return SQLiteRequestStore(config.database)


@app.command()
def tui(
    db: str | None = typer.Option(
        None, "--db", "-d", help="SQLite database with the binocs_requests table."
    ),
    refresh: float | None = typer.Option(
        None, "--refresh", "-r", help="Auto-refresh interval in seconds."
    ),
    spec_url: str | None = typer.Option(
        None, "--spec-url", help="OpenAPI document URL for request matching."
    ),
    demo: bool = typer.Option(
        False, "--demo", help="Browse built-in sample requests instead of a database."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Open the interactive request inspector."""
    setup_logging(verbose)

    config = BinocsConfig.load(config_file)
    if db:
        config.database = db
    if refresh is not None:
        config.tui.refresh_interval = refresh
    if spec_url:
        config.openapi.spec_url = spec_url

    store = _open_store(config, demo)

    from binocs.agent.orchestrator import AgentOrchestrator
    from binocs.agent.registry import AgentRegistry
    from binocs.openapi.client import SpecClient
    from binocs.tui.app import BinocsApp

    orchestrator = AgentOrchestrator(AgentRegistry(), config.agent)
    spec_client = SpecClient(config.openapi)
    BinocsApp(store, orchestrator=orchestrator, spec_client=spec_client, config=config).run()


@app.command()
def stats(
    db: str | None = typer.Option(
        None, "--db", "-d", help="SQLite database with the binocs_requests table."
    ),
    demo: bool = typer.Option(False, "--demo", help="Use built-in sample requests."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Print aggregate counts over the captured requests."""
    config = BinocsConfig.load(config_file)
    if db:
        config.database = db
    summary = _open_store(config, demo).stats()

    avg = f"{summary.avg_duration:.2f}ms" if summary.avg_duration is not None else "N/A"
    typer.echo(f"Total requests: {summary.total}")
    typer.echo(f"Today: {summary.today}")
    typer.echo(f"Average duration: {avg}")
    typer.echo(f"Error rate: {summary.error_rate:.2f}%")


@app.command("spec-match")
def spec_match(
    method: str = typer.Argument(help="HTTP method, e.g. GET."),
    path: str = typer.Argument(help="Request path, e.g. /users/42."),
    spec_url: str | None = typer.Option(
        None, "--spec-url", help="OpenAPI document URL (default: from env/config)."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Show which documented operation a request maps to."""
    setup_logging(verbose)

    from binocs.openapi.client import SpecClient
    from binocs.openapi.matcher import build_ui_url, find_operation

    config = BinocsConfig.load(config_file)
    if spec_url:
        config.openapi.spec_url = spec_url
    client = SpecClient(config.openapi)
    if not client.enabled:
        typer.echo("Error: no spec URL. Pass --spec-url or set BINOCS_SPEC_URL.", err=True)
        raise typer.Exit(1)

    spec = client.fetch_spec()
    if spec is None:
        typer.echo(f"Error: could not load spec from {client.spec_url}", err=True)
        raise typer.Exit(1)

    operation = find_operation(spec, method, path)
    if operation is None:
        typer.echo(f"No operation matches {method.upper()} {path}")
        raise typer.Exit(1)

    typer.echo(f"Operation: {operation.operation_id or 'N/A'}")
    typer.echo(f"Spec path: {operation.method.upper()} {operation.spec_path}")
    if operation.summary:
        typer.echo(f"Summary: {operation.summary}")
    if operation.tags:
        typer.echo(f"Tags: {', '.join(operation.tags)}")
    if operation.deprecated:
        typer.echo("Deprecated: yes")
    ui_url = build_ui_url(operation, config.openapi.absolute(config.openapi.ui_url))
    if ui_url:
        typer.echo(f"Docs: {ui_url}")


def main() -> None:
    app()
