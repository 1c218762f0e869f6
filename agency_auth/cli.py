"""agency-auth CLI - run the service and inspect stored credentials."""

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

from .config import settings
from .errors import AgencyAuthError
from .services.store import CredentialStore
from .services.token_svc import TokenExchangeClient
from .tenant import TenantKey

app = typer.Typer(
    name="agency-auth",
    help="GHL agency OAuth credential service",
    no_args_is_help=True,
)
console = Console()

tokens_app = typer.Typer(help="Stored credential inspection")
app.add_typer(tokens_app, name="tokens")


async def _with_store(fn):
    store = CredentialStore.open(settings.database_url, echo=settings.echo_sql)
    try:
        return await fn(store)
    finally:
        await store.close()


@app.command("serve")
def serve(
    port: int = typer.Option(3000, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("0.0.0.0", "--host", help="Host to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Launch the OAuth callback / webhook API."""
    import uvicorn

    console.print(f"[bold cyan]Agency auth API listening on http://{host}:{port}[/bold cyan]")
    uvicorn.run("agency_auth.app:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_db():
    """Create the auth_db table if it does not exist."""

    async def _run(store: CredentialStore):
        await store.create_schema()

    try:
        asyncio.run(_with_store(_run))
    except AgencyAuthError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print("[green]auth_db table ready[/green]")


@app.command("authorize-url")
def authorize_url():
    """Print the marketplace consent URL for an agency install."""
    if not settings.oauth_configured:
        console.print("[red]Set GHL_CLIENT_ID and GHL_CLIENT_SECRET first.[/red]")
        raise typer.Exit(1)
    console.print(TokenExchangeClient.from_settings(settings).get_authorization_url())


@tokens_app.command("list")
def tokens_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List stored credentials (tokens masked)."""
    try:
        records = asyncio.run(_with_store(lambda store: store.list_records()))
    except AgencyAuthError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if json_output:
        console.print_json(
            json.dumps(
                [{"locationid": r.key.storage_key, **r.bundle.summary()} for r in records],
                default=str,
            )
        )
        return

    table = Table(title="Stored credentials")
    table.add_column("Tenant", style="cyan")
    table.add_column("userType")
    table.add_column("Company")
    table.add_column("Location access")
    table.add_column("Version", justify="right")
    table.add_column("Updated")
    for r in records:
        summary = r.bundle.summary()
        table.add_row(
            str(r.key),
            summary["userType"] or "-",
            summary["companyId"] or "-",
            "yes" if summary["hasLocationAccess"] else "no",
            str(r.version),
            str(r.updated_at or "-"),
        )
    console.print(table)


@tokens_app.command("show")
def tokens_show(
    location_id: str = typer.Argument(None, help="Location id (omit with --agency)"),
    agency: bool = typer.Option(False, "--agency", help="Show the agency credential"),
):
    """Show one stored credential (tokens masked)."""
    try:
        key = TenantKey.agency() if agency else TenantKey.location(location_id or "")
    except AgencyAuthError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    try:
        bundle = asyncio.run(_with_store(lambda store: store.get(key)))
    except AgencyAuthError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if bundle is None:
        console.print(f"[yellow]No credential stored for {key}[/yellow]")
        raise typer.Exit(1)

    summary = bundle.summary()
    if bundle.location_access is not None:
        summary["locationAccess"] = bundle.location_access.summary()
    console.print_json(json.dumps(summary, default=str))


if __name__ == "__main__":
    app()
