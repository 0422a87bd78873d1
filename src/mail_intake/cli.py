"""Command-line interface for mail-intake.

Usage:
    mail-intake serve --port 8000
    mail-intake emails list --limit 20
    mail-intake emails show <email-id>
    mail-intake submit --sender a@b.com --to c@d.com --subject Hi --body hello
    mail-intake validate payload.json

Example:
    $ MI_ENFORCE_AUTH=false mail-intake serve
    $ mail-intake submit --url http://localhost:8000 \\
        --sender me@example.com --to you@example.com \\
        --subject "Report" --body-file report.txt
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .client import IntakeClient
from .config import IntakeSettings, load_settings
from .errors import MalformedPayload, StoreError
from .handler import parse_submission
from .logger import configure_logging
from .store import SqliteEmailStore
from .validation import validate_submission

console = Console()
err_console = Console(stderr=True)


def get_store(db_path: str) -> SqliteEmailStore:
    """Create a SqliteEmailStore with the given database path."""
    return SqliteEmailStore(db_path)


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {escape(message)}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to config.ini (default: $MI_CONFIG or ./config.ini).")
@click.option("--db", "db_path", default=None, help="Override the database path.")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], db_path: Optional[str]) -> None:
    """mail-intake: validate email records and store them."""
    try:
        settings = load_settings(config_path)
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(1)
    if db_path:
        settings.db_path = db_path
    ctx.obj = settings


@main.command()
@click.option("--host", default=None, help="Bind address (default from config).")
@click.option("--port", type=int, default=None, help="Bind port (default from config).")
@click.pass_obj
def serve(settings: IntakeSettings, host: Optional[str], port: Optional[int]) -> None:
    """Run the HTTP server."""
    import uvicorn

    from .server import build_app

    configure_logging(settings.log_level)
    uvicorn.run(
        build_app(settings),
        host=host or settings.host,
        port=port or settings.port,
    )


@main.group()
def emails() -> None:
    """Inspect stored emails."""


@emails.command("list")
@click.option("--limit", type=int, default=50, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def list_emails(settings: IntakeSettings, limit: int, as_json: bool) -> None:
    """List the most recently stored emails."""
    store = get_store(settings.db_path)
    try:
        run_async(store.init_db())
        records = run_async(store.list_emails(limit))
    except StoreError as exc:
        print_error(str(exc))
        sys.exit(1)

    if as_json:
        print_json([r.model_dump() for r in records])
        return

    if not records:
        console.print("[dim]No emails stored.[/dim]")
        return

    table = Table(title="Stored emails")
    table.add_column("ID", style="cyan")
    table.add_column("Created")
    table.add_column("Sender")
    table.add_column("Recipients")
    table.add_column("Subject")
    for r in records:
        table.add_row(r.id, r.created_at or "-", r.sender, ", ".join(r.recipients), r.subject[:60])
    console.print(table)


@emails.command("show")
@click.argument("email_id")
@click.pass_obj
def show_email(settings: IntakeSettings, email_id: str) -> None:
    """Show one stored email."""
    store = get_store(settings.db_path)
    try:
        run_async(store.init_db())
        record = run_async(store.get_email(email_id))
    except StoreError as exc:
        print_error(str(exc))
        sys.exit(1)
    if record is None:
        print_error(f"Email '{email_id}' not found")
        sys.exit(1)
    print_json(record.model_dump())


@main.command()
@click.option("--url", default="http://localhost:8000", show_default=True, help="Server base URL.")
@click.option("--token", envvar="MI_API_TOKEN", default=None, help="API token.")
@click.option("--sender", required=True)
@click.option("--to", "recipients", multiple=True, required=True, help="Recipient (repeatable).")
@click.option("--cc", multiple=True, help="CC address (repeatable).")
@click.option("--bcc", multiple=True, help="BCC address (repeatable).")
@click.option("--subject", required=True)
@click.option("--body", default=None)
@click.option("--body-file", type=click.Path(exists=True, dir_okay=False), default=None)
def submit(
    url: str,
    token: Optional[str],
    sender: str,
    recipients: tuple,
    cc: tuple,
    bcc: tuple,
    subject: str,
    body: Optional[str],
    body_file: Optional[str],
) -> None:
    """Submit an email to a running server."""
    if body_file:
        body = Path(body_file).read_text()
    if body is None:
        print_error("Provide --body or --body-file")
        sys.exit(1)

    client = IntakeClient(url, token=token)
    result = client.submit(
        subject=subject,
        sender=sender,
        recipients=recipients,
        cc=cc,
        bcc=bcc,
        body=body,
    )
    if result.ok:
        print_success(f"Email stored with id {result.email_id}")
        return
    print_error(f"{result.error} (HTTP {result.status_code})")
    for detail in result.details:
        err_console.print(f"  - {escape(str(detail))}")
    sys.exit(1)


@main.command()
@click.argument("payload_file", type=click.Path(exists=True, dir_okay=False))
def validate(payload_file: str) -> None:
    """Validate a JSON payload file without submitting it."""
    try:
        submission = parse_submission(Path(payload_file).read_bytes())
    except MalformedPayload as exc:
        print_error(exc.message)
        for detail in exc.details or []:
            err_console.print(f"  - {escape(str(detail))}")
        sys.exit(1)

    result = validate_submission(submission)
    if result.valid:
        print_success("Payload is valid")
        return
    print_error("Validation failed")
    for issue in result.issues:
        err_console.print(f"  - ({issue.kind.value}) {escape(issue.message)}")
    sys.exit(1)


if __name__ == "__main__":
    main()
