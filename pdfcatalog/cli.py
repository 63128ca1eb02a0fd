"""CLI interface for pdfcatalog."""

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import click

from pdfcatalog.catalog import CatalogService, PayloadHandles, build_placeholder_pdf
from pdfcatalog.config import Config
from pdfcatalog.database import CommentStatus, Database, KeyValueStore, Session
from pdfcatalog.database.models import (
    COMMENT_CATEGORIES,
    RECORD_CATEGORIES,
    PayloadResidency,
    category_display_name,
)
from pdfcatalog.errors import CatalogError, PayloadUnavailableError
from pdfcatalog.formatting import format_bytes, format_date, format_relative_time, truncate
from pdfcatalog.storage import UsageBand

database_option = click.option(
    "--database", type=click.Path(path_type=Path), help="Path to database file"
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    ctx.ensure_object(dict)
    ctx.obj["config"] = Config()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@contextmanager
def _open_catalog(ctx: click.Context, database: Path | None) -> Iterator[CatalogService]:
    config: Config = ctx.obj["config"]
    db_path = database or config.database_path

    try:
        with Database(db_path) as db:
            store = KeyValueStore(db, capacity_bytes=config.persistence.store_capacity_bytes)
            service = CatalogService(
                store,
                config,
                handles=PayloadHandles(config.preview_directory or db_path.parent / "previews"),
            )
            service.reconcile_on_load()
            yield service
    except CatalogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _echo_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        click.echo(f"Warning: {warning}", err=True)


def _current_session(service: CatalogService) -> Session:
    return service.sessions.load()


# Session


@cli.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@database_option
@click.pass_context
def login(ctx: click.Context, email: str, password: str, database: Path | None) -> None:
    """Log in with demo credentials."""
    with _open_catalog(ctx, database) as service:
        session = service.sessions.login(email, password)
    click.echo("Admin login successful!" if session.is_admin else "User login successful!")


@cli.command()
@database_option
@click.pass_context
def logout(ctx: click.Context, database: Path | None) -> None:
    with _open_catalog(ctx, database) as service:
        service.sessions.logout()
    click.echo("Logged out.")


@cli.command()
@database_option
@click.pass_context
def whoami(ctx: click.Context, database: Path | None) -> None:
    with _open_catalog(ctx, database) as service:
        session = _current_session(service)
    if not session.is_authenticated:
        click.echo("Not logged in.")
        return
    role = "admin" if session.is_admin else "user"
    click.echo(f"{session.current_user} ({role})")


# Catalog


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--category",
    type=click.Choice(list(RECORD_CATEGORIES.keys())),
    default="others",
    help="Document category",
)
@database_option
@click.pass_context
def upload(ctx: click.Context, pdf_path: Path, category: str, database: Path | None) -> None:
    """Upload a PDF into the catalog (admin only)."""
    with _open_catalog(ctx, database) as service:
        session = _current_session(service)
        result = service.upload(
            pdf_path.name,
            category,
            pdf_path.read_bytes(),
            is_admin=session.is_admin,
        )
    click.echo(f"File uploaded successfully! id={result.record.id}")
    _echo_warnings(result.warnings)


@cli.command("list")
@click.option("--search", "term", default="", help="Filter by filename substring")
@click.option(
    "--category",
    type=click.Choice(list(RECORD_CATEGORIES.keys())),
    default=None,
    help="Filter by category",
)
@database_option
@click.pass_context
def list_records(
    ctx: click.Context,
    term: str,
    category: str | None,
    database: Path | None,
) -> None:
    """List cataloged PDFs, newest first."""
    with _open_catalog(ctx, database) as service:
        records = service.list_records(term, category)

    if not records:
        click.echo("No PDFs found.")
        return

    click.echo("-" * 90)
    header = "ID".ljust(15) + "Filename".ljust(36) + "Category".ljust(12)
    header += "Size".rjust(10) + "DLs".rjust(6) + "  Status"
    click.echo(header)
    click.echo("-" * 90)

    for record in records:
        available = record.residency is not PayloadResidency.ABSENT
        click.echo(
            f"{record.id:<15}"
            f"{truncate(record.filename, 35):<36}"
            f"{category_display_name(record.category):<12}"
            f"{format_bytes(record.size_bytes):>10}"
            f"{record.download_count:>6}"
            f"  {'available' if available else 'data missing'}"
        )


@cli.command()
@click.argument("record_id", type=int)
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Destination file")
@database_option
@click.pass_context
def download(
    ctx: click.Context,
    record_id: int,
    output: Path | None,
    database: Path | None,
) -> None:
    """Download a PDF. Writes a placeholder when the data is missing."""
    with _open_catalog(ctx, database) as service:
        record = service.get(record_id)
        destination = output or Path(record.filename)
        warnings: list[str] = []
        try:
            warnings = service.record_download(record_id).warnings
            content = service.fetch_payload(record_id)
        except PayloadUnavailableError as e:
            click.echo(f"Warning: {e}. Writing a placeholder instead.", err=True)
            content = build_placeholder_pdf(record.filename)

    destination.write_bytes(content)
    click.echo(f"Downloaded: {record.filename} -> {destination}")
    _echo_warnings(warnings)


@cli.command()
@click.argument("record_id", type=int)
@click.option("--open", "launch", is_flag=True, help="Open the preview in the default viewer")
@database_option
@click.pass_context
def preview(ctx: click.Context, record_id: int, launch: bool, database: Path | None) -> None:
    """Write a preview copy of a PDF and print its path."""
    with _open_catalog(ctx, database) as service:
        handle = service.open_preview(record_id)

    if handle.is_placeholder:
        click.echo("Warning: data missing, previewing a placeholder.", err=True)
    click.echo(str(handle.path))
    if launch:
        click.launch(str(handle.path))


@cli.command()
@click.argument("record_id", type=int)
@click.confirmation_option(prompt="Are you sure you want to delete this PDF?")
@database_option
@click.pass_context
def delete(ctx: click.Context, record_id: int, database: Path | None) -> None:
    """Delete a PDF (admin only)."""
    with _open_catalog(ctx, database) as service:
        session = _current_session(service)
        filename = service.get(record_id).filename
        result = service.delete(record_id, is_admin=session.is_admin)
    click.echo(f"Deleted: {filename}")
    _echo_warnings(result.warnings)


@cli.command()
@click.confirmation_option(
    prompt="Are you sure you want to delete ALL uploaded files? This action cannot be undone."
)
@database_option
@click.pass_context
def clear(ctx: click.Context, database: Path | None) -> None:
    """Delete every PDF in the catalog (admin only)."""
    with _open_catalog(ctx, database) as service:
        session = _current_session(service)
        service.clear_all(is_admin=session.is_admin)
    click.echo("All files have been cleared successfully!")


@cli.command()
@database_option
@click.pass_context
def usage(ctx: click.Context, database: Path | None) -> None:
    """Show storage usage against the quota."""
    with _open_catalog(ctx, database) as service:
        report = service.usage()
        record_count = len(service.records)
        stored_bytes = service.kv.total_bytes()

    click.echo("Storage Usage:")
    click.echo(f"  Files: {record_count:,}")
    click.echo(f"  Used: {format_bytes(report.used_bytes)} of {format_bytes(report.limit_bytes)}")
    click.echo(f"  Percentage: {report.percentage:.1f}%")
    click.echo(f"  Remaining: {format_bytes(report.remaining_bytes)}")
    click.echo(f"  Persisted store: {format_bytes(stored_bytes)}")
    click.echo(f"  Status: {report.band.value}")
    if report.band is UsageBand.CRITICAL:
        click.echo("Warning: Storage is critically full. Please clear some files.", err=True)
    elif report.band is UsageBand.WARNING:
        click.echo("Warning: Storage is getting full. Consider clearing some files.", err=True)


@cli.command()
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Destination JSON file")
@database_option
@click.pass_context
def export(ctx: click.Context, output: Path | None, database: Path | None) -> None:
    """Export the file listing as JSON (admin only)."""
    with _open_catalog(ctx, database) as service:
        session = _current_session(service)
        listing = service.export_listing(is_admin=session.is_admin)

    destination = output or Path(f"files_list_{datetime.now().strftime('%Y-%m-%d')}.json")
    destination.write_text(json.dumps(listing, indent=2))
    click.echo(f"Files list exported to {destination}")


# Download history


@cli.group()
def history() -> None:
    """Inspect the download history."""


@history.command("list")
@click.option(
    "--period",
    type=click.Choice(["all", "today", "week", "month"]),
    default="all",
    help="Only show downloads from this period",
)
@database_option
@click.pass_context
def history_list(ctx: click.Context, period: str, database: Path | None) -> None:
    with _open_catalog(ctx, database) as service:
        events = service.history.entries(period)

    if not events:
        click.echo("No downloads yet.")
        return

    for event in events:
        click.echo(
            f"{format_relative_time(event.downloaded_at_unix):<15}"
            f"{truncate(event.filename, 40):<42}"
            f"{category_display_name(event.category):<12}"
            f"{format_bytes(event.size_bytes):>10}"
        )


@history.command("clear")
@click.confirmation_option(prompt="Are you sure you want to clear your download history?")
@database_option
@click.pass_context
def history_clear(ctx: click.Context, database: Path | None) -> None:
    with _open_catalog(ctx, database) as service:
        service.history.clear()
    click.echo("Download history cleared successfully!")


# Feedback


@cli.group()
def feedback() -> None:
    """Submit and review feedback."""


@feedback.command("submit")
@click.argument("text")
@click.option(
    "--category",
    type=click.Choice(list(COMMENT_CATEGORIES.keys())),
    default="general",
    help="Feedback category",
)
@database_option
@click.pass_context
def feedback_submit(ctx: click.Context, text: str, category: str, database: Path | None) -> None:
    with _open_catalog(ctx, database) as service:
        session = _current_session(service)
        comment = service.comments.submit(text, category, session)
    click.echo(f"Feedback submitted successfully! id={comment.id}")


@feedback.command("list")
@click.option(
    "--category",
    type=click.Choice(list(COMMENT_CATEGORIES.keys())),
    default=None,
    help="Filter by category",
)
@database_option
@click.pass_context
def feedback_list(ctx: click.Context, category: str | None, database: Path | None) -> None:
    with _open_catalog(ctx, database) as service:
        comments = service.comments.entries(category)

    if not comments:
        click.echo("No feedback yet.")
        return

    for comment in comments:
        category_name = COMMENT_CATEGORIES.get(comment.category, comment.category)
        click.echo(
            f"[{comment.id}] {comment.author} on {format_date(comment.created_at_unix)} "
            f"({category_name}, {comment.status.value})"
        )
        click.echo(f"    {comment.text}")


@feedback.command("status")
@click.argument("comment_id", type=int)
@click.argument("status", type=click.Choice([s.value for s in CommentStatus]))
@database_option
@click.pass_context
def feedback_status(
    ctx: click.Context,
    comment_id: int,
    status: str,
    database: Path | None,
) -> None:
    """Change the review status of a comment (admin only)."""
    with _open_catalog(ctx, database) as service:
        session = _current_session(service)
        service.comments.set_status(comment_id, CommentStatus(status), is_admin=session.is_admin)
    click.echo(f"Feedback {comment_id} marked {status}.")


@feedback.command("delete")
@click.argument("comment_id", type=int)
@database_option
@click.pass_context
def feedback_delete(ctx: click.Context, comment_id: int, database: Path | None) -> None:
    """Delete a comment (admin only)."""
    with _open_catalog(ctx, database) as service:
        session = _current_session(service)
        service.comments.delete(comment_id, is_admin=session.is_admin)
    click.echo(f"Feedback {comment_id} deleted.")


def main() -> None:
    """Entry point for the CLI."""
    cli(standalone_mode=True)  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":
    main()
