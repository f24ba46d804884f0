from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from mailfetch.config import Settings
from mailfetch.core.logging import configure_logging, get_logger
from mailfetch.errors import MailFetchError
from mailfetch.mailbox import FLAG_TYPES, Message, Server
from mailfetch.services import export_attachments, run_doctor_checks

app = typer.Typer(no_args_is_help=True, help="mailfetch: read messages, bodies and attachments from a mail server")


def _load_settings(base_dir: Path | None = None) -> Settings:
    settings = Settings.load(base_dir=base_dir)
    settings.ensure_directories()
    return settings


@contextmanager
def _session(name: str) -> Iterator[tuple[Settings, Server]]:
    correlation_id = uuid.uuid4().hex
    settings = _load_settings()
    configure_logging(settings.logs_dir, correlation_id=correlation_id)
    logger = get_logger(f"mailfetch.{name}", correlation_id)

    try:
        server = Server.from_config(settings.require_server(), logger=logger)
    except MailFetchError as exc:
        print(f"[red]Configuration error[/red]: {escape(str(exc))}")
        raise typer.Exit(2) from exc

    try:
        yield settings, server
    except MailFetchError as exc:
        logger.error("%s failed: %s", name, exc)
        print(f"[red]{exc.__class__.__name__}[/red]: {escape(str(exc))} (correlation_id={correlation_id})")
        raise typer.Exit(1) from exc
    finally:
        server.close()


def _summary(message: Message) -> str:
    date = message.get_date()
    sender = message.get_addresses("from", as_string=True)
    flag = "*" if message.check_flag("flagged") else " "
    seen = " " if message.check_flag("seen") else "N"
    stamp = date.strftime("%Y-%m-%d %H:%M") if date else "-"
    return escape(f"{flag}{seen} {message.uid:>6}  {stamp}  {sender}  {message.get_subject() or ''}")


@app.command("list")
def list_command(
    criteria: str = typer.Option("ALL", help="IMAP search criteria, e.g. UNSEEN or 'FROM alice'"),
    limit: int | None = typer.Option(None, help="Maximum number of messages (default MAILFETCH_SEARCH_LIMIT)"),
) -> None:
    with _session("list") as (settings, server):
        messages = server.search(criteria, limit if limit is not None else settings.search_limit)
        if not messages:
            print("[yellow]No messages found[/yellow]")
            return
        for message in messages:
            print(_summary(message))


@app.command("show")
def show_command(
    uid: int = typer.Argument(..., help="Message UID"),
    html: bool = typer.Option(False, "--html", help="Print the HTML body"),
) -> None:
    with _session("show") as (_, server):
        message = Message(uid, server)
        print(f"[bold]Subject:[/bold] {escape(message.get_subject() or '')}")
        print(f"[bold]From:[/bold] {escape(message.get_addresses('from', as_string=True))}")
        to = message.get_addresses("to", as_string=True)
        if to:
            print(f"[bold]To:[/bold] {escape(to)}")
        cc = message.get_addresses("cc", as_string=True)
        if cc:
            print(f"[bold]Cc:[/bold] {escape(cc)}")
        date = message.get_date()
        print(f"[bold]Date:[/bold] {date.isoformat() if date else '-'}")
        print()
        body = message.get_message_body(html=html)
        print(escape(body) if body is not None else "[yellow]No body[/yellow]")
        for attachment in message.attachments:
            print(f"- {escape(attachment.get_file_name() or '')} ({attachment.get_mime_type()}, {attachment.get_size()} bytes)")


@app.command("attachments")
def attachments_command(
    uid: int = typer.Argument(..., help="Message UID"),
    out: Path | None = typer.Option(None, help="Target folder (default MAILFETCH_DOWNLOAD_DIR)"),
    filename: str | None = typer.Option(None, help="Only save attachments with this exact name"),
) -> None:
    with _session("attachments") as (settings, server):
        message = Message(uid, server)
        out_dir = (out or settings.download_dir).resolve()
        files = export_attachments([message], out_dir, filename=filename, logger=server.logger)
        if not files:
            print("[yellow]Nothing saved[/yellow]")
            return
        print("[green]Saved[/green]")
        for file_path in files:
            print(f"- {file_path}")


@app.command("flag")
def flag_command(
    uid: int = typer.Argument(..., help="Message UID"),
    name: str = typer.Argument(..., help=f"One of: {', '.join(FLAG_TYPES)}"),
    on: bool = typer.Option(True, "--on/--off", help="Set or clear the flag"),
) -> None:
    with _session("flag") as (_, server):
        Message(uid, server).set_flag(name, on)
        print(f"[green]{name} {'set' if on else 'cleared'}[/green] on {uid}")


@app.command("move")
def move_command(
    uid: int = typer.Argument(..., help="Message UID"),
    mailbox: str = typer.Argument(..., help="Target mailbox"),
) -> None:
    with _session("move") as (_, server):
        Message(uid, server).move_to_mailbox(mailbox)
        print(f"[green]Moved[/green] {uid} to {mailbox}")


@app.command("delete")
def delete_command(
    uid: int = typer.Argument(..., help="Message UID"),
    expunge: bool = typer.Option(False, "--expunge", help="Expunge the mailbox afterwards"),
) -> None:
    with _session("delete") as (_, server):
        Message(uid, server).delete()
        if expunge:
            server.expunge()
        print(f"[green]Deleted[/green] {uid}")


@app.command("doctor")
def doctor_command() -> None:
    correlation_id = uuid.uuid4().hex
    settings = _load_settings()
    configure_logging(settings.logs_dir, correlation_id=correlation_id)
    logger = get_logger("mailfetch.doctor", correlation_id)
    checks = run_doctor_checks(settings, server_factory=lambda config: Server.from_config(config, logger=logger))

    print("Doctor results:")
    for check in checks:
        status = check["status"].upper()
        print(f"- [{status}] {check['check']}: {check['detail']}")


if __name__ == "__main__":
    app()
