"""
Command-line interface for the iBroadcast sync tool.

Run it in (or point it at) the parent directory of your music files.
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Sequence

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt

from shared.constants import DEFAULT_PARALLEL_UPLOADS, MAX_PARALLEL_UPLOADS
from shared.exceptions import SetupError
from shared.models import PromptChoice, SyncReport, UploadOutcome, UploadStatus, UploadTask
from .client import IBroadcastClient
from .config import load_environment, resolve_config
from .engine import SyncEngine

console = Console()


def parse_choice(answer: str) -> PromptChoice:
    """Map a typed answer to a choice; anything unrecognized means quit."""
    answer = (answer or "").strip().lower()
    for choice in PromptChoice:
        if answer == choice.value:
            return choice
    return PromptChoice.QUIT


def ask_choice() -> PromptChoice:
    return parse_choice(Prompt.ask("[bold]Choice[/bold]", console=console, default="q", show_default=False))


def confirm_upload(files: Sequence[Path], root: Path,
                   ask: Callable[[], PromptChoice] = ask_choice) -> bool:
    """
    List/upload/quit prompt.

    Listing shows the files and asks once more. Only an explicit upload
    answer starts the upload.
    """
    console.print(f"Found [bold]{len(files)}[/bold] files. "
                  "Press 'L' to list, or 'U' to start the upload.")
    choice = ask()
    if choice is PromptChoice.LIST:
        console.print("\n[cyan]Listing found, supported files[/cyan]")
        for path in files:
            console.print(f" - {escape(path.relative_to(root).as_posix())}")
        console.print("Press 'U' to start the upload if this looks reasonable.")
        choice = ask()

    if choice is PromptChoice.UPLOAD:
        console.print("[green]Starting upload[/green]")
        return True
    console.print("[yellow]aborted.[/yellow]")
    return False


def print_upload_start(task: UploadTask) -> None:
    console.print(f"[dim]\\[{task.ordinal}/{task.total}][/dim] Uploading: {escape(task.relative_path)}")


def print_outcome(outcome: UploadOutcome) -> None:
    prefix = f"[dim]\\[{outcome.ordinal}/{outcome.total}][/dim] {escape(outcome.relative_path)}"
    if outcome.status is UploadStatus.SKIPPED:
        console.print(f"{prefix} [dim]skipping, already uploaded[/dim]")
    elif outcome.status is UploadStatus.SUCCEEDED:
        console.print(f"{prefix} [green]Done![/green]")
    else:
        console.print(f"{prefix} [red]Failed.[/red] {escape(outcome.reason or '')}")


def print_summary(report: SyncReport) -> None:
    if report.cache_error:
        console.print(f"[yellow]Warning: {escape(report.cache_error)}[/yellow]")
    border = "green" if report.ok else "red"
    console.print(Panel.fit(
        f"Found: {report.found}\n"
        f"Uploaded: [green]{report.succeeded}[/green]\n"
        f"Skipped: {report.skipped}\n"
        f"Failed: [red]{report.failed}[/red]",
        title="Sync complete",
        border_style=border
    ))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _ask_password() -> str:
    return Prompt.ask("Password", console=console, password=True)


@click.group()
@click.version_option(version="1.0.0")
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose):
    """
    iBroadcast uploader

    Upload the music files below a directory to your iBroadcast library,
    skipping files the library already has.
    """
    _configure_logging(verbose)


def _credentials_options(func):
    func = click.argument('password', required=False)(func)
    func = click.argument('email', required=False)(func)
    func = click.option('--dir', '-d', 'root', default='.', type=click.Path(file_okay=False),
                        help='Library root directory (default: current directory)')(func)
    return func


@cli.command()
@_credentials_options
@click.option('--parallel', default=DEFAULT_PARALLEL_UPLOADS, type=click.IntRange(1, MAX_PARALLEL_UPLOADS),
              help='Number of parallel upload threads')
def upload(email, password, root, parallel):
    """
    Upload new and changed files.

    EMAIL and PASSWORD default to IBROADCAST_EMAIL and IBROADCAST_PASSWORD
    (a .env file is read too).
    """
    load_environment()
    try:
        config = resolve_config(email, password, root, parallel,
                                password_prompt=_ask_password if sys.stdin.isatty() else None)
        with IBroadcastClient(pool_size=config.parallel) as client:
            engine = SyncEngine(client, config)
            session = engine.login()
            files = engine.scan(session)
            if not files:
                console.print("[yellow]No supported files found.[/yellow]")
                return

            report = engine.sync(
                session, files,
                confirm=lambda found: confirm_upload(found, config.root),
                on_outcome=print_outcome,
                on_upload_start=print_upload_start,
            )
    except SetupError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    if report.aborted:
        return
    print_summary(report)
    if not report.ok:
        sys.exit(1)


@cli.command()
@_credentials_options
def status(email, password, root):
    """
    Show which files would be uploaded, without uploading.
    """
    load_environment()
    try:
        config = resolve_config(email, password, root,
                                password_prompt=_ask_password if sys.stdin.isatty() else None)
        with IBroadcastClient() as client:
            engine = SyncEngine(client, config)
            session = engine.login()
            files = engine.scan(session)
            report = engine.status(session, files)
    except SetupError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    console.print("Sync Status:")
    console.print(f"  Found:            {report.found}")
    console.print(f"  Already uploaded: {report.skipped}")
    console.print(f"  To upload:        {len(report.pending)}")
    console.print(f"  Unreadable:       {report.failed}")
    for rel in report.pending:
        console.print(f"    + {escape(rel)}")
    for outcome in report.outcomes:
        if outcome.status is UploadStatus.FAILED:
            console.print(f"    ! {escape(outcome.relative_path)} ({escape(outcome.reason or '')})")
    if report.cache_error:
        console.print(f"[yellow]Warning: {escape(report.cache_error)}[/yellow]")


def main():
    """Console script entry point."""
    cli()


if __name__ == '__main__':
    main()
