"""CLI entry point for the thread archiver.

Commands:
    threadkeep archive            archive new thread activity into matching sections
    threadkeep reset              clear processed-message history for sections
    threadkeep diagnose           show sections and how many threads match
    threadkeep sections list      list sections of the archive document
    threadkeep sections add       create a section
    threadkeep show               print a section as markdown
    threadkeep status             recent archiving activity
"""

import asyncio
import logging
import sys

import click

from threadkeep.config import (
    ARCHIVE_DOCUMENT_PATH,
    AUDIT_LOG_PATH,
    GEMINI_BASE_URL,
    GOOGLE_CLIENT_SECRET_FILE,
    GOOGLE_TOKEN_FILE,
    STATE_DB_PATH,
    load_archive_settings,
)

logger = logging.getLogger("threadkeep")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Threadkeep: archive labelled email threads and create follow-up tasks."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ------------------------------------------------------------------
# threadkeep archive
# ------------------------------------------------------------------


@cli.command()
@click.option(
    "--section",
    "-s",
    "sections",
    multiple=True,
    help="Only archive into this section (repeatable). Its history is reset first.",
)
def archive(sections: tuple[str, ...]) -> None:
    """Archive labelled email threads into matching sections."""
    settings = load_archive_settings()
    missing = settings.missing_required()
    if missing:
        click.echo(f"Error: Missing required config: {', '.join(missing)}", err=True)
        click.echo("Set these in secrets/internal.env or via SOPS.", err=True)
        sys.exit(1)

    try:
        message = asyncio.run(_archive_async(list(sections) or None))
    except Exception:
        logger.exception("Archive run aborted")
        click.echo("Error: Archive run aborted (see log for details).", err=True)
        sys.exit(1)
    click.echo(message)


async def _archive_async(sections: list[str] | None) -> str:
    from threadkeep.archive.document import ArchiveDocument
    from threadkeep.archive.ledger import ProcessedLedger
    from threadkeep.audit.archive_logger import ArchiveAuditLog
    from threadkeep.integrations.gemini import GeminiClient
    from threadkeep.integrations.gmail import GmailThreadSource
    from threadkeep.integrations.google_services import GoogleServiceFactory
    from threadkeep.integrations.google_tasks import GoogleTasksStore
    from threadkeep.orchestrator.archive_pipeline import run_archive
    from threadkeep.storage.properties import PropertyStore
    from threadkeep.tasks.reconcile import AliasMatcher, TaskReconciler

    settings = load_archive_settings()
    factory = GoogleServiceFactory(GOOGLE_CLIENT_SECRET_FILE, GOOGLE_TOKEN_FILE)
    document = ArchiveDocument.load(ARCHIVE_DOCUMENT_PATH)

    with PropertyStore(STATE_DB_PATH) as props:
        reconciler = TaskReconciler(
            GoogleTasksStore(factory.tasks),
            props,
            list_name=settings.task_list_name,
            matcher=AliasMatcher(settings.user_aliases),
        )
        async with GeminiClient(
            settings.model_api_key, settings.model_name, base_url=GEMINI_BASE_URL
        ) as gateway:
            result = await run_archive(
                settings=settings,
                document=document,
                ledger=ProcessedLedger(props),
                gmail=GmailThreadSource(factory.gmail),
                gateway=gateway,
                reconciler=reconciler,
                audit_log=ArchiveAuditLog(AUDIT_LOG_PATH),
                only_destinations=sections,
                on_progress=click.echo,
            )
    return result.message


# ------------------------------------------------------------------
# threadkeep reset
# ------------------------------------------------------------------


@cli.command()
@click.argument("sections", nargs=-1, required=True)
def reset(sections: tuple[str, ...]) -> None:
    """Clear processed-message history so SECTIONS are fully reprocessed."""
    from threadkeep.archive.ledger import ProcessedLedger
    from threadkeep.audit.archive_logger import ArchiveAuditLog
    from threadkeep.orchestrator.archive_pipeline import (
        render_reset_message,
        reset_destination_history,
    )
    from threadkeep.storage.properties import PropertyStore

    with PropertyStore(STATE_DB_PATH) as props:
        results = reset_destination_history(
            ProcessedLedger(props), list(sections), audit_log=ArchiveAuditLog(AUDIT_LOG_PATH)
        )
    click.echo(render_reset_message(results))


# ------------------------------------------------------------------
# threadkeep diagnose
# ------------------------------------------------------------------


@cli.command()
def diagnose() -> None:
    """Show detected sections and how many threads a full scan would match."""
    report = asyncio.run(_diagnose_async())
    click.echo(f"Sections: {len(report.destinations)}")
    for name in report.destinations:
        click.echo(f"  - {name}")
    if not report.destinations:
        click.echo("WARNING: No sections found. No matches will be possible.")
        return
    click.echo(f"Candidate threads (full scan): {report.candidate_count}")


async def _diagnose_async():
    from threadkeep.archive.document import ArchiveDocument
    from threadkeep.integrations.gmail import GmailThreadSource
    from threadkeep.integrations.google_services import GoogleServiceFactory
    from threadkeep.orchestrator.archive_pipeline import run_diagnostics

    factory = GoogleServiceFactory(GOOGLE_CLIENT_SECRET_FILE, GOOGLE_TOKEN_FILE)
    return await run_diagnostics(
        settings=load_archive_settings(),
        document=ArchiveDocument.load(ARCHIVE_DOCUMENT_PATH),
        gmail=GmailThreadSource(factory.gmail),
    )


# ------------------------------------------------------------------
# threadkeep sections / show
# ------------------------------------------------------------------


@cli.group()
def sections() -> None:
    """Manage sections of the archive document."""


@sections.command("list")
def sections_list() -> None:
    """List sections with their archived thread counts."""
    from threadkeep.archive.document import ArchiveDocument
    from threadkeep.schemas.archive import BlockMarker

    document = ArchiveDocument.load(ARCHIVE_DOCUMENT_PATH)
    if not document.sections:
        click.echo("No sections. Create one with 'threadkeep sections add NAME'.")
        return
    for section in document.sections:
        blocks = sum(1 for n in section.nodes if isinstance(n, BlockMarker))
        click.echo(f"{section.title}  ({blocks} thread(s))")


@sections.command("add")
@click.argument("title")
def sections_add(title: str) -> None:
    """Create an empty section named TITLE."""
    from threadkeep.archive.document import ArchiveDocument

    document = ArchiveDocument.load(ARCHIVE_DOCUMENT_PATH)
    try:
        document.add_section(title)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    document.save()
    click.echo(f"Added section: {title}")


@cli.command()
@click.argument("title")
def show(title: str) -> None:
    """Print section TITLE as markdown."""
    from threadkeep.archive.document import ArchiveDocument, render_markdown

    section = ArchiveDocument.load(ARCHIVE_DOCUMENT_PATH).get_section(title)
    if section is None:
        click.echo(f"Error: No section named '{title}'.", err=True)
        sys.exit(1)
    click.echo(render_markdown(section))


# ------------------------------------------------------------------
# threadkeep status
# ------------------------------------------------------------------


@cli.command()
@click.option("--hours", default=24, show_default=True, help="Lookback period in hours.")
def status(hours: int) -> None:
    """Quick overview of recent archiving activity."""
    from datetime import UTC, datetime, timedelta

    from threadkeep.audit.archive_logger import ArchiveAuditLog

    since = datetime.now(UTC) - timedelta(hours=hours)
    entries = ArchiveAuditLog(AUDIT_LOG_PATH).read_entries(since=since)

    archived = sum(1 for e in entries if e.action == "thread_archived")
    tasks = sum(1 for e in entries if e.action == "task_created")
    resets = sum(1 for e in entries if e.action == "history_reset")

    click.echo("Threadkeep Status")
    click.echo(f"  Threads archived ({hours}h): {archived}")
    click.echo(f"  Tasks created ({hours}h):    {tasks}")
    click.echo(f"  History resets ({hours}h):   {resets}")
