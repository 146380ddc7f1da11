"""Pipeline handlers for archiving, history reset and diagnostics.

Each handler encapsulates a complete pipeline and returns a typed result.
The CLI calls these handlers; they never print.
"""

import logging
from collections.abc import Callable

from threadkeep.archive.blocks import (
    build_block,
    ensure_attention_banner,
    find_block,
    format_header_date,
    upsert_block,
)
from threadkeep.archive.classifier import select_candidate_threads
from threadkeep.archive.destinations import build_destination_index, match_destination
from threadkeep.archive.document import ArchiveDocument
from threadkeep.archive.ledger import ProcessedLedger
from threadkeep.audit.archive_logger import ArchiveAuditLog
from threadkeep.executors.thread_summarizer import summarize_thread, thread_subject
from threadkeep.integrations.gemini import GeminiClient
from threadkeep.integrations.gmail import GmailThreadSource
from threadkeep.schemas.archive import (
    ArchiveRunResult,
    ArchiveSettings,
    DiagnosticReport,
    ResetResult,
)
from threadkeep.tasks.reconcile import TaskReconciler

logger = logging.getLogger(__name__)

NO_NEW_EMAILS_MESSAGE = "No new emails found matching your criteria."


class ArchiveConfigError(Exception):
    """Required configuration is missing; nothing was attempted."""


def render_run_summary(result: ArchiveRunResult, task_list_name: str) -> str:
    message = f"Archiving Complete\nArchived {result.archived} new thread(s)."
    if result.modified_destinations:
        message += "\n\nModified tabs:\n- " + "\n- ".join(result.modified_destinations)
    if result.attention_destinations:
        message += "\n\nTabs needing attention:\n- " + "\n- ".join(result.attention_destinations)
    if result.extraction_failures:
        message += (
            f"\n\n{result.extraction_failures} thread(s) could not be summarized "
            "and will be retried on the next run."
        )
    if not result.tasks_succeeded:
        message += (
            f"\n\nWARNING: Could not find or access Google Tasks list named "
            f"'{task_list_name}'. No tasks were created."
        )
    return message


async def run_archive(
    *,
    settings: ArchiveSettings,
    document: ArchiveDocument,
    ledger: ProcessedLedger,
    gmail: GmailThreadSource,
    gateway: GeminiClient,
    reconciler: TaskReconciler,
    audit_log: ArchiveAuditLog | None = None,
    only_destinations: list[str] | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> ArchiveRunResult:
    """Archive new thread activity into matching sections and create tasks.

    Flow:
    1. Validate configuration; reset history for explicitly chosen sections.
    2. Select candidate threads (full scan when sections were chosen).
    3. For each thread: match a section, skip if nothing new, summarize,
       replace its block, save the document, create tasks, mark processed.
    4. Add attention banners and build the run summary.

    Args:
        settings: Run configuration.
        document: Archive document holding the destination sections.
        ledger: Processed-message ledger.
        gmail: Thread source.
        gateway: Model gateway.
        reconciler: Task reconciler; its title cache is reset here.
        audit_log: Optional audit log.
        only_destinations: Restrict to these section titles and reprocess them fully.
        on_progress: Optional callback for progress messages.

    Returns:
        ArchiveRunResult with counts and the human-readable summary.

    Raises:
        ArchiveConfigError: If required configuration is missing.
    """

    def _emit(msg: str) -> None:
        if on_progress:
            on_progress(msg)

    missing = settings.missing_required()
    if missing:
        raise ArchiveConfigError(f"Missing required config: {', '.join(missing)}")

    reconciler.start_run()

    if only_destinations:
        logger.info("Clearing history for specific tabs: %s", ", ".join(only_destinations))
        for reset in reset_destination_history(ledger, only_destinations, audit_log=audit_log):
            logger.debug("Reset %s: %s", reset.destination, reset.message)

    index = build_destination_index(document, only_destinations)
    candidates = await select_candidate_threads(
        gmail,
        label_prefix=settings.primary_query,
        lookback_days=settings.lookback_days,
        internal_domain=settings.internal_domain,
        full_scan=bool(only_destinations),
        timezone=settings.timezone,
    )

    result = ArchiveRunResult()
    if not candidates:
        _emit(NO_NEW_EMAILS_MESSAGE)
        result.message = NO_NEW_EMAILS_MESSAGE
        return result

    _emit(f"Found {len(candidates)} candidate thread(s). Processing...")

    handled: set[str] = set()
    for candidate in candidates:
        thread = candidate.thread
        if thread.thread_id in handled:
            continue

        section = match_destination(candidate.labels, index, settings.label_prefix)
        if section is None:
            result.skipped_unmatched += 1
            continue

        if candidate.needs_attention and section.title not in result.attention_destinations:
            result.attention_destinations.append(section.title)

        if not ledger.has_unprocessed(section.title, thread):
            result.skipped_unchanged += 1
            continue

        subject = thread_subject(thread)
        _emit(f"\n[{section.title}] {subject}")

        analysis = await summarize_thread(thread, gateway=gateway)
        if analysis is None:
            result.extraction_failures += 1
            _emit("  Skipped: no summary (will retry next run)")
            continue

        block = build_block(
            thread_id=thread.thread_id,
            header=f"{format_header_date(candidate.last_message_date, settings.timezone)} | {subject}",
            link=thread.permalink,
            summary=analysis.summary,
            action_lines=[reconciler.matcher.display(item) for item in analysis.action_items],
        )
        replaced = find_block(section.nodes, thread.thread_id) is not None
        section.nodes = upsert_block(section.nodes, block, append_at_top=settings.append_at_top)
        document.save()
        _emit(f"  Summary: {analysis.summary}")

        tasks = await reconciler.reconcile(
            analysis.action_items, subject=subject, link=thread.permalink
        )
        if tasks.attempted and not tasks.succeeded:
            result.tasks_succeeded = False
        for title in tasks.created:
            _emit(f"  Task: {title}")
            if audit_log:
                audit_log.log_task_created(section.title, thread.thread_id, subject, title)
        result.tasks_created += len(tasks.created)

        ledger.mark_processed(section.title, thread)
        handled.add(thread.thread_id)
        result.archived += 1
        if section.title not in result.modified_destinations:
            result.modified_destinations.append(section.title)
        if audit_log:
            audit_log.log_thread_archived(section.title, thread.thread_id, subject, replaced=replaced)

    banners_added = False
    for title in result.attention_destinations:
        section = index.get(title.lower())
        if section is None:
            continue
        section.nodes, added = ensure_attention_banner(section.nodes)
        banners_added = banners_added or added
    if banners_added:
        document.save()

    result.message = render_run_summary(result, settings.task_list_name)
    logger.info(
        "Archive run done: archived=%d unchanged=%d unmatched=%d failures=%d tasks=%d",
        result.archived,
        result.skipped_unchanged,
        result.skipped_unmatched,
        result.extraction_failures,
        result.tasks_created,
    )
    return result


def reset_destination_history(
    ledger: ProcessedLedger,
    titles: list[str],
    *,
    audit_log: ArchiveAuditLog | None = None,
) -> list[ResetResult]:
    """Forget the processed messages of each named section."""
    results = []
    for title in titles:
        reset = ledger.reset(title)
        if reset.success and audit_log:
            audit_log.log_history_reset(title)
        results.append(reset)
    return results


def render_reset_message(results: list[ResetResult]) -> str:
    if not results:
        return "No tabs were selected for reset."
    cleared = [f'"{r.destination}"' for r in results if r.success]
    failed = [f'"{r.destination}" ({r.message})' for r in results if not r.success]
    message = ""
    if cleared:
        message += f"Successfully cleared history for: {', '.join(cleared)}. "
    if failed:
        message += f"\nFailed or already clear for: {', '.join(failed)}."
    return message.strip() or "No actions performed."


async def run_diagnostics(
    *,
    settings: ArchiveSettings,
    document: ArchiveDocument,
    gmail: GmailThreadSource,
) -> DiagnosticReport:
    """Report which sections exist and how many threads a full scan would see."""
    index = build_destination_index(document)
    report = DiagnosticReport(destinations=list(index))
    logger.info("Found %d tab(s) in the document", len(index))
    if not index:
        logger.warning("No tabs were found in the document. No matches will be possible.")
        return report

    logger.info("Detected tab titles (normalized to lowercase): [%s]", ", ".join(index))
    candidates = await select_candidate_threads(
        gmail,
        label_prefix=settings.primary_query,
        lookback_days=settings.lookback_days,
        internal_domain=settings.internal_domain,
        full_scan=True,
        timezone=settings.timezone,
    )
    report.candidate_count = len(candidates)
    logger.info("Found %d candidate thread(s) in full-scan mode", len(candidates))
    return report
