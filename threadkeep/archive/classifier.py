"""Thread classifier: pick candidate threads by label and flag ones needing a reply.

Read-only against the mail source. Threads are deduplicated across labels
and returned oldest-last-message first, so archiving at the top of a
section leaves the newest conversation on top.
"""

import logging
import re
from datetime import datetime, timedelta
from email.utils import getaddresses
from zoneinfo import ZoneInfo

from threadkeep.integrations.gmail import GmailThreadSource
from threadkeep.schemas.archive import EmailMessage, EmailThread, ThreadCandidate

logger = logging.getLogger(__name__)

SEARCH_RESULT_CAP = 100
SHORT_ACK_MAX_CHARS = 40

_ANGLE_ADDRESS = re.compile(r"<([^>]+)>")


def sender_address(sender: str) -> str:
    match = _ANGLE_ADDRESS.search(sender or "")
    return (match.group(1) if match else sender or "").strip().lower()


def _is_short_acknowledgment(body: str) -> bool:
    text = body.strip().lower()
    return len(text) < SHORT_ACK_MAX_CHARS and ("thank you" in text or "thanks" in text)


def needs_attention(message: EmailMessage, internal_domain: str) -> bool:
    """An outsider wrote last and addressed someone inside the domain.

    Short thank-you notes don't count. Any error evaluating the heuristic
    yields False.
    """
    if not internal_domain:
        return False
    try:
        domain = "@" + internal_domain.lower()
        if sender_address(message.sender).endswith(domain):
            return False
        recipients = getaddresses([message.to or "", message.cc or ""])
        if not any(address.lower().endswith(domain) for _, address in recipients):
            return False
        return not _is_short_acknowledgment(message.body_text or "")
    except Exception as exc:
        logger.warning("Could not determine 'needs attention' status: %s", exc)
        return False


def build_search_query(label: str, after: str | None = None) -> str:
    query = f'label:"{label}"'
    if after:
        query += f" after:{after}"
    return query


def lookback_date(days: int, timezone: str, now: datetime | None = None) -> str:
    """``yyyy/MM/dd`` of ``days`` ago in the configured timezone."""
    moment = (now or datetime.now(ZoneInfo(timezone))).astimezone(ZoneInfo(timezone))
    return f"{moment - timedelta(days=days):%Y/%m/%d}"


def _to_candidate(thread: EmailThread, internal_domain: str) -> ThreadCandidate | None:
    last = thread.last_message
    if last is None:
        return None
    return ThreadCandidate(
        thread=thread,
        labels=list(thread.labels),
        last_message_date=last.date,
        needs_attention=needs_attention(last, internal_domain),
    )


async def select_candidate_threads(
    gmail: GmailThreadSource,
    *,
    label_prefix: str,
    lookback_days: int,
    internal_domain: str,
    full_scan: bool = False,
    timezone: str = "UTC",
    now: datetime | None = None,
) -> list[ThreadCandidate]:
    """Search every label starting with ``label_prefix`` and merge the results.

    Args:
        gmail: Thread source to search.
        label_prefix: Case-sensitive prefix selecting which labels to search.
        lookback_days: Restrict to threads after this many days ago (0 = no limit).
        internal_domain: Domain used by the needs-attention heuristic.
        full_scan: Ignore the lookback window.
        timezone: Timezone used to compute the lookback date.
        now: Reference time (defaults to the current time).

    Returns:
        Deduplicated candidates sorted by last message date, ascending.
    """
    labels = [name for name in await gmail.list_label_names() if name.startswith(label_prefix)]
    after = None
    if lookback_days > 0 and not full_scan:
        after = lookback_date(lookback_days, timezone, now)

    seen: set[str] = set()
    threads: list[EmailThread] = []
    for label in labels:
        query = build_search_query(label, after)
        for thread in await gmail.search_threads(query, max_results=SEARCH_RESULT_CAP):
            if thread.thread_id not in seen:
                seen.add(thread.thread_id)
                threads.append(thread)

    candidates = [c for c in (_to_candidate(t, internal_domain) for t in threads) if c]
    candidates.sort(key=lambda c: c.last_message_date)
    logger.info(
        "Found %d candidate thread(s) across %d label(s)%s",
        len(candidates),
        len(labels),
        f" after {after}" if after else "",
    )
    return candidates
