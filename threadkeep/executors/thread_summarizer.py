"""Thread summarizer executor: flatten a thread, ask the model, parse the answer.

Stateless: receives a thread, returns a ``ThreadAnalysis`` or None. None
means the thread must be left untouched and retried on the next run.
"""

import logging
import re

from threadkeep.integrations.gemini import GeminiClient, is_error
from threadkeep.schemas.archive import EmailThread, ThreadAnalysis

logger = logging.getLogger(__name__)

NO_SUBJECT = "No Subject"

PROMPT_TEMPLATE = """\
Analyze the following email thread and provide a response in two parts.
1.  **SUMMARY**: A concise, one-sentence summary of the email's conclusion or current status.
2.  **TASKS**: A bullet point list of action items starting with a '*'. Each action item \
must be on its own single line. Crucially, if a task is for a specific person, start the \
line with their name (e.g., "Alex to follow up..."). If there are no tasks, write "None".
---EMAIL CONTENT---
Subject: {subject}
{conversation}
---END CONTENT---"""

_REPLY_HEADER = re.compile(r"^On.*wrote:[\r\n]*", re.MULTILINE)
_QUOTED_LINES = re.compile(r"(^>.*$\n?)+", re.MULTILINE)

_SUMMARY_SECTION = re.compile(
    r"\*\*\s*SUMMARY\*\*:\s*(.*?)(?=\*\*\s*TASKS\*\*|\Z)", re.IGNORECASE | re.DOTALL
)
_TASKS_SECTION = re.compile(r"\*\*\s*TASKS\*\*:\s*(.*)", re.IGNORECASE | re.DOTALL)
# "2." left dangling at the end of the summary when the model numbers its sections.
_TRAILING_ENUMERATOR = re.compile(r"\s*\n\s*\d+\.\s*$")
_BULLET = re.compile(r"^\s*([*\-]|[0-9]+\.)\s*")
_NONE_MARKERS = frozenset({"none", "none."})


def clean_body(body: str) -> str:
    """Strip "On ... wrote:" headers and quoted reply lines."""
    text = _REPLY_HEADER.sub("", body or "")
    text = _QUOTED_LINES.sub("", text)
    return text.strip()


def flatten_thread(thread: EmailThread) -> str:
    """One ``From/Date/body`` record per message with a non-empty body."""
    records = []
    for msg in thread.messages:
        body = clean_body(msg.body_text)
        if body:
            records.append(f"From: {msg.sender}\nDate: {msg.date.isoformat()}\n---\n{body}\n\n===\n\n")
    return "".join(records)


def thread_subject(thread: EmailThread) -> str:
    last = thread.last_message
    return (last.subject if last else "") or thread.subject or NO_SUBJECT


def build_prompt(thread: EmailThread) -> str:
    conversation = flatten_thread(thread)
    if not conversation and thread.last_message:
        conversation = thread.last_message.body_text
    return PROMPT_TEMPLATE.format(subject=thread_subject(thread), conversation=conversation)


def parse_analysis(response: str) -> ThreadAnalysis | None:
    """Extract the summary and action items from a model response.

    Returns None when no summary can be found.
    """
    summary_match = _SUMMARY_SECTION.search(response)
    summary = summary_match.group(1).strip() if summary_match else ""
    summary = _TRAILING_ENUMERATOR.sub("", summary).strip()
    if not summary:
        return None

    items: list[str] = []
    tasks_match = _TASKS_SECTION.search(response)
    if tasks_match:
        block = tasks_match.group(1).strip()
        for line in block.split("\n"):
            item = _BULLET.sub("", line).strip()
            if item and item.lower() not in _NONE_MARKERS:
                items.append(item)
    return ThreadAnalysis(summary=summary, action_items=items)


async def summarize_thread(thread: EmailThread, *, gateway: GeminiClient) -> ThreadAnalysis | None:
    """Ask the model for a summary and action items.

    Returns:
        The parsed analysis, or None if the model failed or the summary
        could not be parsed.
    """
    subject = thread_subject(thread)
    response = await gateway.generate(build_prompt(thread))
    if is_error(response):
        logger.warning("AI call failed for subject %r: %s", subject, response)
        return None

    analysis = parse_analysis(response)
    if analysis is None:
        logger.warning("Skipping thread %r because no valid summary was parsed", subject)
        return None

    logger.info(
        "Summarized thread %s (%r): %d action item(s)",
        thread.thread_id,
        subject,
        len(analysis.action_items),
    )
    return analysis
