"""Schemas for the thread archiving pipeline.

Covers the full lifecycle:
  label search -> destination match -> ledger gate -> LLM summary
  -> block upsert -> task reconciliation -> ledger update -> audit log
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field

ATTENTION_BANNER_TEXT = "[NEEDS ATTENTION]"

# --- Config ---


class ArchiveSettings(BaseModel):
    """Configuration surface for one archiving run."""

    primary_query: str = "cvs-"  # label-name prefix that selects candidate threads
    label_prefix: str = ""  # stripped from label names before destination lookup
    internal_domain: str = ""
    lookback_days: int = 1
    append_at_top: bool = True
    task_list_name: str = ""
    user_aliases: list[str] = Field(default_factory=list)  # first alias is canonical
    timezone: str = "UTC"
    model_api_key: str = ""
    model_name: str = ""

    def missing_required(self) -> list[str]:
        """Names of configuration values whose absence aborts a run."""
        missing = []
        if not self.model_api_key:
            missing.append("GEMINI_API_KEY")
        if not self.model_name:
            missing.append("GEMINI_MODEL_NAME")
        if not self.task_list_name:
            missing.append("GOOGLE_TASKS_LIST_NAME")
        return missing


# --- Email data ---


class EmailMessage(BaseModel):
    """A single message inside a thread. Immutable once observed."""

    message_id: str
    thread_id: str
    sender: str = ""
    to: str = ""
    cc: str = ""
    subject: str = ""
    date: datetime
    body_text: str = ""


class EmailThread(BaseModel):
    """A conversation with its messages (oldest first) and label names."""

    thread_id: str
    subject: str = ""
    permalink: str = ""
    labels: list[str] = Field(default_factory=list)
    messages: list[EmailMessage] = Field(default_factory=list)

    @property
    def last_message(self) -> EmailMessage | None:
        return self.messages[-1] if self.messages else None

    @property
    def message_ids(self) -> list[str]:
        return [m.message_id for m in self.messages]


class ThreadCandidate(BaseModel):
    """A thread selected for archiving, decorated by the classifier."""

    thread: EmailThread
    labels: list[str]
    last_message_date: datetime
    needs_attention: bool = False


# --- Document content ---


class BlockMarker(BaseModel):
    """Zero-content boundary that opens the archived block of one thread."""

    kind: Literal["marker"] = "marker"
    thread_id: str
    script_entry_marker: bool = True


class Heading(BaseModel):
    kind: Literal["heading"] = "heading"
    text: str
    link: str | None = None
    level: int = 2


class Paragraph(BaseModel):
    kind: Literal["paragraph"] = "paragraph"
    text: str
    link: str | None = None
    bold: bool = False


class ListItem(BaseModel):
    kind: Literal["list_item"] = "list_item"
    text: str
    checkbox: bool = True


class Banner(BaseModel):
    """Persistent flag at the top of a section that needs a reply."""

    kind: Literal["banner"] = "banner"
    text: str = ATTENTION_BANNER_TEXT


Node = Annotated[
    BlockMarker | Heading | Paragraph | ListItem | Banner,
    Field(discriminator="kind"),
]


class Section(BaseModel):
    """A named destination inside the archive document."""

    title: str
    nodes: list[Node] = Field(default_factory=list)


class ArchiveDocumentData(BaseModel):
    """Top-level schema for the archive document file."""

    sections: list[Section] = Field(default_factory=list)


# --- LLM output ---


class ThreadAnalysis(BaseModel):
    """Summary and raw action items parsed from the model response."""

    summary: str
    action_items: list[str] = Field(default_factory=list)


# --- Results ---


class TaskReconciliationResult(BaseModel):
    """Outcome of reconciling one thread's action items with the task store."""

    attempted: bool = False
    succeeded: bool = True
    created: list[str] = Field(default_factory=list)
    skipped_unassigned: int = 0
    skipped_duplicate: int = 0
    failed: int = 0


class ResetResult(BaseModel):
    destination: str
    success: bool
    message: str


class ArchiveRunResult(BaseModel):
    """Pipeline result for one archiving run."""

    archived: int = 0
    modified_destinations: list[str] = Field(default_factory=list)
    attention_destinations: list[str] = Field(default_factory=list)
    skipped_unchanged: int = 0
    skipped_unmatched: int = 0
    extraction_failures: int = 0
    tasks_created: int = 0
    tasks_succeeded: bool = True
    message: str = ""


class DiagnosticReport(BaseModel):
    destinations: list[str] = Field(default_factory=list)
    candidate_count: int = 0


# --- Audit ---


class ArchiveAuditEntry(BaseModel):
    """A record of a change the archiver made to external or local state."""

    timestamp: datetime
    action: Literal["thread_archived", "task_created", "history_reset"]
    destination: str
    thread_id: str | None = None
    subject: str | None = None
    detail: str = ""
