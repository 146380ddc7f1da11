"""Async read-only Gmail thread source wrapping googleapiclient.

googleapiclient is synchronous; public methods run the blocking calls via
asyncio.to_thread(), the same way the IMAP client was wrapped.

Usage::

    gmail = GmailThreadSource(factory.gmail)
    names = await gmail.list_label_names()
    threads = await gmail.search_threads('label:"cvs-work"', max_results=100)
"""

import asyncio
import base64
import logging
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

from threadkeep.schemas.archive import EmailMessage, EmailThread

logger = logging.getLogger(__name__)

PERMALINK_BASE = "https://mail.google.com/mail/#all/"


def _decode_plain_body(payload: dict) -> str:
    """Return the first text/plain part of a message payload."""
    mime_type = payload.get("mimeType", "")
    if mime_type == "text/plain":
        data = payload.get("body", {}).get("data", "")
        if data:
            padded = data + "=" * (-len(data) % 4)
            return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    if mime_type.startswith("multipart/"):
        for part in payload.get("parts", []):
            text = _decode_plain_body(part)
            if text:
                return text
    return ""


def _message_date(raw: dict, headers: dict[str, str]) -> datetime:
    internal = raw.get("internalDate")
    if internal:
        return datetime.fromtimestamp(int(internal) / 1000, tz=UTC)
    try:
        return parsedate_to_datetime(headers.get("date", "")).astimezone(UTC)
    except (TypeError, ValueError):
        return datetime.now(UTC)


def _parse_message(raw: dict) -> EmailMessage:
    payload = raw.get("payload", {})
    headers = {h["name"].lower(): h["value"] for h in payload.get("headers", [])}
    return EmailMessage(
        message_id=raw["id"],
        thread_id=raw.get("threadId", ""),
        sender=headers.get("from", ""),
        to=headers.get("to", ""),
        cc=headers.get("cc", ""),
        subject=headers.get("subject", ""),
        date=_message_date(raw, headers),
        body_text=_decode_plain_body(payload),
    )


def _parse_thread(raw: dict, label_names: dict[str, str]) -> EmailThread:
    messages = [_parse_message(m) for m in raw.get("messages", [])]
    labels: list[str] = []
    for m in raw.get("messages", []):
        for label_id in m.get("labelIds", []):
            name = label_names.get(label_id)
            if name and name not in labels:
                labels.append(name)
    return EmailThread(
        thread_id=raw["id"],
        subject=messages[0].subject if messages else "",
        permalink=PERMALINK_BASE + raw["id"],
        labels=labels,
        messages=messages,
    )


class GmailThreadSource:
    """Read-only access to user labels and labelled threads."""

    def __init__(self, service: Any) -> None:
        self._svc = service
        self._user_labels: dict[str, str] | None = None

    def _load_user_labels(self) -> dict[str, str]:
        if self._user_labels is None:
            resp = self._svc.users().labels().list(userId="me").execute()
            self._user_labels = {
                lbl["id"]: lbl["name"]
                for lbl in resp.get("labels", [])
                if lbl.get("type") == "user"
            }
        return self._user_labels

    def _search(self, query: str, max_results: int) -> list[EmailThread]:
        label_names = self._load_user_labels()
        resp = self._svc.users().threads().list(
            userId="me", q=query, maxResults=max_results
        ).execute()
        threads = []
        for item in resp.get("threads", []):
            raw = self._svc.users().threads().get(
                userId="me", id=item["id"], format="full"
            ).execute()
            threads.append(_parse_thread(raw, label_names))
        logger.debug("Query %r returned %d thread(s)", query, len(threads))
        return threads

    async def list_label_names(self) -> list[str]:
        """Names of all user-created labels."""
        labels = await asyncio.to_thread(self._load_user_labels)
        return list(labels.values())

    async def search_threads(self, query: str, *, max_results: int = 100) -> list[EmailThread]:
        """Run a Gmail search and return full threads (messages oldest first)."""
        return await asyncio.to_thread(self._search, query, max_results)
