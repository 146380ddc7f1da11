"""Tests for the thread summarizer executor (threadkeep/executors/thread_summarizer.py)."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

from threadkeep.executors.thread_summarizer import (
    NO_SUBJECT,
    build_prompt,
    clean_body,
    flatten_thread,
    parse_analysis,
    summarize_thread,
    thread_subject,
)
from threadkeep.schemas.archive import EmailMessage, EmailThread


def _thread(*bodies: str, subject: str = "Quote for Q3") -> EmailThread:
    return EmailThread(
        thread_id="t1",
        subject=subject,
        messages=[
            EmailMessage(
                message_id=f"m{i}",
                thread_id="t1",
                sender=f"person{i}@acme.com",
                subject=subject,
                date=datetime(2025, 6, i + 1, tzinfo=timezone.utc),
                body_text=body,
            )
            for i, body in enumerate(bodies)
        ],
    )


class TestCleanBody:
    def test_strips_quoted_reply(self):
        body = "Sounds good.\n\nOn Mon, Jun 2, 2025 Bob wrote:\n> earlier text\n> more\n"
        assert clean_body(body) == "Sounds good."

    def test_keeps_plain_text(self):
        assert clean_body("  Hello there  ") == "Hello there"

    def test_empty(self):
        assert clean_body("") == ""


class TestFlatten:
    def test_records_per_message(self):
        text = flatten_thread(_thread("First", "Second"))
        assert text.count("From: ") == 2
        assert "From: person0@acme.com\nDate: 2025-06-01T00:00:00+00:00\n---\nFirst\n\n===\n\n" in text

    def test_skips_messages_that_are_only_quotes(self):
        text = flatten_thread(_thread("First", "> First"))
        assert text.count("From: ") == 1

    def test_prompt_falls_back_to_last_body(self):
        prompt = build_prompt(_thread("> only quoted"))
        assert "> only quoted" in prompt

    def test_prompt_contains_subject_and_markers(self):
        prompt = build_prompt(_thread("Hello"))
        assert "Subject: Quote for Q3" in prompt
        assert "---EMAIL CONTENT---" in prompt
        assert prompt.endswith("---END CONTENT---")
        assert "**SUMMARY**" in prompt and "**TASKS**" in prompt

    def test_missing_subject(self):
        assert thread_subject(_thread("x", subject="")) == NO_SUBJECT


class TestParseAnalysis:
    def test_summary_and_tasks(self):
        response = (
            "**SUMMARY**: The quote was accepted.\n"
            "**TASKS**:\n* Alex to send quote\n- Bob to sign\n3. Carol to file"
        )
        analysis = parse_analysis(response)
        assert analysis.summary == "The quote was accepted."
        assert analysis.action_items == ["Alex to send quote", "Bob to sign", "Carol to file"]

    def test_numbered_sections(self):
        response = "1. **SUMMARY**: Resolved.\n2. **TASKS**: None"
        analysis = parse_analysis(response)
        assert analysis.summary == "Resolved."
        assert analysis.action_items == []

    def test_none_is_case_insensitive(self):
        assert parse_analysis("**SUMMARY**: x\n**TASKS**: NONE.").action_items == []
        assert parse_analysis("**SUMMARY**: x\n**TASKS**:\n* None").action_items == []

    def test_missing_tasks_section(self):
        analysis = parse_analysis("**Summary**: Resolved")
        assert analysis.summary == "Resolved"
        assert analysis.action_items == []

    def test_missing_summary_fails(self):
        assert parse_analysis("**TASKS**:\n* Alex to send quote") is None
        assert parse_analysis("I could not analyze this.") is None
        assert parse_analysis("**SUMMARY**:   \n**TASKS**: None") is None


class TestSummarizeThread:
    async def test_success(self):
        gateway = AsyncMock()
        gateway.generate = AsyncMock(return_value="**SUMMARY**: Done.\n**TASKS**: None")
        analysis = await summarize_thread(_thread("Hello"), gateway=gateway)
        assert analysis.summary == "Done."
        prompt = gateway.generate.call_args.args[0]
        assert "Hello" in prompt

    async def test_gateway_error_returns_none(self):
        gateway = AsyncMock()
        gateway.generate = AsyncMock(return_value="Error: API call failed.")
        assert await summarize_thread(_thread("Hello"), gateway=gateway) is None

    async def test_unparsable_returns_none(self):
        gateway = AsyncMock()
        gateway.generate = AsyncMock(return_value="Sorry, no idea.")
        assert await summarize_thread(_thread("Hello"), gateway=gateway) is None
