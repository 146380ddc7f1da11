"""Async Google Tasks store wrapping googleapiclient.

Only the three operations the reconciler needs: find a list by name,
list open tasks, insert a task.
"""

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


class GoogleTasksStore:
    """Task store backed by the Google Tasks API v1.

    Usage::

        store = GoogleTasksStore(factory.tasks)
        lists = await store.list_task_lists()
        titles = [t["title"] for t in await store.list_tasks(list_id)]
        await store.insert_task(list_id, title="send quote", notes="...")
    """

    def __init__(self, service: Any) -> None:
        self._svc = service

    async def list_task_lists(self) -> list[dict]:
        """Return raw task list dicts (``id``, ``title``)."""
        resp = await asyncio.to_thread(
            lambda: self._svc.tasklists().list(maxResults=100).execute()
        )
        return resp.get("items", [])

    async def list_tasks(
        self,
        list_id: str,
        *,
        max_results: int = 100,
        show_completed: bool = False,
    ) -> list[dict]:
        """Return one page of raw task dicts from a list."""
        resp = await asyncio.to_thread(
            lambda: self._svc.tasks().list(
                tasklist=list_id,
                maxResults=max_results,
                showCompleted=show_completed,
            ).execute()
        )
        return resp.get("items", [])

    async def insert_task(self, list_id: str, *, title: str, notes: str = "") -> str:
        """Create a task and return its id."""
        body = {"title": title, "notes": notes, "status": "needsAction"}
        result = await asyncio.to_thread(
            lambda: self._svc.tasks().insert(tasklist=list_id, body=body).execute()
        )
        logger.info("Created task %s: %s", result.get("id"), title)
        return result.get("id", "")
