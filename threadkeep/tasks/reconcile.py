"""Task reconciliation: turn the user's action items into tasks exactly once.

Only items that begin with one of the user's aliases become tasks. A task is
skipped when an open task with the same normalized title already exists in
the store, or was created earlier in the same run.
"""

import logging
import re

from threadkeep.integrations.google_tasks import GoogleTasksStore
from threadkeep.schemas.archive import TaskReconciliationResult
from threadkeep.storage.properties import PropertyStore

logger = logging.getLogger(__name__)

TASK_LIST_ID_PROPERTY_PREFIX = "taskListId_"
EXISTING_TASKS_PAGE_SIZE = 100


def normalize_title(title: str) -> str:
    return title.strip().lower()


def task_notes(subject: str, link: str) -> str:
    return f'From email: "{subject}"\nLink: {link}'


class AliasMatcher:
    """Recognizes action items addressed to the user.

    An alias matches only at the start of the item and only as a whole
    word, so "Alex" does not claim "Alexander to call back".
    """

    def __init__(self, aliases: list[str]) -> None:
        self._aliases = [a.strip() for a in aliases if a.strip()]
        # Longest first so "Alex Burdenko" wins over "Alex".
        ordered = sorted(self._aliases, key=len, reverse=True)
        self._patterns = [
            re.compile(rf"^\s*{re.escape(alias)}(?!\w)\s*(?:to\b|:)?\s*", re.IGNORECASE)
            for alias in ordered
        ]

    @property
    def canonical(self) -> str:
        return self._aliases[0] if self._aliases else ""

    def task_title(self, item: str) -> str | None:
        """The item with its alias and connective removed, or None if not the user's."""
        for pattern in self._patterns:
            match = pattern.match(item)
            if match:
                return item[match.end():].strip()
        return None

    def display(self, item: str) -> str:
        """How an action item is shown in the archived block."""
        title = self.task_title(item)
        if title is None or not title:
            return item
        return f"{self.canonical} to {title}"


class TaskTitleCache:
    """Normalized titles of open tasks, fetched at most once per run.

    Call ``reset()`` at the start of every run; titles are never carried
    over between runs.
    """

    def __init__(self) -> None:
        self._titles: set[str] | None = None
        self.fetch_failed = False

    def reset(self) -> None:
        self._titles = None
        self.fetch_failed = False

    async def load(
        self,
        store: GoogleTasksStore,
        list_id: str,
        *,
        page_size: int = EXISTING_TASKS_PAGE_SIZE,
    ) -> set[str]:
        if self._titles is not None:
            return self._titles
        titles: set[str] = set()
        try:
            for task in await store.list_tasks(list_id, max_results=page_size, show_completed=False):
                if task.get("title"):
                    titles.add(normalize_title(task["title"]))
        except Exception as exc:
            logger.error("Error fetching existing tasks: %s", exc)
            self.fetch_failed = True
        self._titles = titles
        logger.info("Initialized task cache with %d existing task(s)", len(titles))
        return titles

    def __contains__(self, title: str) -> bool:
        return self._titles is not None and normalize_title(title) in self._titles

    def add(self, title: str) -> None:
        if self._titles is None:
            self._titles = set()
        self._titles.add(normalize_title(title))


class TaskReconciler:
    """Creates the user's tasks for one thread at a time.

    Usage::

        reconciler = TaskReconciler(store, props, list_name="CVS Work", matcher=matcher)
        reconciler.start_run()
        result = await reconciler.reconcile(items, subject="Quote", link="https://...")
    """

    def __init__(
        self,
        store: GoogleTasksStore,
        properties: PropertyStore,
        *,
        list_name: str,
        matcher: AliasMatcher,
        cache: TaskTitleCache | None = None,
    ) -> None:
        self._store = store
        self._properties = properties
        self._list_name = list_name
        self._matcher = matcher
        self._cache = cache or TaskTitleCache()

    @property
    def matcher(self) -> AliasMatcher:
        return self._matcher

    def start_run(self) -> None:
        self._cache.reset()

    async def resolve_list_id(self) -> str | None:
        """Find the task list by display name; the id is persisted once found."""
        key = TASK_LIST_ID_PROPERTY_PREFIX + self._list_name
        cached = self._properties.get(key)
        if cached:
            return cached
        try:
            task_lists = await self._store.list_task_lists()
        except Exception as exc:
            logger.error("Error accessing the task store: %s", exc)
            return None
        for task_list in task_lists:
            if task_list.get("title", "").lower() == self._list_name.lower():
                self._properties.set(key, task_list["id"])
                return task_list["id"]
        return None

    async def reconcile(self, items: list[str], *, subject: str, link: str) -> TaskReconciliationResult:
        """Create a task for every new item assigned to the user.

        Returns:
            Result whose ``succeeded`` is False only when the store (or the
            list of existing tasks) could not be reached.
        """
        result = TaskReconciliationResult(attempted=bool(items))
        if not items:
            return result

        list_id = await self.resolve_list_id()
        if not list_id:
            logger.error("Task list %r not found. Cannot create tasks.", self._list_name)
            result.succeeded = False
            return result

        await self._cache.load(self._store, list_id)
        if self._cache.fetch_failed:
            logger.error(
                "Could not fetch existing tasks, so duplicates cannot be ruled out. "
                "Skipping task creation for this run."
            )
            result.succeeded = False
            return result

        for item in items:
            title = self._matcher.task_title(item)
            if title is None:
                logger.debug("Skipping task not assigned to the user: %r", item)
                result.skipped_unassigned += 1
                continue
            if not title:
                result.skipped_unassigned += 1
                continue
            if title in self._cache:
                logger.info("Skipping duplicate task: %r", title)
                result.skipped_duplicate += 1
                continue
            try:
                await self._store.insert_task(list_id, title=title, notes=task_notes(subject, link))
            except Exception as exc:
                logger.error("Failed to create task %r: %s", title, exc)
                result.failed += 1
                continue
            self._cache.add(title)
            result.created.append(title)

        return result
