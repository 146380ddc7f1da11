"""Tests for task reconciliation (threadkeep/tasks/reconcile.py)."""

import pytest

from threadkeep.storage.properties import PropertyStore
from threadkeep.tasks.reconcile import (
    TASK_LIST_ID_PROPERTY_PREFIX,
    AliasMatcher,
    TaskReconciler,
    TaskTitleCache,
    task_notes,
)

ALIASES = ["Alex (Google)", "Alex Burdenko", "Alex"]


class FakeTaskStore:
    """In-memory task store with failure switches."""

    def __init__(self, lists=None, tasks=None):
        self.lists = lists if lists is not None else [{"id": "L1", "title": "CVS Work"}]
        self.tasks: list[dict] = list(tasks or [])
        self.list_calls = 0
        self.task_list_calls = 0
        self.fail_lists = False
        self.fail_list_tasks = False
        self.fail_titles: set[str] = set()

    async def list_task_lists(self):
        self.list_calls += 1
        if self.fail_lists:
            raise RuntimeError("store unreachable")
        return self.lists

    async def list_tasks(self, list_id, *, max_results=100, show_completed=False):
        self.task_list_calls += 1
        if self.fail_list_tasks:
            raise RuntimeError("store unreachable")
        return [t for t in self.tasks if show_completed or t.get("status") != "completed"][:max_results]

    async def insert_task(self, list_id, *, title, notes=""):
        if title in self.fail_titles:
            raise RuntimeError("insert failed")
        self.tasks.append({"id": f"task{len(self.tasks)}", "title": title, "notes": notes, "list": list_id})
        return f"task{len(self.tasks)}"


@pytest.fixture
def props(tmp_path):
    with PropertyStore(tmp_path / "state.db") as store:
        yield store


def _reconciler(store, props, list_name="CVS Work"):
    r = TaskReconciler(store, props, list_name=list_name, matcher=AliasMatcher(ALIASES))
    r.start_run()
    return r


class TestAliasMatcher:
    def test_strips_alias_and_connective(self):
        m = AliasMatcher(ALIASES)
        assert m.task_title("Alex to send quote") == "send quote"
        assert m.task_title("alex: send quote") == "send quote"
        assert m.task_title("Alex send quote") == "send quote"

    def test_longest_alias_wins(self):
        m = AliasMatcher(ALIASES)
        assert m.task_title("Alex Burdenko to review") == "review"
        assert m.task_title("Alex (Google) to review") == "review"

    def test_word_boundary(self):
        m = AliasMatcher(ALIASES)
        assert m.task_title("Alexander to call back") is None

    def test_to_must_be_a_word(self):
        assert AliasMatcher(["Alex"]).task_title("Alex tomorrow: call") == "tomorrow: call"

    def test_not_at_start(self):
        assert AliasMatcher(ALIASES).task_title("Bob to ask Alex") is None

    def test_display(self):
        m = AliasMatcher(ALIASES)
        assert m.display("alex to send quote") == "Alex (Google) to send quote"
        assert m.display("Bob to sign") == "Bob to sign"

    def test_no_aliases(self):
        m = AliasMatcher([])
        assert m.task_title("Alex to send") is None
        assert m.canonical == ""


class TestTitleCache:
    async def test_fetches_once_per_run(self):
        store = FakeTaskStore(tasks=[{"title": " Send Quote "}])
        cache = TaskTitleCache()
        await cache.load(store, "L1")
        await cache.load(store, "L1")
        assert store.task_list_calls == 1
        assert "send quote" in cache

    async def test_reset_forces_refetch(self):
        store = FakeTaskStore()
        cache = TaskTitleCache()
        await cache.load(store, "L1")
        cache.reset()
        await cache.load(store, "L1")
        assert store.task_list_calls == 2

    async def test_completed_tasks_excluded(self):
        store = FakeTaskStore(tasks=[{"title": "done thing", "status": "completed"}])
        cache = TaskTitleCache()
        await cache.load(store, "L1")
        assert "done thing" not in cache

    async def test_fetch_failure_degrades_to_empty(self):
        store = FakeTaskStore()
        store.fail_list_tasks = True
        cache = TaskTitleCache()
        titles = await cache.load(store, "L1")
        assert titles == set()
        assert cache.fetch_failed is True


class TestResolveListId:
    async def test_found_and_persisted(self, props):
        store = FakeTaskStore(lists=[{"id": "L9", "title": "cvs work"}])
        assert await _reconciler(store, props).resolve_list_id() == "L9"
        assert props.get(TASK_LIST_ID_PROPERTY_PREFIX + "CVS Work") == "L9"

    async def test_cached_id_skips_lookup(self, props):
        props.set(TASK_LIST_ID_PROPERTY_PREFIX + "CVS Work", "cached")
        store = FakeTaskStore()
        assert await _reconciler(store, props).resolve_list_id() == "cached"
        assert store.list_calls == 0

    async def test_not_found(self, props):
        store = FakeTaskStore(lists=[{"id": "L1", "title": "Other"}])
        assert await _reconciler(store, props).resolve_list_id() is None

    async def test_store_error(self, props):
        store = FakeTaskStore()
        store.fail_lists = True
        assert await _reconciler(store, props).resolve_list_id() is None


class TestReconcile:
    async def test_creates_assigned_task_with_notes(self, props):
        store = FakeTaskStore()
        result = await _reconciler(store, props).reconcile(
            ["Alex to send quote", "Bob to sign"], subject="Quote", link="https://mail/t1"
        )
        assert result.succeeded is True
        assert result.created == ["send quote"]
        assert result.skipped_unassigned == 1
        assert store.tasks[0]["title"] == "send quote"
        assert store.tasks[0]["notes"] == task_notes("Quote", "https://mail/t1")
        assert store.tasks[0]["notes"] == 'From email: "Quote"\nLink: https://mail/t1'

    async def test_existing_task_not_duplicated(self, props):
        store = FakeTaskStore(tasks=[{"title": "Send Quote"}])
        result = await _reconciler(store, props).reconcile(
            ["Alex to send quote"], subject="Quote", link="l"
        )
        assert result.created == []
        assert result.skipped_duplicate == 1
        assert len(store.tasks) == 1

    async def test_same_title_twice_in_one_run(self, props):
        store = FakeTaskStore()
        reconciler = _reconciler(store, props)
        first = await reconciler.reconcile(["Alex to send quote"], subject="A", link="a")
        second = await reconciler.reconcile(["ALEX: Send quote "], subject="B", link="b")
        assert first.created == ["send quote"]
        assert second.created == []
        assert second.skipped_duplicate == 1
        assert len(store.tasks) == 1
        assert store.task_list_calls == 1

    async def test_unassigned_items_never_created(self, props):
        store = FakeTaskStore()
        result = await _reconciler(store, props).reconcile(
            ["Alexander to call", "Send the quote", "Team to review"], subject="s", link="l"
        )
        assert result.created == []
        assert result.skipped_unassigned == 3
        assert store.tasks == []

    async def test_no_items_does_not_touch_store(self, props):
        store = FakeTaskStore()
        result = await _reconciler(store, props).reconcile([], subject="s", link="l")
        assert result.attempted is False
        assert result.succeeded is True
        assert store.list_calls == 0

    async def test_missing_list_fails(self, props):
        store = FakeTaskStore(lists=[])
        result = await _reconciler(store, props).reconcile(["Alex to x"], subject="s", link="l")
        assert result.attempted is True
        assert result.succeeded is False
        assert store.tasks == []

    async def test_fetch_failure_blocks_creation(self, props):
        store = FakeTaskStore()
        store.fail_list_tasks = True
        result = await _reconciler(store, props).reconcile(["Alex to x"], subject="s", link="l")
        assert result.succeeded is False
        assert store.tasks == []

    async def test_single_insert_failure_does_not_stop_siblings(self, props):
        store = FakeTaskStore()
        store.fail_titles = {"first"}
        result = await _reconciler(store, props).reconcile(
            ["Alex to first", "Alex to second"], subject="s", link="l"
        )
        assert result.succeeded is True
        assert result.failed == 1
        assert result.created == ["second"]

    async def test_alias_only_item_skipped(self, props):
        store = FakeTaskStore()
        result = await _reconciler(store, props).reconcile(["Alex"], subject="s", link="l")
        assert result.created == []
        assert store.tasks == []
