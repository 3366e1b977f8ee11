"""End-to-end tests for SyncEngine with an in-memory Todoist."""

from pathlib import Path

import frontmatter
import pytest

from todoist_notes.models import (
    ArchiveMode,
    CreateTaskInput,
    ImportProjectScope,
    LocalTaskNoteInput,
    ProjectSectionLookup,
    RemoteDue,
    RemoteProject,
    RemoteSection,
    RemoteTask,
    SyncConfig,
    SyncSnapshot,
    UpdateTaskInput,
)
from todoist_notes.repositories import TaskNoteRepository
from todoist_notes.sync.engine import SyncEngine, SyncError
from todoist_notes.todoist.client import TodoistClientError, TodoistCommandError


class FakeTodoistClient:
    """Stands in for TodoistClient; applies commands to an in-memory account."""

    def __init__(self, items=None, projects=None, sections=None, user_id="u1"):
        self.items: dict[str, RemoteTask] = {item.id: item for item in items or []}
        self.projects = projects or [RemoteProject(id="p1", name="Errands")]
        self.sections = sections or []
        self.user_id = user_id
        self.created: list[CreateTaskInput] = []
        self.updated: list[UpdateTaskInput] = []
        self.closed: list[str] = []
        self.fetches = 0
        self.fail_on_update: Exception | None = None
        self._next_id = 100

    def fetch_sync_snapshot(self) -> SyncSnapshot:
        self.fetches += 1
        return SyncSnapshot(
            user_id=self.user_id,
            items=list(self.items.values()),
            projects=self.projects,
            sections=self.sections,
        )

    def fetch_project_section_lookup(self) -> ProjectSectionLookup:
        return ProjectSectionLookup(projects=self.projects, sections=self.sections)

    def create_task(self, task: CreateTaskInput) -> str:
        self.created.append(task)
        task_id = str(self._next_id)
        self._next_id += 1
        due = None
        if task.due_date or task.due_string:
            due = RemoteDue(
                date=task.due_date, string=task.due_string, is_recurring=bool(task.due_string)
            )
        self.items[task_id] = RemoteTask(
            id=task_id,
            content=task.content,
            description=task.description,
            project_id=task.project_id or "p1",
            section_id=task.section_id,
            parent_id=task.parent_id,
            due=due,
        )
        return task_id

    def close_task(self, task_id: str) -> None:
        self.closed.append(task_id)
        self.items[task_id] = self.items[task_id].model_copy(update={"checked": True})

    def update_task(self, task: UpdateTaskInput) -> None:
        if self.fail_on_update is not None:
            raise self.fail_on_update
        self.updated.append(task)
        current = self.items[task.id]
        due = current.due
        if task.clear_due:
            due = None
        elif task.due_date or task.due_string:
            due = RemoteDue(date=task.due_date, string=task.due_string)
        self.items[task.id] = current.model_copy(
            update={
                "content": task.content,
                "description": task.description,
                "checked": task.is_done,
                "project_id": task.project_id or current.project_id,
                "section_id": task.section_id,
                "due": due,
            }
        )


def open_config(**kwargs) -> SyncConfig:
    fields = {
        "auto_import_project_scope": ImportProjectScope.ALL_PROJECTS,
        "auto_import_required_label": "",
        "auto_import_assigned_to_me_only": False,
    }
    fields.update(kwargs)
    return SyncConfig(**fields)


def make_engine(vault: Path, client: FakeTodoistClient, config: SyncConfig | None = None):
    config = config or open_config()
    repo = TaskNoteRepository(vault, config)
    return SyncEngine(repo, client, config), repo  # type: ignore[arg-type]


def read_meta(path: Path) -> dict:
    return frontmatter.load(path).metadata


@pytest.fixture
def milk() -> RemoteTask:
    return RemoteTask(id="1", content="Buy milk", project_id="p1", checked=False)


class TestImportScenario:
    """Remote tasks are materialized locally."""

    def test_new_remote_task_creates_note(self, tmp_path: Path, milk: RemoteTask):
        """A new remote task becomes a synced note named after its title."""
        client = FakeTodoistClient(items=[milk])
        engine, _ = make_engine(tmp_path, client)

        result = engine.sync()

        assert result.ok
        assert result.created == 1
        assert result.imported == 1
        meta = read_meta(tmp_path / "Tasks" / "Buy milk.md")
        assert meta["task_status"] == "open"
        assert meta["todoist_project_name"] == "Errands"
        assert meta["todoist_sync_status"] == "synced"

    def test_summary_message(self, tmp_path: Path, milk: RemoteTask):
        """The run summary reports the import."""
        engine, _ = make_engine(tmp_path, FakeTodoistClient(items=[milk]))
        result = engine.sync()
        assert result.message == (
            "Synced 1 importable task(s) (+0 ancestors): 0 created remotely, "
            "0 updates pushed, 1 created, 0 updated, 0 missing handled, "
            "0 checklist lines refreshed."
        )

    def test_second_run_is_quiet(self, tmp_path: Path, milk: RemoteTask):
        """A second run with no changes does nothing."""
        client = FakeTodoistClient(items=[milk])
        engine, _ = make_engine(tmp_path, client)
        engine.sync()

        result = engine.sync()

        assert (result.created, result.updated, result.pushed_updates) == (0, 0, 0)
        assert client.updated == []

    def test_ancestors_imported_with_filtered_item(self, tmp_path: Path):
        """Parents of an imported task are imported too."""
        items = [
            RemoteTask(id="C", content="Trip", project_id="p1"),
            RemoteTask(id="B", content="Bookings", project_id="p1", parent_id="C"),
            RemoteTask(
                id="A", content="Book hotel", project_id="p1", parent_id="B", labels=["obsidian"]
            ),
            RemoteTask(id="X", content="Unrelated", project_id="p1"),
        ]
        config = open_config(auto_import_required_label="obsidian")
        engine, repo = make_engine(tmp_path, FakeTodoistClient(items=items), config)

        result = engine.sync()

        assert set(repo.index()) == {"A", "B", "C"}
        assert result.imported == 3
        assert result.ancestors == 2
        assert read_meta(tmp_path / "Tasks" / "Book hotel.md")["parent_task"] == "[[Tasks/Bookings]]"

    def test_previously_synced_kept_fresh(self, tmp_path: Path):
        """A note stays in sync after its task stops passing the filter."""
        labeled = RemoteTask(id="1", content="Buy milk", project_id="p1", labels=["obsidian"])
        client = FakeTodoistClient(items=[labeled])
        config = open_config(auto_import_required_label="obsidian")
        engine, _ = make_engine(tmp_path, client, config)
        engine.sync()

        client.items["1"] = labeled.model_copy(update={"labels": [], "content": "Buy oat milk"})
        result = engine.sync()

        assert result.updated == 1
        assert result.missing_handled == 0
        assert read_meta(tmp_path / "Tasks" / "Buy oat milk.md")["todoist_sync_status"] == "synced"


class TestPushScenario:
    """Local changes go upstream."""

    def test_local_edit_pushes_update(self, tmp_path: Path, milk: RemoteTask):
        """A local edit is pushed as an update."""
        client = FakeTodoistClient(items=[milk])
        engine, repo = make_engine(tmp_path, client)
        engine.sync()
        path = tmp_path / "Tasks" / "Buy milk.md"
        old_signature = read_meta(path)["todoist_last_synced_signature"]

        post = frontmatter.load(path)
        post["task_title"] = "Buy oat milk"
        path.write_text(frontmatter.dumps(post, sort_keys=False))
        assert repo.mark_note_dirty(path)
        assert read_meta(path)["todoist_sync_status"] == "dirty_local"

        result = engine.sync()

        assert result.pushed_updates == 1
        assert client.updated[0].content == "Buy oat milk"
        assert client.updated[0].clear_due is True
        new_path = tmp_path / "Tasks" / "Buy oat milk.md"
        meta = read_meta(new_path)
        assert meta["todoist_sync_status"] == "synced"
        assert meta["todoist_last_synced_signature"] != old_signature

    def test_local_create_pushed(self, tmp_path: Path):
        """A local note is pushed as a new task."""
        client = FakeTodoistClient(
            sections=[RemoteSection(id="s1", name="Shop", project_id="p1")],
        )
        engine, repo = make_engine(tmp_path, client)
        path = repo.create_local_task_note(
            LocalTaskNoteInput(
                title="Buy bread",
                project_name="errands",
                section_name="SHOP",
                due_date="tomorrow",
            )
        )

        result = engine.sync()

        assert result.pushed_creates == 1
        created = client.created[0]
        assert created.project_id == "p1"
        assert created.section_id == "s1"
        assert created.due_date is None
        assert created.due_string == "tomorrow"
        meta = read_meta(path)
        assert meta["todoist_id"] == "100"
        assert meta["todoist_sync_status"] == "synced"

    def test_unknown_project_name_is_skipped(self, tmp_path: Path):
        """A create naming an unknown project is skipped."""
        client = FakeTodoistClient()
        engine, repo = make_engine(tmp_path, client)
        repo.create_local_task_note(LocalTaskNoteInput(title="Misc", project_name="Nowhere"))

        engine.sync()

        assert client.created[0].project_id is None

    def test_done_local_create_is_closed(self, tmp_path: Path):
        """A done local note is created and then closed."""
        client = FakeTodoistClient()
        engine, repo = make_engine(tmp_path, client)
        path = repo.create_local_task_note(LocalTaskNoteInput(title="Already done"))
        post = frontmatter.load(path)
        post["task_status"] = "done"
        post["task_done"] = True
        path.write_text(frontmatter.dumps(post, sort_keys=False))

        engine.sync()

        assert client.closed == ["100"]

    def test_parent_created_before_child(self, tmp_path: Path):
        """A local parent is created before its child."""
        client = FakeTodoistClient()
        engine, repo = make_engine(tmp_path, client)
        repo.create_local_task_note(
            LocalTaskNoteInput(title="A child", parent_task_link="[[Tasks/Z parent]]")
        )
        repo.create_local_task_note(LocalTaskNoteInput(title="Z parent"))

        engine.sync()

        assert [task.content for task in client.created] == ["Z parent", "A child"]
        assert client.created[1].parent_id == "100"


class TestMissingScenario:
    """Remote deletions."""

    def test_disappeared_task_archived(self, tmp_path: Path, milk: RemoteTask):
        """A note whose task vanished is archived."""
        client = FakeTodoistClient(items=[milk])
        config = open_config(archive_mode=ArchiveMode.MOVE_TO_ARCHIVE_FOLDER)
        engine, _ = make_engine(tmp_path, client, config)
        engine.sync()
        # Collision in the archive folder
        archive = tmp_path / "Tasks" / "_archive"
        archive.mkdir(parents=True)
        (archive / "Buy milk.md").write_text("---\ntask_title: Older\n---\n")

        del client.items["1"]
        result = engine.sync()

        assert result.missing_handled == 1
        assert not (tmp_path / "Tasks" / "Buy milk.md").exists()
        meta = read_meta(archive / "Buy milk-2.md")
        assert meta["task_status"] == "done"
        assert meta["todoist_sync_status"] == "archived_remote"

        assert engine.sync().missing_handled == 0

    def test_deleted_flag_counts_as_missing(self, tmp_path: Path, milk: RemoteTask):
        """A deleted remote task counts as missing."""
        client = FakeTodoistClient(items=[milk])
        config = open_config(archive_mode=ArchiveMode.NONE)
        engine, _ = make_engine(tmp_path, client, config)
        engine.sync()

        client.items["1"] = milk.model_copy(update={"is_deleted": True})
        engine.sync()

        meta = read_meta(tmp_path / "Tasks" / "Buy milk.md")
        assert meta["todoist_sync_status"] == "missing_remote"


class TestFailures:
    """A failing step aborts the run with a single message."""

    def test_failure_keeps_partial_counts(self, tmp_path: Path, milk: RemoteTask):
        """A failure keeps the counts of finished steps."""
        client = FakeTodoistClient(items=[milk])
        engine, repo = make_engine(tmp_path, client)
        engine.sync()
        repo.create_local_task_note(LocalTaskNoteInput(title="New one"))
        path = tmp_path / "Tasks" / "Buy milk.md"
        post = frontmatter.load(path)
        post["task_title"] = "Changed"
        path.write_text(frontmatter.dumps(post, sort_keys=False))
        repo.mark_note_dirty(path)
        client.fail_on_update = TodoistCommandError("update")

        with pytest.raises(SyncError) as exc_info:
            engine.sync()

        result = exc_info.value.result
        assert result.ok is False
        assert result.pushed_creates == 1
        assert result.message == "Todoist sync failed: Todoist update command failed."

    def test_failed_create_keeps_earlier_creates_counted(self, tmp_path: Path):
        """Creates pushed before a failing one are reported in the result."""

        class FailingSecondCreate(FakeTodoistClient):
            def create_task(self, task: CreateTaskInput) -> str:
                if len(self.created) == 1:
                    raise TodoistCommandError("create")
                return super().create_task(task)

        client = FailingSecondCreate()
        engine, repo = make_engine(tmp_path, client)
        repo.create_local_task_note(LocalTaskNoteInput(title="First"))
        repo.create_local_task_note(LocalTaskNoteInput(title="Second"))

        with pytest.raises(SyncError) as exc_info:
            engine.sync()

        assert len(client.items) == 1
        assert exc_info.value.result.pushed_creates == 1
        assert read_meta(tmp_path / "Tasks" / "First.md")["todoist_id"] == "100"

    def test_failed_update_keeps_earlier_updates_counted(self, tmp_path: Path):
        """Updates pushed before a failing one are reported in the result."""

        class FailingSecondUpdate(FakeTodoistClient):
            def update_task(self, task: UpdateTaskInput) -> None:
                if len(self.updated) == 1:
                    raise TodoistCommandError("update")
                super().update_task(task)

        items = [
            RemoteTask(id="1", content="Alpha", project_id="p1"),
            RemoteTask(id="2", content="Beta", project_id="p1"),
        ]
        client = FailingSecondUpdate(items=items)
        engine, repo = make_engine(tmp_path, client)
        engine.sync()
        for name in ("Alpha", "Beta"):
            path = tmp_path / "Tasks" / f"{name}.md"
            post = frontmatter.load(path)
            post["task_status"] = "done"
            post["task_done"] = True
            path.write_text(frontmatter.dumps(post, sort_keys=False))
            repo.mark_note_dirty(path)

        with pytest.raises(SyncError) as exc_info:
            engine.sync()

        assert len(client.updated) == 1
        assert exc_info.value.result.pushed_updates == 1

    def test_run_import_sync_returns_failure(self, tmp_path: Path):
        """run_import_sync returns a failed result instead of raising."""
        class BrokenClient(FakeTodoistClient):
            def fetch_sync_snapshot(self):
                raise TodoistClientError("Todoist sync failed with status 500.")

        engine, _ = make_engine(tmp_path, BrokenClient())
        result = engine.run_import_sync()

        assert result.has_errors
        assert result.message == "Todoist sync failed: Todoist sync failed with status 500."

    def test_malformed_signature_repaired_first(self, tmp_path: Path, milk: RemoteTask):
        """Malformed signatures are repaired before syncing."""
        client = FakeTodoistClient(items=[milk])
        engine, _ = make_engine(tmp_path, client)
        engine.sync()
        path = tmp_path / "Tasks" / "Buy milk.md"
        text = path.read_text()
        path.write_text(
            text.replace(
                "todoist_last_imported_signature: ",
                "todoist_last_imported_signature: broken",
                1,
            )
        )

        result = engine.sync()

        assert result.ok
        assert result.repaired_signatures == 1
        assert len(read_meta(path)["todoist_last_imported_signature"]) == 8


class TestLinkedChecklistAfterMoves:
    """Checklist lines keep following a note that was renamed or archived."""

    def test_completed_task_archived_checks_daily_line(self, tmp_path: Path, milk: RemoteTask):
        """A task gone from Todoist checks the line linking to its archived note."""
        client = FakeTodoistClient(items=[milk])
        config = open_config(archive_mode=ArchiveMode.MOVE_TO_ARCHIVE_FOLDER)
        engine, _ = make_engine(tmp_path, client, config)
        engine.sync()
        daily = tmp_path / "Daily.md"
        daily.write_text("- [ ] [[Tasks/Buy milk|Buy milk]]\n", encoding="utf-8")

        del client.items["1"]
        result = engine.sync()

        assert result.linked_checklist_updates == 1
        assert daily.read_text(encoding="utf-8") == (
            "- [x] [[Tasks/_archive/Buy milk|Buy milk]]\n"
        )

    def test_renamed_and_completed_task_checks_daily_line(self, tmp_path: Path):
        """A remote rename plus completion checks the line under the new name."""
        parent = RemoteTask(id="1", content="Parent", project_id="p1")
        client = FakeTodoistClient(items=[parent])
        engine, _ = make_engine(tmp_path, client)
        engine.sync()
        daily = tmp_path / "Daily.md"
        daily.write_text("- [ ] [[Tasks/Parent|Parent]]\n", encoding="utf-8")

        client.items["1"] = parent.model_copy(update={"content": "Parent renamed", "checked": True})
        result = engine.sync()

        assert result.linked_checklist_updates == 1
        assert daily.read_text(encoding="utf-8") == "- [x] [[Tasks/Parent renamed|Parent]]\n"


class TestUndecodableFiles:
    """A note that isn't valid UTF-8 doesn't break the pass."""

    def test_outside_task_folder(self, tmp_path: Path, milk: RemoteTask):
        """A Latin-1 note elsewhere in the vault is skipped."""
        (tmp_path / "Old note.md").write_bytes("Café".encode("latin-1"))
        engine, _ = make_engine(tmp_path, FakeTodoistClient(items=[milk]))

        result = engine.run_import_sync()

        assert result.ok
        assert result.created == 1

    def test_inside_task_folder(self, tmp_path: Path, milk: RemoteTask):
        """A Latin-1 note in the task folder is skipped by every step."""
        tasks = tmp_path / "Tasks"
        tasks.mkdir()
        (tasks / "Legacy.md").write_bytes("---\ntask_title: Café\n---\n".encode("latin-1"))
        engine, repo = make_engine(tmp_path, FakeTodoistClient(items=[milk]))

        result = engine.run_import_sync()

        assert result.ok
        assert set(repo.index()) == {"1"}
