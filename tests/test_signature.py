"""Tests for sync and import signatures."""

import pytest

from todoist_notes.models import RemoteDue, RemoteTask
from todoist_notes.sync.signature import (
    build_import_signature,
    build_sync_signature,
    is_valid_signature,
    remote_sync_signature,
    repair_signature_frontmatter,
    stable_hash,
)

BASELINE = {
    "title": "Pay rent",
    "description": "Transfer to landlord",
    "is_done": False,
    "is_recurring": False,
    "project_id": "p1",
    "section_id": "s1",
    "due_date": "2024-06-01",
    "due_string": "",
}


class TestStableHash:
    """Tests for the FNV-1a digest."""

    def test_empty_string_is_offset_basis(self):
        """The empty string hashes to the FNV offset basis."""
        assert stable_hash("") == "811c9dc5"

    def test_known_value(self):
        """ASCII text hashes like byte-wise FNV-1a."""
        assert stable_hash("a") == "e40c292c"

    def test_fixed_width_lowercase_hex(self):
        """Hashes are eight lowercase hex digits."""
        for value in ["", "x", "Buy milk", "éè", "\U0001f4c5 due"]:
            digest = stable_hash(value)
            assert is_valid_signature(digest)

    def test_deterministic(self):
        """The same input always gives the same hash."""
        assert stable_hash("Buy milk") == stable_hash("Buy milk")


class TestBuildSyncSignature:
    """Tests for the local sync signature."""

    def test_same_fields_same_signature(self):
        """Equal fields give equal signatures."""
        assert build_sync_signature(**BASELINE) == build_sync_signature(**BASELINE)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("title", "Pay rent!"),
            ("description", "Transfer to landlord today"),
            ("is_done", True),
            ("is_recurring", True),
            ("project_id", "p2"),
            ("section_id", "s2"),
            ("due_date", "2024-06-02"),
            ("due_string", "every month"),
        ],
    )
    def test_single_field_change_changes_signature(self, field, value):
        """Every tracked field participates in the signature."""
        changed = {**BASELINE, field: value}
        assert build_sync_signature(**changed) != build_sync_signature(**BASELINE)

    def test_whitespace_is_trimmed(self):
        """Surrounding whitespace does not change the signature."""
        padded = {**BASELINE, "title": "  Pay rent  ", "description": "\nTransfer to landlord\n"}
        assert build_sync_signature(**padded) == build_sync_signature(**BASELINE)

    def test_none_equals_empty(self):
        """None and empty strings sign the same."""
        a = build_sync_signature(title="T", description="", is_done=False, is_recurring=False)
        b = build_sync_signature(
            title="T",
            description="",
            is_done=False,
            is_recurring=False,
            project_id="",
            section_id="",
            due_date="",
            due_string="",
        )
        assert a == b


class TestImportSignature:
    """Tests for the import signature."""

    @pytest.fixture
    def task(self) -> RemoteTask:
        return RemoteTask(
            id="1",
            content="Buy milk",
            project_id="p1",
            section_id="s1",
            priority=2,
            labels=["obsidian", "errand"],
            due=RemoteDue(date="2024-06-01"),
        )

    def test_includes_project_and_section_names(self, task):
        """Renaming a project changes the import signature."""
        before = build_import_signature(task, {"p1": "Errands"}, {"s1": "Shop"})
        after = build_import_signature(task, {"p1": "Chores"}, {"s1": "Shop"})
        assert before != after

    def test_sensitive_to_remote_only_fields(self, task):
        """Priority, labels and parent are tracked even though notes can't push them."""
        names = ({"p1": "Errands"}, {"s1": "Shop"})
        base = build_import_signature(task, *names)
        assert build_import_signature(task.model_copy(update={"priority": 4}), *names) != base
        assert build_import_signature(task.model_copy(update={"labels": ["obsidian"]}), *names) != base
        assert build_import_signature(task.model_copy(update={"parent_id": "9"}), *names) != base

    def test_unknown_project_name(self, task):
        """Missing project names hash as 'Unknown'."""
        assert build_import_signature(task, {}, {}) == build_import_signature(
            task, {"p1": "Unknown"}, {}
        )

    def test_remote_sync_signature_matches_note_fields(self, task):
        """A freshly imported note signs the same as its remote task."""
        expected = build_sync_signature(
            title="Buy milk",
            description="",
            is_done=False,
            is_recurring=False,
            project_id="p1",
            section_id="s1",
            due_date="2024-06-01",
            due_string="",
        )
        assert remote_sync_signature(task) == expected


class TestRepairSignatureFrontmatter:
    """Tests for repairing malformed signature fields."""

    def test_valid_content_unchanged(self):
        """Valid signatures are left alone."""
        content = (
            "---\n"
            "task_title: A\n"
            "todoist_last_imported_signature: 0a1b2c3d\n"
            "todoist_last_synced_signature: \"deadbeef\"\n"
            "---\nBody\n"
        )
        assert repair_signature_frontmatter(content) == content

    def test_empty_values_are_valid(self):
        """Empty signature values count as valid."""
        content = (
            "---\n"
            "todoist_last_imported_signature: \"\"\n"
            "todoist_last_synced_signature: ''\n"
            "---\n"
        )
        assert repair_signature_frontmatter(content) == content

    def test_malformed_values_blanked(self):
        """Malformed signature values are blanked."""
        content = (
            "---\n"
            "task_title: A\n"
            "todoist_last_imported_signature: 12345\n"
            "todoist_last_synced_signature: not-a-hash\n"
            "---\nBody\n"
        )
        repaired = repair_signature_frontmatter(content)
        assert 'todoist_last_imported_signature: ""' in repaired
        assert 'todoist_last_synced_signature: ""' in repaired
        assert "task_title: A" in repaired
        assert repaired.endswith("---\nBody\n")

    def test_body_lines_ignored(self):
        """Only the front matter block is repaired."""
        content = "---\ntask_title: A\n---\ntodoist_last_synced_signature: junk\n"
        assert repair_signature_frontmatter(content) == content

    def test_no_frontmatter(self):
        """Content without front matter is left alone."""
        assert repair_signature_frontmatter("Just text") == "Just text"
