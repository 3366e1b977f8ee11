"""Tests for the generate command."""

from pathlib import Path

import yaml

from todoist_notes.cli.generate import CONFIG_HEADER, generate_config_yaml, run_generate


class TestGenerateConfigYaml:
    """Tests for generate_config_yaml."""

    def test_starts_with_header(self):
        """The generated config opens with a comment header."""
        assert generate_config_yaml().startswith(CONFIG_HEADER)

    def test_parses_to_defaults(self):
        """The generated config loads as the default config."""
        data = yaml.safe_load(generate_config_yaml())
        assert data["tasks_folder"] == "Tasks"
        assert data["archive_folder"] == "Tasks/_archive"
        assert data["archive_mode"] == "move-to-archive-folder"
        assert data["auto_import_project_scope"] == "allow-list-by-name"
        assert data["auto_sync_interval_minutes"] == 5


class TestRunGenerate:
    """Tests for run_generate."""

    def test_creates_config_and_folder(self, tmp_path: Path, capsys):
        """generate writes the config and creates the task folder."""
        assert run_generate(tmp_path) == 0

        assert (tmp_path / "todoist-notes.yml").is_file()
        assert (tmp_path / "Tasks").is_dir()
        assert "Generated config" in capsys.readouterr().out

    def test_second_run_has_nothing_to_do(self, tmp_path: Path, capsys):
        """Running generate again changes nothing."""
        run_generate(tmp_path)
        capsys.readouterr()

        assert run_generate(tmp_path) == 1
        assert "Nothing to do" in capsys.readouterr().out

    def test_existing_config_respected(self, tmp_path: Path):
        """An existing config is not overwritten."""
        (tmp_path / "todoist-notes.yml").write_text("tasks_folder: Work/Tasks\n")

        assert run_generate(tmp_path) == 0

        assert (tmp_path / "Work" / "Tasks").is_dir()
        assert (tmp_path / "todoist-notes.yml").read_text() == "tasks_folder: Work/Tasks\n"

    def test_invalid_existing_config(self, tmp_path: Path, capsys):
        """An invalid existing config makes generate fail."""
        (tmp_path / "todoist-notes.yml").write_text("archive_mode: shred\n")

        assert run_generate(tmp_path) == 1
        assert not (tmp_path / "Tasks").exists()
