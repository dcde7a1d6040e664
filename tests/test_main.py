"""
Tests for the command line entry point.

Each test runs main() against a fresh SQLite file and checks the printed output.
"""

import json
import logging
import re

import pytest

from tasker.__main__ import build_parser, main


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Use a temporary database and log directory."""
    monkeypatch.setenv("TASKER_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'tasker.db'}")
    monkeypatch.setattr("tasker.logging_config.LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr("tasker.logging_config.LOG_FILE", tmp_path / "logs" / "tasker.log")
    for name in ("TASKER_DEFAULT_LIST", "TASKER_DEFAULT_SORT_FIELD",
                 "TASKER_DEFAULT_SORT_DIRECTION", "TASKER_THEME"):
        monkeypatch.delenv(name, raising=False)

    yield

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()


def add(capsys, text, *extra):
    """Run 'add' and return the short id it prints."""
    assert main(["add", text, *extra]) == 0
    match = re.search(r"\((\w+)\)", capsys.readouterr().out)
    return match.group(1)


class TestParser:
    """Tests for argument parsing."""

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_completed_and_pending_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["ls", "--completed", "--pending"])


class TestCommands:
    """Tests for running commands end to end."""

    def test_add_and_list(self, capsys):
        add(capsys, "Pay rent !high #bills")

        assert main(["ls", "--list", "all"]) == 0
        out = capsys.readouterr().out
        assert "Pay rent" in out
        assert "high" in out

    def test_add_to_named_list(self, capsys):
        assert main(["add", "Stand-up notes ~today"]) == 0

        assert "to today" in capsys.readouterr().out

    def test_add_after_listing_all_goes_to_inbox(self, capsys):
        assert main(["ls", "--list", "all"]) == 0
        capsys.readouterr()

        assert main(["add", "Buy milk"]) == 0
        out = capsys.readouterr().out
        assert "to inbox" in out
        assert "to all" not in out

    def test_unknown_list_is_rejected(self, capsys):
        assert main(["ls", "--list", "wrok"]) == 1
        assert "Unknown list 'wrok'" in capsys.readouterr().out

        assert main(["add", "Buy milk"]) == 0
        assert "to inbox" in capsys.readouterr().out

    def test_empty_title_fails(self, capsys):
        assert main(["add", "!high #bills"]) == 1

        assert "Error" in capsys.readouterr().out

    def test_subtask_and_progress(self, capsys):
        parent = add(capsys, "Trip")
        add(capsys, "Pack", "--parent", parent)

        main(["ls"])
        out = capsys.readouterr().out
        assert "Trip [0/1]" in out
        assert "↳ Pack" in out

    def test_done_toggles(self, capsys):
        task_id = add(capsys, "Laundry")

        assert main(["done", task_id]) == 0
        assert "Completed" in capsys.readouterr().out
        assert main(["done", task_id]) == 0
        assert "Reopened" in capsys.readouterr().out

    def test_unknown_id_fails(self, capsys):
        assert main(["done", "zzzzzzzz"]) == 1

        assert "matches 0 tasks" in capsys.readouterr().out

    def test_rm(self, capsys):
        task_id = add(capsys, "Laundry")

        assert main(["rm", task_id]) == 0
        capsys.readouterr()
        main(["ls", "--list", "all"])
        assert "Laundry" not in capsys.readouterr().out

    def test_lists_and_tags(self, capsys):
        assert main(["lists"]) == 0
        out = capsys.readouterr().out
        assert "Inbox" in out and "Upcoming" in out

        assert main(["tags"]) == 0
        assert "Personal" in capsys.readouterr().out

    def test_suggest(self, capsys):
        assert main(["suggest", "Buy milk @"]) == 0
        assert "due_date: today, tomorrow, next week, next month" in capsys.readouterr().out

        assert main(["suggest", "Buy milk"]) == 0
        assert "No suggestions" in capsys.readouterr().out

    def test_markdown_export_to_stdout(self, capsys):
        add(capsys, "Pay rent")

        assert main(["export"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("# Tasks Export")
        assert "Pay rent" in out

    def test_json_export_and_import(self, capsys, tmp_path):
        add(capsys, "Keep me")
        path = tmp_path / "backup.json"

        assert main(["export", "--format", "json", "--output", str(path)]) == 0
        capsys.readouterr()
        assert [task["title"] for task in json.loads(path.read_text(encoding="utf-8"))["tasks"]] == ["Keep me"]

        add(capsys, "Drop me")
        assert main(["import", str(path)]) == 0
        assert "Imported 1 tasks" in capsys.readouterr().out

        main(["ls", "--list", "all"])
        out = capsys.readouterr().out
        assert "Keep me" in out
        assert "Drop me" not in out
