"""Tests for the command-line interface."""

from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner

from taskpad.cli.tasks import cli
from taskpad.config import ConfigModel
from taskpad.export import AppState, export_state
from taskpad.recurring import RepeatRule, Weekday
from taskpad.storage import InMemoryTaskStore, StoreError
from taskpad.task import Priority, Task


NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
USER = "me"


class TestCli:
    """Drive the CLI against an in-memory store."""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path):
        self.tmp_path = tmp_path
        self.config_path = tmp_path / "config.yaml"
        self.config_path.write_text(ConfigModel(data_dir=str(tmp_path)).to_yaml())
        self.store = InMemoryTaskStore(clock=lambda: NOW)
        self.runner = CliRunner()

    def invoke(self, *args, now=NOW):
        return self.runner.invoke(
            cli, ["--config", str(self.config_path), *args],
            obj={"store": self.store, "clock": lambda: now},
        )

    def add_task(self, **kwargs):
        return self.store.create_task(USER, Task(**kwargs))

    def test_add_parses_quick_input(self):
        result = self.invoke("add", "Laundry #chores p:Home !!")

        assert result.exit_code == 0, result.output
        [task] = self.store.list_tasks(USER)
        assert task.title == "Laundry"
        assert task.tags == ["chores"]
        assert task.project == "Home"
        assert task.priority == Priority.HIGH
        assert task.due == datetime(2024, 3, 15, 17, 0, tzinfo=timezone.utc)

    def test_add_dry_run_saves_nothing(self):
        result = self.invoke("add", "--dry-run", "Laundry")

        assert result.exit_code == 0, result.output
        assert "Dry run" in result.output
        assert self.store.list_tasks(USER) == []

    def test_add_on_selected_day(self):
        result = self.invoke("add", "--day", "2024-03-20", "Laundry")

        assert result.exit_code == 0, result.output
        assert self.store.list_tasks(USER)[0].due == datetime(2024, 3, 20, 17, 0, tzinfo=timezone.utc)

    def test_list_filters_by_query(self):
        self.add_task(title="Laundry", tags=["chores"])
        self.add_task(title="Taxes", tags=["money"])

        result = self.invoke("list", "tag:chores")

        assert result.exit_code == 0, result.output
        assert "Laundry" in result.output
        assert "Taxes" not in result.output

    def test_done_completes_and_spawns_successor(self):
        due = datetime(2024, 3, 11, 9, 0, tzinfo=timezone.utc)
        task_id = self.add_task(title="Standup", due=due, repeat=RepeatRule.weekly(Weekday.MONDAY))

        result = self.invoke("done", task_id[:6])

        assert result.exit_code == 0, result.output
        assert self.store.get_task(USER, task_id).completed is True
        tasks = self.store.list_tasks(USER)
        assert len(tasks) == 2
        successor = [t for t in tasks if t.id != task_id][0]
        assert successor.due == due + timedelta(days=7)

    def test_done_twice_reopens(self):
        task_id = self.add_task(title="Laundry")

        self.invoke("done", task_id)
        result = self.invoke("done", task_id)

        assert result.exit_code == 0, result.output
        assert "Reopened" in result.output
        assert self.store.get_task(USER, task_id).completed is False

    def test_unknown_task_fails(self):
        result = self.invoke("done", "zzzz")

        assert result.exit_code == 1
        assert "No task matches" in result.output

    def test_edit(self):
        task_id = self.add_task(title="Laundry")

        result = self.invoke("edit", task_id, "--priority", "high", "--repeat", "every friday",
                             "--tags", "home, chores", "--due", "none")

        assert result.exit_code == 0, result.output
        task = self.store.get_task(USER, task_id)
        assert task.priority == Priority.HIGH
        assert task.repeat == RepeatRule.weekly(Weekday.FRIDAY)
        assert task.tags == ["home", "chores"]
        assert task.due is None

    def test_move_keeps_time_of_day(self):
        task_id = self.add_task(title="Dentist", due=datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc))

        result = self.invoke("move", task_id, "2024-03-20")

        assert result.exit_code == 0, result.output
        assert self.store.get_task(USER, task_id).due == datetime(2024, 3, 20, 14, 30, tzinfo=timezone.utc)

    def test_snooze(self):
        task_id = self.add_task(title="Dentist", due=datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc))

        result = self.invoke("snooze", task_id, "15")

        assert result.exit_code == 0, result.output
        assert self.store.get_task(USER, task_id).due == datetime(2024, 3, 15, 14, 45, tzinfo=timezone.utc)

    def test_delete(self):
        task_id = self.add_task(title="Laundry")

        result = self.invoke("delete", task_id)

        assert result.exit_code == 0, result.output
        assert self.store.list_tasks(USER) == []

    def test_subtasks(self):
        task_id = self.add_task(title="Trip")

        result = self.invoke("subtask", "add", task_id, "Pack", "bags")
        assert result.exit_code == 0, result.output
        [item] = self.store.get_task(USER, task_id).subtasks
        assert item.title == "Pack bags"

        result = self.invoke("subtask", "toggle", task_id, item.id[:6])
        assert result.exit_code == 0, result.output
        assert self.store.get_task(USER, task_id).subtasks[0].done is True

        result = self.invoke("subtask", "remove", task_id, item.id)
        assert result.exit_code == 0, result.output
        assert self.store.get_task(USER, task_id).subtasks == []

    def test_week_and_stats(self):
        self.add_task(title="Laundry", due=NOW)

        assert self.invoke("week").exit_code == 0
        assert self.invoke("week", "--date", "2024-03-20").exit_code == 0
        result = self.invoke("stats")
        assert result.exit_code == 0, result.output
        assert "0/1" in result.output

    def test_export_then_import(self):
        task_id = self.add_task(title="Laundry", tags=["chores"])
        path = self.tmp_path / "state.json"

        assert self.invoke("export", str(path)).exit_code == 0
        self.store = InMemoryTaskStore(clock=lambda: NOW)
        result = self.invoke("import", str(path))

        assert result.exit_code == 0, result.output
        [task] = self.store.list_tasks(USER)
        assert task.id == task_id
        assert task.tags == ["chores"]

    def test_import_rejects_bad_file(self):
        path = self.tmp_path / "bad.json"
        path.write_text("not json")

        result = self.invoke("import", str(path))

        assert result.exit_code == 1
        assert "Invalid file" in result.output

    def test_ics(self):
        task_id = self.add_task(title="Dentist", due=datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc))
        path = self.tmp_path / "dentist.ics"

        result = self.invoke("ics", task_id, str(path))

        assert result.exit_code == 0, result.output
        content = path.read_bytes().decode("utf-8")
        assert content.startswith("BEGIN:VCALENDAR\r\n")
        assert f"UID:{task_id}@taskpad" in content
        assert "DTSTART:20240315T143000Z" in content

    def test_capture_uses_the_clock_timezone(self):
        pacific = timezone(timedelta(hours=-8))
        evening = datetime(2024, 3, 15, 17, 0, tzinfo=pacific)  # already the 16th in UTC

        result = self.invoke("add", "Laundry", now=evening)

        assert result.exit_code == 0, result.output
        [task] = self.store.list_tasks(USER)
        assert task.due == datetime(2024, 3, 15, 17, 0, tzinfo=pacific)

        result = self.invoke("list", "due:today", now=evening)
        assert "Laundry" in result.output

        path = self.tmp_path / "laundry.ics"
        self.invoke("ics", task.id, str(path), now=evening)
        assert "DTSTART:20240316T010000Z" in path.read_text()

    def test_move_undated_task_to_local_midnight(self):
        pacific = timezone(timedelta(hours=-8))
        task_id = self.add_task(title="Someday")

        result = self.invoke("move", task_id, "2024-03-20",
                             now=datetime(2024, 3, 15, 9, 0, tzinfo=pacific))

        assert result.exit_code == 0, result.output
        assert self.store.get_task(USER, task_id).due == datetime(2024, 3, 20, tzinfo=pacific)

    def test_import_adds_new_projects_to_config(self):
        path = self.tmp_path / "state.json"
        task = Task(id="t1", title="Weed beds", project="Garden")
        path.write_text(export_state(AppState(tasks=[task], projects=["Inbox", "Garden"])))

        result = self.invoke("import", str(path))

        assert result.exit_code == 0, result.output
        saved = ConfigModel.from_yaml(self.config_path.read_text())
        assert saved.projects == ["Inbox", "Work", "Personal", "School", "Garden"]
        assert [t.project for t in self.store.list_tasks(USER)] == ["Garden"]

    def test_export_import_round_trips_custom_project(self):
        config = ConfigModel(data_dir=str(self.tmp_path), projects=["Inbox", "Garden"])
        self.config_path.write_text(config.to_yaml())
        self.add_task(title="Weed beds", project="Garden")
        path = self.tmp_path / "state.json"
        assert self.invoke("export", str(path)).exit_code == 0

        self.config_path.write_text(ConfigModel(data_dir=str(self.tmp_path)).to_yaml())
        self.store = InMemoryTaskStore(clock=lambda: NOW)
        result = self.invoke("import", str(path))

        assert result.exit_code == 0, result.output
        assert "Garden" in ConfigModel.from_yaml(self.config_path.read_text()).projects

    @pytest.mark.parametrize("args", [
        ("move", "{id}", "2024-03-20"),
        ("snooze", "{id}", "15"),
        ("subtask", "add", "{id}", "Pack"),
    ])
    def test_store_write_failures_are_reported(self, args):
        task_id = self.add_task(title="Trip", due=NOW)

        def refuse(*_args, **_kwargs):
            raise StoreError("disk full")

        self.store.update_task = refuse
        result = self.invoke(*(arg.format(id=task_id) for arg in args))

        assert result.exit_code == 1
        assert "disk full" in result.output
