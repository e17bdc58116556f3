"""Tests for the quick-input parser."""

from datetime import date, datetime, timedelta, timezone

import pytest

from taskpad.config import ConfigModel
from taskpad.parser import (
    NaturalLanguageParser, SmartDateParser, TaskBuilder, TaskDraft,
    parse_quick_input
)
from taskpad.recurring import RecurrenceType, RepeatRule, Weekday
from taskpad.task import Area, Priority


NOW = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)  # a Wednesday


class RecordingDates:
    """Date finder that records what it was asked and returns fixed results."""

    def __init__(self, results=None):
        self.results = results or []
        self.seen = []

    def find_dates(self, text, now):
        self.seen.append(text)
        return list(self.results)


class ExplodingDates:
    def find_dates(self, text, now):
        raise RuntimeError("resolver down")


class TestSmartDateParser:
    """Test the smart date parser."""

    def setup_method(self):
        self.parser = SmartDateParser()

    def test_parse_iso_date(self):
        result = self.parser.parse("2024-12-25", NOW)
        assert result == datetime(2024, 12, 25, tzinfo=timezone.utc)

    def test_parse_iso_datetime(self):
        result = self.parser.parse("2024-12-25 14:30", NOW)
        assert result == datetime(2024, 12, 25, 14, 30, tzinfo=timezone.utc)

    def test_parse_us_date(self):
        result = self.parser.parse("12/25/2024", NOW)
        assert (result.year, result.month, result.day) == (2024, 12, 25)

    def test_parse_tomorrow(self):
        result = self.parser.parse("tomorrow", NOW)
        assert result.date() == date(2024, 1, 11)
        assert result.tzinfo == timezone.utc

    def test_parse_invalid_date(self):
        assert self.parser.parse("2024-13-45", NOW) is None

    def test_parse_empty_string(self):
        assert self.parser.parse("", NOW) is None
        assert self.parser.parse("   ", NOW) is None

    def test_find_dates_blank_text(self):
        assert self.parser.find_dates("   ", NOW) == []

    def test_find_dates_in_running_text(self):
        found = self.parser.find_dates("Buy milk tomorrow 5pm", NOW)
        assert found
        assert found[0].date() == date(2024, 1, 11)
        assert found[0].hour == 17
        assert found[0].tzinfo == timezone.utc


class TestNaturalLanguageParser:
    """Test the natural language parser."""

    def setup_method(self):
        self.parser = NaturalLanguageParser()

    def test_full_example(self):
        draft = self.parser.parse(
            "Buy milk tomorrow 5pm #groceries p:Personal !! every monday", NOW
        )

        assert draft.title.startswith("Buy milk")
        for marker in ("#", "p:", "!!", "every"):
            assert marker not in draft.title
        assert draft.tags == ["groceries"]
        assert draft.project == "Personal"
        assert draft.priority == Priority.HIGH
        assert draft.repeat == RepeatRule(RecurrenceType.WEEKLY, Weekday.MONDAY)
        assert draft.due.date() == date(2024, 1, 11)
        assert draft.due.hour == 17

    def test_empty_input(self):
        draft = self.parser.parse("", NOW)

        assert draft.title == ""
        assert draft.tags == []
        assert draft.project == "Inbox"
        assert draft.priority == Priority.MEDIUM
        assert draft.due is None
        assert draft.repeat is None

    def test_plain_title(self):
        draft = self.parser.parse("Read book", NOW)

        assert draft.title == "Read book"
        assert draft.due is None
        assert draft.repeat is None

    def test_tags_are_deduplicated_in_order(self):
        draft = self.parser.parse("Call mom #family #phone #family", NOW)

        assert draft.tags == ["family", "phone"]
        assert draft.title == "Call mom"

    def test_first_project_wins(self):
        draft = self.parser.parse("Plan trip p:Travel #fun p:Work", NOW)

        assert draft.project == "Travel"
        assert draft.tags == ["fun"]
        assert draft.title == "Plan trip"

    def test_project_runs_to_next_delimiter(self):
        draft = self.parser.parse("Plan trip p:Summer Holiday !low", NOW)

        assert draft.project == "Summer Holiday"
        assert draft.priority == Priority.LOW

    @pytest.mark.parametrize("text,expected", [
        ("Ship it !!", Priority.HIGH),
        ("Ship it !high", Priority.HIGH),
        ("Ship it !HIGH", Priority.HIGH),
        ("Ship it !low", Priority.LOW),
        ("Ship it !med", Priority.MEDIUM),
        ("Ship it !medium", Priority.MEDIUM),
        ("Ship it !low !!", Priority.HIGH),
        ("Ship it !low !medium", Priority.LOW),
    ])
    def test_priority_markers(self, text, expected):
        draft = self.parser.parse(text, NOW)

        assert draft.priority == expected
        assert draft.title == "Ship it"

    def test_priority_marker_needs_word_boundary(self):
        draft = self.parser.parse("Ship it !lowkey", NOW)

        assert draft.priority == Priority.MEDIUM
        assert draft.title == "Ship it !lowkey"

    def test_every_weekday(self):
        draft = self.parser.parse("Water plants every Friday", NOW)

        assert draft.repeat == RepeatRule.weekly(Weekday.FRIDAY)
        assert draft.title == "Water plants"

    @pytest.mark.parametrize("text,expected", [
        ("Gym daily", RepeatRule.daily()),
        ("Review weekly", RepeatRule.weekly()),
        ("Pay rent monthly", RepeatRule.monthly()),
    ])
    def test_recurrence_keywords(self, text, expected):
        assert self.parser.parse(text, NOW).repeat == expected

    def test_later_keyword_overrides_pinned_weekday(self):
        draft = self.parser.parse("Report every monday monthly", NOW)

        assert draft.repeat == RepeatRule.monthly()

    def test_monthly_overrides_daily(self):
        draft = self.parser.parse("Report monthly daily", NOW)

        assert draft.repeat == RepeatRule.monthly()

    def test_metadata_removed_before_date_resolution(self):
        dates = RecordingDates()
        parser = NaturalLanguageParser(date_parser=dates)

        parser.parse("Pay bills #home p:Personal !! daily", NOW)

        assert len(dates.seen) == 1
        for marker in ("#home", "p:Personal", "!!", "daily"):
            assert marker not in dates.seen[0]
        assert "Pay bills" in dates.seen[0]

    def test_first_date_candidate_is_used(self):
        first = datetime(2024, 2, 1, 8, 0, tzinfo=timezone.utc)
        second = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
        parser = NaturalLanguageParser(date_parser=RecordingDates([first, second]))

        assert parser.parse("Something", NOW).due == first

    def test_title_falls_back_to_input_when_only_metadata(self):
        parser = NaturalLanguageParser(date_parser=RecordingDates())
        draft = parser.parse("#tag p:Work", NOW)

        assert draft.title == "#tag p:Work"
        assert draft.tags == ["tag"]
        assert draft.project == "Work"

    def test_blank_project_marker_is_removed(self):
        parser = NaturalLanguageParser(date_parser=RecordingDates())
        draft = parser.parse("p:   !! hi", NOW)

        assert draft.title == "hi"
        assert draft.project == "Inbox"
        assert draft.priority == Priority.HIGH

    def test_resolver_failure_keeps_text_as_title(self):
        parser = NaturalLanguageParser(date_parser=ExplodingDates())
        draft = parser.parse("  Buy milk #groceries  ", NOW)

        assert draft.title == "Buy milk #groceries"
        assert draft.tags == []
        assert draft.due is None

    def test_config_defaults_apply(self):
        config = ConfigModel(default_project="Work", default_priority="Low")
        parser = NaturalLanguageParser(config, date_parser=RecordingDates())

        draft = parser.parse("Write notes", NOW)

        assert draft.project == "Work"
        assert draft.priority == Priority.LOW

    def test_parse_quick_input_function(self):
        draft = parse_quick_input("Call plumber #home", NOW)

        assert isinstance(draft, TaskDraft)
        assert draft.tags == ["home"]

    def test_suggest_corrections_for_project_typo(self):
        suggestions = self.parser.suggest_corrections(
            "Plan sprint p:Wrk", available_projects=["Inbox", "Work", "Personal"]
        )

        assert any("p:Work" in s for s in suggestions)

    def test_no_suggestion_for_known_project(self):
        suggestions = self.parser.suggest_corrections(
            "Plan sprint p:work", available_projects=["Inbox", "Work"]
        )

        assert suggestions == []

    def test_suggest_corrections_for_tag_typo(self):
        suggestions = self.parser.suggest_corrections(
            "Buy eggs #grocerys", available_tags=["groceries", "home"]
        )

        assert any("#groceries" in s for s in suggestions)


class TestTaskBuilder:
    """Test building tasks from drafts."""

    def setup_method(self):
        self.config = ConfigModel(default_due_time="17:00", default_reminder=15)
        self.builder = TaskBuilder(self.config)

    def test_undated_draft_uses_selected_day(self):
        task = self.builder.build(TaskDraft(title="Pay rent"), date(2024, 3, 20))

        assert task.due == datetime(2024, 3, 20, 17, 0, tzinfo=timezone.utc)
        assert task.area == Area.PERSONAL
        assert task.reminder == 15
        assert task.completed is False

    def test_undated_draft_uses_local_wall_time(self):
        pacific = timezone(timedelta(hours=-8))
        task = self.builder.build(TaskDraft(title="Pay rent"), date(2024, 3, 20), tz=pacific)

        assert task.due == datetime(2024, 3, 20, 17, 0, tzinfo=pacific)
        assert task.due.utcoffset() == timedelta(hours=-8)

    def test_draft_fields_carry_over(self):
        due = datetime(2024, 3, 21, 9, 30, tzinfo=timezone.utc)
        draft = TaskDraft(title="Standup", tags=["team"], project="Work",
                          priority=Priority.HIGH, due=due, repeat=RepeatRule.daily())

        task = self.builder.build(draft, date(2024, 3, 20), Area.WORK)

        assert task.due == due
        assert task.tags == ["team"]
        assert task.project == "Work"
        assert task.priority == Priority.HIGH
        assert task.repeat == RepeatRule.daily()
        assert task.area == Area.WORK
