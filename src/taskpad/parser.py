"""Natural language quick-input parser for taskpad.

Turns a line such as ``Buy milk tomorrow 5pm #groceries p:Personal !! every monday``
into a structured draft. Every metadata rule scans the untouched input and
reports the spans it matched; the spans are cut out only after all rules ran,
so one rule never shifts another's offsets.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import parsedatetime
from fuzzywuzzy import fuzz, process

from .config import ConfigModel
from .recurring import RepeatRule, Weekday
from .task import DEFAULT_PROJECT, Priority, Task
from .utils.datetime import at_time_of_day, ensure_aware, now_utc


logger = logging.getLogger(__name__)

Span = Tuple[int, int]

WEEKDAYS = "monday|tuesday|wednesday|thursday|friday|saturday|sunday"


@dataclass
class TaskDraft:
    """An unsaved task produced from free text."""
    title: str
    tags: List[str] = field(default_factory=list)
    project: str = DEFAULT_PROJECT
    priority: Priority = Priority.MEDIUM
    due: Optional[datetime] = None
    repeat: Optional[RepeatRule] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "tags": list(self.tags),
            "project": self.project,
            "priority": self.priority.value,
            "due": self.due.isoformat() if self.due else None,
            "repeat": self.repeat.to_dict() if self.repeat else None,
        }


@dataclass
class Extraction:
    """One metadata match: where it was and what it means."""
    span: Span
    value: Any = None


class SmartDateParser:
    """Intelligent date parser using natural language."""

    def __init__(self):
        self.cal = parsedatetime.Calendar()
        # Explicit formats parsedatetime reads inconsistently
        self.formats = [
            (re.compile(r'^\d{4}-\d{2}-\d{2}$'), '%Y-%m-%d'),
            (re.compile(r'^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}$'), None),
            (re.compile(r'^\d{2}/\d{2}/\d{4}$'), '%m/%d/%Y'),
        ]

    @staticmethod
    def _source_time(now: datetime):
        return now.replace(tzinfo=None).timetuple()

    def find_dates(self, text: str, now: datetime) -> List[datetime]:
        """Find every date/time expression inside running text.

        Candidates come back in the order they appear, resolved relative to
        ``now`` and carrying ``now``'s timezone.
        """
        if not text or not text.strip():
            return []
        found = self.cal.nlp(text, sourceTime=self._source_time(now))
        if not found:
            return []
        return [candidate[0].replace(tzinfo=now.tzinfo) for candidate in found]

    def parse(self, date_str: str, now: Optional[datetime] = None) -> Optional[datetime]:
        """Parse a standalone date phrase such as ``friday 9am`` or ``2024-12-25``."""
        if not date_str or not date_str.strip():
            return None

        now = ensure_aware(now) or now_utc()
        date_str = date_str.strip()

        for pattern, fmt in self.formats:
            if pattern.match(date_str):
                try:
                    if fmt is None:
                        parsed = datetime.fromisoformat(date_str.replace(' ', 'T'))
                    else:
                        parsed = datetime.strptime(date_str, fmt)
                    return parsed.replace(tzinfo=now.tzinfo)
                except ValueError:
                    return None

        time_struct, parse_status = self.cal.parse(date_str, sourceTime=self._source_time(now))
        if parse_status > 0:
            return datetime(*time_struct[:6], tzinfo=now.tzinfo)

        return None


class NaturalLanguageParser:
    """Quick-input parser for task capture."""

    def __init__(self, config: Optional[ConfigModel] = None, date_parser: Optional[SmartDateParser] = None):
        self.default_project = config.default_project if config else DEFAULT_PROJECT
        self.default_priority = config.default_priority if config else Priority.MEDIUM
        self.date_parser = date_parser or SmartDateParser()

        self.patterns = {
            'tags': re.compile(r'#([A-Za-z0-9_-]+)'),
            'project': re.compile(r'\bp:([A-Za-z0-9 _-]+)', re.IGNORECASE),
            'weekly_on': re.compile(rf'\bevery\s+({WEEKDAYS})\b', re.IGNORECASE),
            'daily': re.compile(r'\bdaily\b', re.IGNORECASE),
            'weekly': re.compile(r'\bweekly\b', re.IGNORECASE),
            'monthly': re.compile(r'\bmonthly\b', re.IGNORECASE),
        }

        # Checked in order; the first group with any match sets the priority
        self.priority_markers = [
            (Priority.HIGH, re.compile(r'!!|!high\b', re.IGNORECASE)),
            (Priority.LOW, re.compile(r'!low\b', re.IGNORECASE)),
            (Priority.MEDIUM, re.compile(r'!med(?:ium)?\b', re.IGNORECASE)),
        ]

    def parse(self, input_text: str, now: Optional[datetime] = None) -> TaskDraft:
        """Parse quick-input text into a draft. Never raises."""
        input_text = input_text or ""
        now = ensure_aware(now) or now_utc()
        try:
            return self._parse(input_text, now)
        except Exception as e:
            # Capture must not fail; keep the text as the title
            logger.warning(f"Quick-input parsing failed for {input_text!r}: {e}")
            return TaskDraft(title=input_text.strip(), project=self.default_project,
                             priority=self.default_priority)

    def _parse(self, input_text: str, now: datetime) -> TaskDraft:
        tags = self._extract_tags(input_text)
        project = self._extract_project(input_text)
        priority = self._extract_priority(input_text)
        repeat = self._extract_recurrence(input_text)

        spans = [e.span for group in (tags, project, priority, repeat) for e in group]
        remaining = self._remove_spans(input_text, spans)

        due = None
        candidates = self.date_parser.find_dates(remaining, now)
        if candidates:
            due = candidates[0]

        title = ' '.join(remaining.split()) or input_text.strip()

        draft = TaskDraft(
            title=title,
            tags=list(dict.fromkeys(e.value for e in tags)),
            project=next((e.value for e in project if e.value), self.default_project),
            priority=self._resolve_priority(priority),
            due=due,
            repeat=repeat[-1].value if repeat else None,
        )
        logger.debug(f"Parsed {input_text!r} into {draft.to_dict()}")
        return draft

    def _extract_tags(self, text: str) -> List[Extraction]:
        return [Extraction(m.span(), m.group(1)) for m in self.patterns['tags'].finditer(text)]

    def _extract_project(self, text: str) -> List[Extraction]:
        """Every ``p:`` span; the first non-blank one names the project"""
        return [
            Extraction(m.span(), m.group(1).strip())
            for m in self.patterns['project'].finditer(text)
        ]

    def _extract_priority(self, text: str) -> List[Extraction]:
        return [
            Extraction(m.span(), priority)
            for priority, pattern in self.priority_markers
            for m in pattern.finditer(text)
        ]

    def _resolve_priority(self, found: List[Extraction]) -> Priority:
        present = {e.value for e in found}
        for priority, _ in self.priority_markers:
            if priority in present:
                return priority
        return self.default_priority

    def _extract_recurrence(self, text: str) -> List[Extraction]:
        """Recurrence matches in check order; the last one wins.

        A pinned ``every <weekday>`` is checked first, so any bare keyword
        (daily, weekly, monthly) present anywhere overrides it.
        """
        found = [
            Extraction(m.span(), RepeatRule.weekly(Weekday(m.group(1).lower())))
            for m in self.patterns['weekly_on'].finditer(text)
        ]
        for keyword, rule in (('daily', RepeatRule.daily()),
                              ('weekly', RepeatRule.weekly()),
                              ('monthly', RepeatRule.monthly())):
            found.extend(Extraction(m.span(), rule) for m in self.patterns[keyword].finditer(text))
        return found

    @staticmethod
    def _remove_spans(text: str, spans: List[Span]) -> str:
        """Blank out the given spans, tolerating overlaps."""
        if not spans:
            return text
        keep = [True] * len(text)
        for start, end in spans:
            for i in range(start, end):
                keep[i] = False
        out = []
        for i, char in enumerate(text):
            if keep[i]:
                out.append(char)
            elif i == 0 or keep[i - 1]:
                out.append(' ')
        return ''.join(out)

    def suggest_corrections(self, input_text: str, available_projects: Optional[List[str]] = None,
                            available_tags: Optional[List[str]] = None) -> List[str]:
        """Provide suggestions for likely typos in projects and tags."""
        suggestions = []

        if available_projects:
            for extraction in self._extract_project(input_text):
                project = extraction.value
                if not project:
                    continue
                if project.lower() in (p.lower() for p in available_projects):
                    continue
                close_matches = process.extractBests(project, available_projects,
                                                     scorer=fuzz.ratio, score_cutoff=70, limit=3)
                if close_matches:
                    suggestions.append(f"Did you mean p:{close_matches[0][0]} instead of p:{project}?")

        if available_tags:
            for extraction in self._extract_tags(input_text):
                tag = extraction.value
                if tag in available_tags:
                    continue
                close_matches = process.extractBests(tag, available_tags,
                                                     scorer=fuzz.ratio, score_cutoff=70, limit=2)
                if close_matches:
                    suggestions.append(f"Did you mean #{close_matches[0][0]} instead of #{tag}?")

        return suggestions


class TaskBuilder:
    """Builds Task objects from parsed drafts, applying capture defaults."""

    def __init__(self, config: ConfigModel):
        self.config = config

    def build(self, draft: TaskDraft, selected_day: date, area=None, tz=timezone.utc) -> Task:
        """Build a Task from a draft.

        Drafts without a due date fall on ``selected_day`` at the configured
        default time, read as wall time in ``tz``.
        """
        due = draft.due
        if due is None:
            due = at_time_of_day(selected_day, self.config.default_due_time, tz)

        return Task(
            title=draft.title,
            tags=list(draft.tags),
            project=draft.project,
            priority=draft.priority,
            due=due,
            repeat=draft.repeat,
            area=area or self.config.default_area,
            reminder=self.config.default_reminder,
        )


def parse_quick_input(input_text: str, now: Optional[datetime] = None,
                      config: Optional[ConfigModel] = None) -> TaskDraft:
    """Main function to parse quick-input text."""
    return NaturalLanguageParser(config).parse(input_text, now)
