"""
Pytest configuration and fixtures
"""
import copy

import pytest

from calendar_resolver.models import CalendarEntry, Event


class FakeGenerator:
    """Scripted generation step: returns queued payloads in order."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    async def generate(self, system_prompt, messages, output_schema):
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": copy.deepcopy(messages),
            "output_schema": output_schema,
        })
        if not self.responses:
            raise AssertionError("unexpected generation call")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return copy.deepcopy(item)


class FakeCalendar:
    """In-memory calendar collaborator that records every call."""

    def __init__(self, events=None, calendars=None):
        self.events = list(events or [])
        self.calendars = list(calendars or [])
        self.calls = []
        self.fail_with = None

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_with is not None:
            raise self.fail_with

    def call_names(self):
        return [call[0] for call in self.calls]

    def create_event(self, calendar_id, summary, start, end):
        self._record("create_event", calendar_id, summary, start, end)
        return Event(id="created-1", summary=summary, start=start, end=end,
                     deep_link="https://calendar.google.com/event?eid=created-1")

    def update_event(self, calendar_id, event_id, summary=None, start=None, end=None):
        self._record("update_event", calendar_id, event_id, summary, start, end)
        return Event(id=event_id, summary=summary or "", start=start, end=end)

    def delete_event(self, calendar_id, event_id):
        self._record("delete_event", calendar_id, event_id)

    def list_upcoming_events(self, calendar_id, max_results):
        self._record("list_upcoming_events", calendar_id, max_results)
        return list(self.events[:max_results])

    def list_calendars(self):
        self._record("list_calendars")
        return list(self.calendars)


def make_event(event_id, summary, start="2030-01-15T10:00:00Z", description=""):
    return Event(
        id=event_id,
        summary=summary,
        description=description,
        start=start,
        end=start,
        deep_link=f"https://calendar.google.com/event?eid={event_id}",
    )


@pytest.fixture
def fake_auth():
    return object()


@pytest.fixture
def sample_events():
    return [
        make_event("e1", "Team sync", "2030-01-15T10:00:00Z"),
        make_event("e2", "1:1 with Alex", "2030-01-15T13:00:00Z"),
        make_event("e3", "Budget meeting", "2030-01-16T09:00:00Z"),
    ]


@pytest.fixture
def fake_calendar(sample_events):
    return FakeCalendar(
        events=sample_events,
        calendars=[CalendarEntry(id="primary", summary="Me", primary=True)],
    )
