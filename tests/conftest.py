"""
Shared fixtures for the progressive rendering tests.
"""
import pytest


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CallbackRecorder:
    """Records every renderer notification as an (event, *args) tuple."""

    def __init__(self):
        self.events = []

    def callbacks(self):
        return {
            "on_render_start": lambda surface_id: self.events.append(("render_start", surface_id)),
            "on_partial_render": lambda partial: self.events.append(("partial", partial)),
            "on_component_update": lambda cid, patch: self.events.append(("update", cid, patch)),
            "on_finalize": lambda cid, value: self.events.append(("finalize", cid, value)),
            "on_error": lambda cid, error: self.events.append(("error", cid, error)),
            "on_render_complete": lambda surface_id: self.events.append(("render_complete", surface_id)),
        }

    def named(self, name):
        return [event for event in self.events if event[0] == name]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return CallbackRecorder()
