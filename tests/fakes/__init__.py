"""Exports for test fakes."""

from .auth import FakeTokenProvider
from .clock import ManualClock, RecordingSleeper
from .http import API_ROOT, ScriptedTransport, json_response, raw_response
from .observability import RecordedEvent, RecordingEventRecorder

__all__ = [
    "API_ROOT",
    "FakeTokenProvider",
    "ManualClock",
    "RecordedEvent",
    "RecordingEventRecorder",
    "RecordingSleeper",
    "ScriptedTransport",
    "json_response",
    "raw_response",
]
