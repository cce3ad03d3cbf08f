"""Trigger gate: does a signal subscribe to this event type?"""

from __future__ import annotations

from typing import Union

from sightsignal.models import Signal, SignalEvent, TriggerType

EventLike = Union[SignalEvent, TriggerType, str]


def event_type_of(event: EventLike) -> TriggerType:
    """Accept a SignalEvent, a TriggerType or its string value."""
    if isinstance(event, SignalEvent):
        return event.type
    return TriggerType(event)


class TriggerGate:
    """Trigger-list membership only; the active flag is checked by the caller."""

    def should_trigger(self, signal: Signal, event_type: EventLike) -> bool:
        return event_type_of(event_type) in signal.triggers
