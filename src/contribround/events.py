"""
contribround/events.py

Structured notifications emitted by the engine.

Events raised during an engine call are held back until the call commits;
a failed call drops them. Subscribers are fire-and-forget: an exception in a
subscriber is logged and never affects the engine.
"""

import time
import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .transactions import Transactional

logger = logging.getLogger("contribround.events")

# Events kept in history for inspection (API, tests)
MAX_EVENT_HISTORY = 1000


class EventType(Enum):
    """Types of engine notifications."""
    ROUND_OPENED = "round_opened"
    ROUND_CLOSED = "round_closed"
    VOTE_CAST = "vote_cast"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"
    TOKEN_AWARDED = "token_awarded"


@dataclass
class Event:
    """A single engine notification."""
    event_type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))  # ms

    def to_dict(self) -> dict:
        return {
            'event_type': self.event_type.value,
            'data': self.data,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        return cls(
            event_type=EventType(data['event_type']),
            data=data.get('data', {}),
            timestamp=data.get('timestamp', 0),
        )


EventCallback = Callable[[Event], None]


class EventBus(Transactional):
    """
    Event sink with subscriber fan-out.

    Usage:
        bus = EventBus()
        bus.subscribe(lambda event: print(event.to_dict()))

        bus.emit(Event(EventType.VOTE_CAST, {"from": "alice", "to": "bob"}))
    """

    def __init__(self, max_history: int = MAX_EVENT_HISTORY):
        self.max_history = max_history
        self._subscribers: List[EventCallback] = []
        self._history: List[Event] = []
        self._pending: Optional[List[Event]] = None

    def subscribe(self, callback: EventCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: EventCallback) -> bool:
        if callback in self._subscribers:
            self._subscribers.remove(callback)
            return True
        return False

    def emit(self, event: Event) -> None:
        if self._pending is not None:
            self._pending.append(event)
        else:
            self._deliver(event)

    def history(self, event_type: Optional[EventType] = None) -> List[Event]:
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.event_type == event_type]

    def begin(self) -> None:
        self._pending = []

    def commit(self) -> None:
        pending, self._pending = self._pending or [], None
        for event in pending:
            self._deliver(event)

    def rollback(self) -> None:
        self._pending = None

    def _deliver(self, event: Event) -> None:
        self._history.append(event)
        if len(self._history) > self.max_history:
            self._history = self._history[-self.max_history:]

        logger.debug(f"Event {event.event_type.value}: {event.data}")

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event subscriber failed on {event.event_type.value}: {e}")


def round_opened(round_id: int, name: str, value: int, max_votes: int, finish_at: int) -> Event:
    return Event(EventType.ROUND_OPENED, {
        'round_id': round_id,
        'name': name,
        'value': value,
        'max_votes': max_votes,
        'finish_at': finish_at,
    })


def round_closed(round_id: int, total_votes: int, total_reputation: int, distributed: int) -> Event:
    return Event(EventType.ROUND_CLOSED, {
        'round_id': round_id,
        'total_votes': total_votes,
        'total_reputation': total_reputation,
        'distributed': distributed,
    })


def vote_cast(round_id: int, voter: str, receiver: str, sign: str, value: int) -> Event:
    return Event(EventType.VOTE_CAST, {
        'round_id': round_id,
        'from': voter,
        'to': receiver,
        'sign': sign,
        'value': value,
    })


def member_added(account: str, role: str, by: str) -> Event:
    return Event(EventType.MEMBER_ADDED, {'account': account, 'role': role, 'by': by})


def member_removed(account: str, role: str, by: str) -> Event:
    return Event(EventType.MEMBER_REMOVED, {'account': account, 'role': role, 'by': by})


def token_awarded(round_id: int, account: str, tier: str) -> Event:
    return Event(EventType.TOKEN_AWARDED, {'round_id': round_id, 'account': account, 'tier': tier})
