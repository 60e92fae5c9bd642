"""
Domain events for BugHawk.

Every successful mutation in the core publishes one DomainEvent to the
emitter it was constructed with. Delivery beyond that (retries, fan-out to
notification/audit/search services) belongs to whoever subscribes.

Usage:
    from bughawk.events import EventBus, JsonlEventLog

    bus = EventBus()
    bus.subscribe(JsonlEventLog(data_dir / "events.jsonl").publish)
    registry = MembershipRegistry(store, emitter=bus)
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class EventKind(Enum):
    ISSUE_TRANSITIONED = "IssueTransitioned"
    MEMBER_ADDED = "MemberAdded"
    MEMBER_REMOVED = "MemberRemoved"
    MEMBER_UPDATED = "MemberUpdated"
    ISSUE_CREATED = "IssueCreated"
    ISSUE_ASSIGNED = "IssueAssigned"
    ISSUE_DELETED = "IssueDeleted"
    ISSUE_UPDATED = "IssueUpdated"


@dataclass(frozen=True)
class DomainEvent:
    """Immutable record of a committed state change."""
    kind: EventKind
    payload: dict
    actor_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "payload": self.payload,
            "actor_id": self.actor_id,
            "timestamp": self.timestamp.isoformat(),
        }


class EventEmitter(Protocol):
    def publish(self, event: DomainEvent) -> None:
        ...


class NullEmitter:
    """Discards events. Default when no emitter is wired."""

    def publish(self, event: DomainEvent) -> None:
        pass


class RecordingEmitter:
    """Keeps published events in order. Used by tests and dry runs."""

    def __init__(self):
        self.events: list[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: EventKind) -> list[DomainEvent]:
        return [e for e in self.events if e.kind == kind]

    def clear(self) -> None:
        self.events.clear()


class LoggingEmitter:
    """Writes each event to the log at INFO."""

    def publish(self, event: DomainEvent) -> None:
        logger.info(f"[EVENT] {event.kind.value} by {event.actor_id or '-'}: {event.payload}")


class JsonlEventLog:
    """Append-only audit log, one JSON object per line."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def publish(self, event: DomainEvent) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a") as f:
            f.write(json.dumps(event.to_dict()) + "\n")

    def read(self) -> list[dict]:
        if not self.path.exists():
            return []
        events = []
        for lineno, line in enumerate(self.path.read_text().splitlines(), 1):
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping malformed event at {self.path}:{lineno}: {e}")
        return events


class EventBus:
    """Synchronous fan-out to subscribers, in subscription order.

    A failing subscriber is logged and skipped; the mutation that produced
    the event has already been applied.
    """

    def __init__(self):
        self._subscribers: list[Callable[[DomainEvent], None]] = []

    def subscribe(self, handler: Callable[[DomainEvent], None]) -> None:
        self._subscribers.append(handler)

    def unsubscribe(self, handler: Callable[[DomainEvent], None]) -> None:
        if handler in self._subscribers:
            self._subscribers.remove(handler)

    def publish(self, event: DomainEvent) -> None:
        for handler in self._subscribers:
            try:
                handler(event)
            except Exception as e:
                logger.warning(f"[EVENT] subscriber {handler!r} failed on {event.kind.value}: {e}")
