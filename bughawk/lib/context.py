"""
Wiring for CLI commands.

Builds the store, event bus, registry and issue service from a Config and
hands them to commands as one object.
"""

import logging
from dataclasses import dataclass

from bughawk.events import EventBus, JsonlEventLog, LoggingEmitter
from bughawk.lib.config import Config
from bughawk.lib.store import FileStore
from bughawk.members.registry import MembershipRegistry
from bughawk.workflow.issues import IssueService

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class AppContext:
    config: Config
    store: FileStore
    bus: EventBus
    registry: MembershipRegistry
    issues: IssueService


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT)


def build_context(config: Config) -> AppContext:
    store = FileStore(config.data_dir)
    bus = EventBus()
    bus.subscribe(LoggingEmitter().publish)
    if config.event_log:
        bus.subscribe(JsonlEventLog(config.data_dir / "events.jsonl").publish)

    registry = MembershipRegistry(store, emitter=bus)
    return AppContext(
        config=config,
        store=store,
        bus=bus,
        registry=registry,
        issues=IssueService(store, registry, emitter=bus),
    )
