"""
Alteration notifications emitted while reconciling a schema.

Every staged or executed change produces an ``AlterationEvent``. Reporters
decide how events are presented; the reconciler only emits them.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol

from rich.console import Console


logger = logging.getLogger(__name__)


class AlterationKind(str, Enum):
    """Kinds of schema alteration events."""

    CREATED = "created"
    CHANGED = "changed"
    OBSOLETE = "obsolete"
    REPAIRED = "repaired"
    ERROR = "error"
    DELETED = "deleted"


@dataclass(frozen=True)
class AlterationEvent:
    """A single alteration message and its kind."""

    message: str
    kind: AlterationKind


class AlterationReporter(Protocol):
    def report(self, event: AlterationEvent) -> None:
        ...


class LoggingReporter:
    """Writes alteration events to the ``schemasync`` log."""

    _LEVELS = {
        AlterationKind.ERROR: logging.ERROR,
        AlterationKind.OBSOLETE: logging.WARNING,
        AlterationKind.DELETED: logging.WARNING,
    }

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def report(self, event: AlterationEvent) -> None:
        level = self._LEVELS.get(event.kind, logging.INFO)
        self.log.log(level, f"[{event.kind.value}] {event.message}")


class ConsoleReporter:
    """Prints alteration events to a rich console, coloured by kind."""

    COLOURS = {
        AlterationKind.CREATED: "green",
        AlterationKind.OBSOLETE: "red",
        AlterationKind.ERROR: "red",
        AlterationKind.DELETED: "red",
        AlterationKind.CHANGED: "blue",
        AlterationKind.REPAIRED: "blue",
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def report(self, event: AlterationEvent) -> None:
        colour = self.COLOURS.get(event.kind, "white")
        self.console.print(f"[{colour}]•[/{colour}] {event.message}", highlight=False)


class CollectingReporter:
    """Keeps every event in memory, e.g. for a plan summary."""

    def __init__(self):
        self.events: List[AlterationEvent] = []

    def report(self, event: AlterationEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: AlterationKind) -> List[AlterationEvent]:
        return [event for event in self.events if event.kind == kind]


class AlterationNotifier:
    """Fans events out to reporters unless notifications are suppressed."""

    def __init__(self, reporters: Optional[List[AlterationReporter]] = None, quiet: bool = False):
        self.reporters = list(reporters) if reporters is not None else [LoggingReporter()]
        self.quiet = quiet

    def emit(self, message: str, kind: AlterationKind) -> None:
        if self.quiet:
            return
        event = AlterationEvent(message=message, kind=kind)
        for reporter in self.reporters:
            reporter.report(event)
