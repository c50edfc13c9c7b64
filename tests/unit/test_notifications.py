"""
Tests for schemasync.schema.notifications module.
"""

import logging
from unittest.mock import MagicMock

from rich.console import Console

from schemasync.schema.notifications import (
    AlterationEvent,
    AlterationKind,
    AlterationNotifier,
    CollectingReporter,
    ConsoleReporter,
    LoggingReporter,
)


class TestAlterationKind:
    """Test AlterationKind enum."""

    def test_values(self):
        assert [kind.value for kind in AlterationKind] == [
            "created",
            "changed",
            "obsolete",
            "repaired",
            "error",
            "deleted",
        ]


class TestLoggingReporter:
    """Test LoggingReporter log levels."""

    def test_created_is_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="schemasync"):
            LoggingReporter().report(AlterationEvent("Table Page: created", AlterationKind.CREATED))

        assert caplog.records[-1].levelno == logging.INFO
        assert caplog.records[-1].getMessage() == "[created] Table Page: created"

    def test_error_is_error(self, caplog):
        with caplog.at_level(logging.INFO, logger="schemasync"):
            LoggingReporter().report(AlterationEvent("boom", AlterationKind.ERROR))

        assert caplog.records[-1].levelno == logging.ERROR

    def test_obsolete_is_warning(self):
        log = MagicMock()

        LoggingReporter(log).report(AlterationEvent("Table Old: renamed", AlterationKind.OBSOLETE))

        log.log.assert_called_once_with(logging.WARNING, "[obsolete] Table Old: renamed")


class TestConsoleReporter:
    """Test ConsoleReporter output."""

    def test_prints_message(self):
        console = Console(record=True, width=120)

        ConsoleReporter(console).report(AlterationEvent("Table Page: created", AlterationKind.CREATED))

        assert "Table Page: created" in console.export_text()

    def test_colours(self):
        assert ConsoleReporter.COLOURS[AlterationKind.CREATED] == "green"
        assert ConsoleReporter.COLOURS[AlterationKind.OBSOLETE] == "red"
        assert ConsoleReporter.COLOURS[AlterationKind.CHANGED] == "blue"


class TestAlterationNotifier:
    """Test AlterationNotifier fan-out."""

    def test_emits_to_every_reporter(self):
        first, second = CollectingReporter(), CollectingReporter()
        notifier = AlterationNotifier([first, second])

        notifier.emit("Table Page: created", AlterationKind.CREATED)

        assert first.events == [AlterationEvent("Table Page: created", AlterationKind.CREATED)]
        assert second.events == first.events

    def test_quiet_suppresses_events(self):
        reporter = CollectingReporter()
        notifier = AlterationNotifier([reporter], quiet=True)

        notifier.emit("Table Page: created", AlterationKind.CREATED)

        assert reporter.events == []

    def test_defaults_to_logging_reporter(self):
        notifier = AlterationNotifier()

        assert len(notifier.reporters) == 1
        assert isinstance(notifier.reporters[0], LoggingReporter)

    def test_collecting_reporter_filters_by_kind(self):
        reporter = CollectingReporter()
        notifier = AlterationNotifier([reporter])

        notifier.emit("a", AlterationKind.CREATED)
        notifier.emit("b", AlterationKind.CHANGED)

        assert [event.message for event in reporter.of_kind(AlterationKind.CHANGED)] == ["b"]
