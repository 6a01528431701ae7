"""
Unit tests for the discovery registry.
"""

import threading
from unittest.mock import Mock

import pytest

from cpdb.models.printer import PrinterEvent
from cpdb.services.discovery import DiscoveryRegistry


# Fixtures

@pytest.fixture
def registry():
    """Empty discovery registry."""
    return DiscoveryRegistry()


def make_printer(pointer, slot):
    """Stand-in for Frontend._printer()."""
    return (pointer, slot)


class TestRecord:
    """Test event bookkeeping."""

    def test_added_keeps_arrival_order(self, registry):
        """Test printers are listed in the order they were announced."""
        for pointer in (0x30, 0x10, 0x20):
            registry.record(pointer, PrinterEvent.ADDED)

        assert [p for p, _ in registry.snapshot()] == [0x30, 0x10, 0x20]

    def test_repeated_added_is_one_entry(self, registry):
        """Test re-announcement does not duplicate a printer."""
        first = registry.record(0x10, PrinterEvent.ADDED)
        second = registry.record(0x10, PrinterEvent.STATE_CHANGED)

        assert first is second
        assert len(registry) == 1

    def test_removed_forgets_printer(self, registry):
        """Test REMOVED drops the printer and hands back its slot."""
        slot = registry.record(0x10, PrinterEvent.ADDED)
        removed = registry.record(0x10, PrinterEvent.REMOVED)

        assert removed is slot
        assert registry.snapshot() == []

    def test_track_registers_lookups(self, registry):
        """Test printers found by lookup share the slot of announced ones."""
        announced = registry.record(0x10, PrinterEvent.ADDED)

        assert registry.track(0x10) is announced
        assert registry.track(0x20) is not announced
        assert len(registry) == 2

    def test_retire_all(self, registry):
        """Test retire_all() invalidates every slot and clears the listener."""
        slots = [registry.record(p, PrinterEvent.ADDED) for p in (0x10, 0x20)]
        registry.set_listener(Mock())

        assert registry.retire_all() == 2
        assert all(slot.is_retired for slot in slots)
        assert registry.listener is None
        assert len(registry) == 0

    def test_events_after_retire_all_dropped(self, registry):
        """Test a closed registry neither records nor forwards late events."""
        listener = Mock()
        registry.set_listener(listener)
        registry.retire_all()
        registry.set_listener(listener)

        registry.dispatch(0x10, 0, make_printer)

        assert registry.record(0x20, PrinterEvent.ADDED) is None
        assert registry.track(0x30).is_retired is True
        assert len(registry) == 0
        listener.assert_not_called()


class TestDispatch:
    """Test the callback trampoline."""

    def test_forwards_to_listener(self, registry):
        """Test each callback reaches the listener synchronously."""
        listener = Mock()
        registry.set_listener(listener)

        registry.dispatch(0x10, 0, make_printer)

        (pointer, slot), event = listener.call_args[0]
        assert pointer == 0x10
        assert event is PrinterEvent.ADDED
        assert slot.is_retired is False

    def test_records_without_listener(self, registry):
        """Test printers are recorded even when nobody listens."""
        registry.dispatch(0x10, 0, make_printer)
        assert len(registry) == 1

    def test_removed_slot_retired_after_listener(self, registry):
        """Test the listener still sees a valid slot for REMOVED, then it is retired."""
        seen = []
        registry.set_listener(lambda printer, event: seen.append(printer[1].is_retired))
        registry.dispatch(0x10, 0, make_printer)

        registry.dispatch(0x10, 1, make_printer)

        assert seen == [False, False]
        slot = registry.track(0x10)
        assert slot.is_retired is False  # a fresh slot; the old one was retired

    def test_listener_exception_does_not_escape(self, registry, caplog):
        """Test a failing listener is logged and the event still recorded."""
        registry.set_listener(Mock(side_effect=ValueError("boom")))

        registry.dispatch(0x10, 0, make_printer)

        assert len(registry) == 1
        assert "Discovery listener raised" in caplog.text

    def test_null_printer_ignored(self, registry):
        """Test a callback with a null printer does nothing."""
        listener = Mock()
        registry.set_listener(listener)

        registry.dispatch(None, 0, make_printer)

        listener.assert_not_called()
        assert len(registry) == 0

    def test_unknown_code_is_state_change(self, registry):
        """Test codes from newer libraries are treated as STATE_CHANGED."""
        listener = Mock()
        registry.set_listener(listener)

        registry.dispatch(0x10, 99, make_printer)

        assert listener.call_args[0][1] is PrinterEvent.STATE_CHANGED

    def test_concurrent_dispatch(self, registry):
        """Test dispatch from several foreign threads keeps every printer."""
        threads = [
            threading.Thread(target=registry.dispatch, args=(0x100 + i, 0, make_printer))
            for i in range(16)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 16
