"""
Printer discovery registry.

cpdb-libs announces printers through a single callback registered when the
frontend object is created. The callback runs on whatever thread the D-Bus
transport dispatches on, so the registry is the only state it touches and
every access goes through one lock.

THREAD MODEL:
    Foreign dispatch thread            Caller threads
    -----------------------            --------------
    dispatch(ptr, code)                list_printers() -> snapshot()
      ├── record under lock            start_discovery() -> set_listener()
      ├── listener(printer, event)     close() -> retire_all()
      │   (outside the lock)
      └── retire slot on REMOVED

Listener exceptions are logged and dropped in dispatch(): an exception
unwinding into foreign code has nowhere meaningful to go.

Usage:
    registry = DiscoveryRegistry()
    registry.set_listener(on_printer)
    registry.dispatch(printer_ptr, 0, make_printer)   # from the trampoline
    for pointer, slot in registry.snapshot():
        ...
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Callable, List, Optional, Tuple

from cpdb.core.handle import Slot
from cpdb.logging_config import get_logger
from cpdb.models.printer import PrinterEvent

logger = get_logger(__name__)

Listener = Callable[[object, PrinterEvent], None]


class DiscoveryRegistry:
    """
    Thread-safe record of printers known to one session, in arrival order.

    Each printer pointer gets a Slot. Printer references created for that
    pointer share the slot, so retiring it (printer removed, or session
    closed) invalidates all of them at once.
    """

    def __init__(self):
        """Initialize an empty registry with no listener."""
        self._slots: "OrderedDict[int, Slot]" = OrderedDict()
        self._listener: Optional[Listener] = None
        self._closed = False
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    @property
    def listener(self) -> Optional[Listener]:
        return self._listener

    def set_listener(self, listener: Optional[Listener]) -> List[Tuple[int, Slot]]:
        """
        Install (or clear, with None) the discovery listener.

        Returns:
            Snapshot of printers known at the moment the listener was set,
            for replaying as ADDED events
        """
        with self._lock:
            self._listener = listener
            return list(self._slots.items())

    def track(self, pointer: int) -> Slot:
        """
        Slot for a printer pointer, registering it when it is new.

        Used for printers reached by lookup rather than announced by the
        callback, so session close still invalidates them.
        """
        with self._lock:
            if self._closed:
                slot = Slot()
                slot.retire()
                return slot
            slot = self._slots.get(pointer)
            if slot is None:
                slot = self._slots[pointer] = Slot()
            return slot

    def record(self, pointer: int, event: PrinterEvent) -> Optional[Slot]:
        """
        Apply one discovery event.

        ADDED and STATE_CHANGED register the pointer if needed. REMOVED
        forgets it and returns its slot unretired; the caller retires it
        once the listener has seen the event. After retire_all() events are
        ignored and None is returned.
        """
        with self._lock:
            if self._closed:
                return None
            if event is PrinterEvent.REMOVED:
                slot = self._slots.pop(pointer, None)
                return slot if slot is not None else Slot()
            slot = self._slots.get(pointer)
            if slot is None:
                slot = self._slots[pointer] = Slot()
            return slot

    def snapshot(self) -> List[Tuple[int, Slot]]:
        """Known printers as (pointer, slot) pairs, oldest first."""
        with self._lock:
            return list(self._slots.items())

    def retire_all(self) -> int:
        """
        Retire every slot and forget every printer. Later events are dropped.

        Returns:
            Number of printers retired
        """
        with self._lock:
            slots = list(self._slots.values())
            self._slots.clear()
            self._listener = None
            self._closed = True
        for slot in slots:
            slot.retire()
        if slots:
            logger.debug(f"Retired {len(slots)} printer reference slot(s)")
        return len(slots)

    def dispatch(self, pointer: Optional[int], code: int, make_printer: Callable[[int, Slot], object]) -> None:
        """
        Handle one invocation of the foreign printer callback.

        Never raises.

        Args:
            pointer: cpdb_printer_obj_t address passed by the library
            code: cpdb_printer_update_t value
            make_printer: Builds a caller-facing reference from (pointer, slot)
        """
        try:
            if not pointer:
                logger.warning(f"Discovery callback with null printer (update {code}) ignored")
                return
            event = PrinterEvent.from_foreign(code)
            slot = self.record(pointer, event)
            if slot is None:
                logger.debug(f"Discovery event {event.name} after close ignored")
                return
            logger.debug(f"Discovery event {event.name} for printer at {pointer:#x}")
            try:
                listener = self._listener
                if listener is not None:
                    listener(make_printer(pointer, slot), event)
            finally:
                if event is PrinterEvent.REMOVED:
                    slot.retire()
        except Exception:
            logger.exception("Discovery listener raised; event dropped")
