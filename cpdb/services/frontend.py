"""
Root session with the Common Print Dialog Backends.

A Frontend owns one cpdb_frontend_obj_t. It is the only way to obtain
Printer references, and closing it invalidates all of them.

LIFECYCLE:
    Frontend.create()  -> cpdbGetNewFrontendObj(callback)
    connect()          -> cpdbConnectToDBus()       (idempotent)
    list_printers()    -> printers announced so far, arrival order
    disconnect()       -> cpdbDisconnectFromDBus()  (idempotent)
    close()            -> disconnect, invalidate printers, cpdbDeleteFrontendObj()

Usage:
    import cpdb

    cpdb.init()
    with cpdb.Frontend.create() as frontend:
        frontend.connect()
        for printer in frontend.list_printers():
            print(printer.name, printer.backend_name)
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable, List, Optional, Union

from cpdb.config import Config
from cpdb.core.exceptions import (
    BackendError,
    CpdbIOError,
    FrontendError,
    InvalidPrinterError,
)
from cpdb.core.handle import OwnedHandle, Slot
from cpdb.core.library import get_library
from cpdb.core.marshal import to_foreign_string
from cpdb.logging_config import get_logger
from cpdb.models.capability import ThreadCapability
from cpdb.models.printer import PrinterEvent
from cpdb.services.discovery import DiscoveryRegistry
from cpdb.services.printer import Printer

logger = get_logger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class Frontend:
    """
    Owning wrapper around a cpdb frontend session.

    Thread capability: TRANSFERABLE. The discovery callback may run on a
    foreign thread at any time while the session is alive; it only touches
    the lock-protected discovery registry.

    Attributes:
        library: CpdbLibrary (or compatible) used for every foreign call
        handle: Owning guard of the session pointer; printers borrow through it
    """

    thread_capability = ThreadCapability.TRANSFERABLE

    def __init__(self, library=None):
        """
        Allocate a new session. Prefer Frontend.create().

        Raises:
            FrontendError: If the foreign allocator returns null
        """
        self.library = library or get_library()
        self.library.initialize()
        self._registry = DiscoveryRegistry()
        self._connected = False
        self._state_lock = threading.Lock()
        self._close_lock = threading.Lock()

        # The CFUNCTYPE object must outlive every possible foreign call
        self._callback = self.library.make_printer_callback(self._on_printer)
        pointer = self.library.new_frontend(self._callback)
        if not pointer:
            self._callback = None
            logger.error("cpdbGetNewFrontendObj returned NULL")
            raise FrontendError("could not allocate frontend object")
        self.handle = OwnedHandle.wrap(pointer, self.library.delete_frontend, "frontend")
        logger.debug(f"Frontend created at {pointer:#x}")

    @classmethod
    def create(
        cls,
        library=None,
        hide_remote: Optional[bool] = None,
        hide_temporary: Optional[bool] = None,
    ) -> "Frontend":
        """
        Create a session, applying printer visibility defaults.

        Args:
            library: Library to call through (default: process-wide instance)
            hide_remote: Hide remote printers (default: Config.HIDE_REMOTE_PRINTERS)
            hide_temporary: Hide temporary printers (default: Config.HIDE_TEMPORARY_PRINTERS)

        Raises:
            FrontendError: If the session cannot be allocated
            LibraryNotFoundError: If cpdb-libs cannot be loaded
        """
        frontend = cls(library)
        if hide_remote is None:
            hide_remote = Config.HIDE_REMOTE_PRINTERS
        if hide_temporary is None:
            hide_temporary = Config.HIDE_TEMPORARY_PRINTERS
        try:
            if hide_remote:
                frontend.hide_remote_printers()
            if hide_temporary:
                frontend.hide_temporary_printers()
        except Exception:
            frontend.close()
            raise
        return frontend

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    @property
    def is_connected(self) -> bool:
        return self._connected and not self.handle.is_released

    @property
    def is_closed(self) -> bool:
        return self.handle.is_released

    def connect(self) -> None:
        """Connect to the backends over D-Bus; a no-op when already connected."""
        pointer = self.handle.borrow()
        with self._state_lock:
            if self._connected:
                return
            self._connected = True
        try:
            self.library.connect(pointer)
        except Exception:
            self._connected = False
            raise
        logger.debug("Frontend connected")

    def disconnect(self) -> None:
        """Disconnect from D-Bus; a no-op when not connected."""
        with self._state_lock:
            if not self._connected:
                return
            self._connected = False
        self.library.disconnect(self.handle.borrow())
        logger.debug("Frontend disconnected")

    def require_connected(self, operation: str) -> int:
        """Session pointer, or FrontendError when the transport is down."""
        pointer = self.handle.borrow()
        if not self._connected:
            raise FrontendError(f"{operation} requires a connected session")
        return pointer

    # =========================================================================
    # PRINTERS
    # =========================================================================

    def _printer(self, pointer: int, slot: Optional[Slot]) -> Printer:
        return Printer(self, pointer, slot)

    def list_printers(self) -> List[Printer]:
        """
        Printers known to the session, in the order they were announced.

        Asks the backends to re-announce their printers first when the
        library supports it.

        Raises:
            FrontendError: If the session is not connected
        """
        pointer = self.require_connected("list_printers")
        if self.library.supports("cpdbGetAllPrinters"):
            self.library.refresh_printers(pointer)
        printers = [self._printer(p, slot) for p, slot in self._registry.snapshot()]
        logger.debug(f"Listing {len(printers)} printer(s)")
        return printers

    def find_printer(self, printer_id: str, backend_name: str) -> Printer:
        """
        Look up a printer by id and backend.

        Raises:
            InvalidPrinterError: If no such printer is known
        """
        pointer = self.library.find_printer(
            self.handle.borrow(), to_foreign_string(printer_id), to_foreign_string(backend_name)
        )
        if not pointer:
            raise InvalidPrinterError(f"no printer {printer_id!r} on backend {backend_name!r}")
        return self._printer(pointer, self._registry.track(pointer))

    def get_default_printer(self, backend_name: Optional[str] = None) -> Printer:
        """
        The user's default printer, optionally for one backend only.

        Raises:
            FrontendError: If the session is not connected
            InvalidPrinterError: If there is no default printer
        """
        pointer = self.require_connected("get_default_printer")
        backend = to_foreign_string(backend_name) if backend_name is not None else None
        printer = self.library.default_printer(pointer, backend)
        if not printer:
            raise InvalidPrinterError("no default printer")
        return self._printer(printer, self._registry.track(printer))

    def load_printer(self, path: PathLike) -> Printer:
        """
        Restore a printer saved with Printer.save_to_file() into this session.

        Raises:
            CpdbIOError: If the file does not exist
            BackendError: If cpdb-libs cannot restore it
        """
        path = Path(path)
        if not path.is_file():
            raise CpdbIOError(f"printer file not found: {path}")
        session = self.handle.borrow()
        pointer = self.library.resurrect_printer(to_foreign_string(os.fspath(path)))
        if not pointer:
            logger.error(f"cpdbResurrectPrinterFromFile returned NULL for {path}")
            raise BackendError(f"could not restore printer from {path}")

        if self.library.add_printer(session, pointer):
            logger.debug(f"Restored printer from {path}")
            return self._printer(pointer, self._registry.track(pointer))

        # The session already has this printer; keep its object, drop ours
        probe = Printer(self, pointer, None)
        printer_id, backend_name = probe.id, probe.backend_name
        self.library.delete_printer(pointer)
        return self.find_printer(printer_id, backend_name)

    # =========================================================================
    # VISIBILITY
    # =========================================================================

    def hide_remote_printers(self) -> None:
        self.library.set_remote_hidden(self.handle.borrow(), True)

    def unhide_remote_printers(self) -> None:
        self.library.set_remote_hidden(self.handle.borrow(), False)

    def hide_temporary_printers(self) -> None:
        self.library.set_temporary_hidden(self.handle.borrow(), True)

    def unhide_temporary_printers(self) -> None:
        self.library.set_temporary_hidden(self.handle.borrow(), False)

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    def start_discovery(
        self,
        callback: Callable[[Printer, PrinterEvent], None],
        replay: bool = True,
    ) -> None:
        """
        Forward discovery events to callback(printer, event).

        The callback may run on a foreign thread. Exceptions it raises there
        are logged and dropped.

        Args:
            callback: Listener; replaces any previous one
            replay: Deliver already known printers as ADDED first, on the
                calling thread
        """
        self.handle.borrow()
        known = self._registry.set_listener(callback)
        logger.debug(f"Discovery started ({len(known)} known printer(s))")
        if replay:
            for pointer, slot in known:
                callback(self._printer(pointer, slot), PrinterEvent.ADDED)

    def stop_discovery(self) -> None:
        """Stop forwarding events. Printers keep being recorded."""
        self._registry.set_listener(None)
        logger.debug("Discovery stopped")

    def _on_printer(self, frontend_pointer, printer_pointer, update) -> None:
        # Runs on the transport thread; dispatch() never raises
        self._registry.dispatch(printer_pointer, update, self._printer)

    # =========================================================================
    # RELEASE
    # =========================================================================

    def close(self) -> None:
        """
        Tear the session down. Safe to call any number of times.

        Every Printer obtained from this session raises InvalidPrinterError
        afterwards.
        """
        with self._close_lock:
            if self.handle.is_released:
                return
            try:
                self.disconnect()
            finally:
                self._registry.retire_all()
                self.handle.release()
                self._callback = None
        logger.debug("Frontend closed")

    def __enter__(self) -> "Frontend":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        if self.handle.is_released:
            return "<Frontend closed>"
        state = "connected" if self._connected else "disconnected"
        return f"<Frontend {state}, {len(self._registry)} printer(s)>"
