"""
cpdb-libs shared library lifecycle and foreign call surface.

This module loads libcpdb-frontend and GLib, declares every function
signature once, and exposes one method per foreign operation. Wrapper
classes never touch ctypes directly: every call across the boundary goes
through a CpdbLibrary instance, which makes it the single seam tests
replace with a fake.

POINTER CONVENTIONS:
    - Handles are returned as int addresses (restype c_void_p), None for NULL
    - char * results are returned as int addresses too, never as bytes, so
      the caller can still free them (see core.marshal)
    - Text arguments are bytes produced by marshal.to_foreign_string()

PROCESS-WIDE STATE:
    get_library() returns the shared instance, creating and loading it on
    first use. init() additionally calls cpdbInit() exactly once; calling it
    again is a no-op. There is no teardown.

Usage:
    from cpdb.core.library import init, get_library

    init()
    lib = get_library()
    frontend_ptr = lib.new_frontend(lib.make_printer_callback(on_printer))
"""

from __future__ import annotations

import ctypes.util
import logging
import threading
from ctypes import (
    POINTER,
    byref,
    cast,
    c_bool,
    c_char_p,
    c_int,
    c_uint,
    c_void_p,
    cdll,
    pointer,
    string_at,
)
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from cpdb.config import Config
from cpdb.core.exceptions import LibraryNotFoundError, UnsupportedOperationError
from cpdb.core.ffi import (
    PRINTER_CALLBACK,
    PRINTER_STRING_FIELDS,
    CpdbMargin,
    CpdbOptions,
    CpdbPrinter,
    CpdbSettings,
    GList,
    RawMedia,
    RawOption,
    read_margin_out,
    read_media,
    read_option,
    raw_pointer_field,
    read_printer_string,
    walk_glist,
)
from cpdb.core.marshal import from_foreign_string
from cpdb.logging_config import get_logger

# name -> (argtypes, restype)
_FRONTEND_FUNCTIONS: Dict[str, Tuple[list, object]] = {
    "cpdbInit": ([], None),
    "cpdbGetNewFrontendObj": ([PRINTER_CALLBACK], c_void_p),
    "cpdbDeleteFrontendObj": ([c_void_p], None),
    "cpdbConnectToDBus": ([c_void_p], None),
    "cpdbDisconnectFromDBus": ([c_void_p], None),
    "cpdbFindPrinterObj": ([c_void_p, c_char_p, c_char_p], c_void_p),
    "cpdbGetDefaultPrinter": ([c_void_p], c_void_p),
    "cpdbGetDefaultPrinterForBackend": ([c_void_p, c_char_p], c_void_p),
    "cpdbAddPrinter": ([c_void_p, c_void_p], c_bool),
    "cpdbDeletePrinterObj": ([c_void_p], None),
    "cpdbIsAcceptingJobs": ([c_void_p], c_int),
    "cpdbGetState": ([c_void_p], c_void_p),
    "cpdbPrintFile": ([c_void_p, c_char_p], c_void_p),
    "cpdbPrintFileWithJobTitle": ([c_void_p, c_char_p, c_char_p], c_void_p),
    "cpdbAddSettingToPrinter": ([c_void_p, c_char_p, c_char_p], None),
    "cpdbClearSettingFromPrinter": ([c_void_p, c_char_p], c_bool),
    "cpdbGetAllOptions": ([c_void_p], c_void_p),
    "cpdbGetOption": ([c_void_p, c_char_p], c_void_p),
    "cpdbGetDefault": ([c_void_p, c_char_p], c_void_p),
    "cpdbGetCurrent": ([c_void_p, c_char_p], c_void_p),
    "cpdbGetMedia": ([c_void_p, c_char_p], c_void_p),
    "cpdbGetMediaSize": ([c_void_p, c_char_p, POINTER(c_int), POINTER(c_int)], c_int),
    "cpdbGetMediaMargins": ([c_void_p, c_char_p, POINTER(POINTER(CpdbMargin))], c_int),
    "cpdbGetNewOptions": ([], c_void_p),
    "cpdbDeleteOptions": ([c_void_p], None),
    "cpdbGetNewSettings": ([], c_void_p),
    "cpdbCopySettings": ([c_void_p, c_void_p], None),
    "cpdbAddSetting": ([c_void_p, c_char_p, c_char_p], None),
    "cpdbClearSetting": ([c_void_p, c_char_p], c_bool),
    "cpdbDeleteSettings": ([c_void_p], None),
    "cpdbSaveSettingsToDisk": ([c_void_p, c_char_p], c_int),
    "cpdbReadSettingsFromDisk": ([c_char_p], c_void_p),
}

# Present in some cpdb-libs releases only
_OPTIONAL_FRONTEND_FUNCTIONS: Dict[str, Tuple[list, object]] = {
    "cpdbGetVersion": ([], c_void_p),
    "cpdbGetAllPrinters": ([c_void_p], None),
    "cpdbHideRemotePrinters": ([c_void_p], None),
    "cpdbUnhideRemotePrinters": ([c_void_p], None),
    "cpdbHideTemporaryPrinters": ([c_void_p], None),
    "cpdbUnhideTemporaryPrinters": ([c_void_p], None),
    "cpdbPicklePrinterToFile": ([c_void_p, c_char_p, c_void_p], None),
    "cpdbResurrectPrinterFromFile": ([c_char_p], c_void_p),
}

_GLIB_FUNCTIONS: Dict[str, Tuple[list, object]] = {
    "g_free": ([c_void_p], None),
    "g_hash_table_get_keys": ([c_void_p], POINTER(GList)),
    "g_hash_table_get_values": ([c_void_p], POINTER(GList)),
    "g_hash_table_lookup": ([c_void_p, c_void_p], c_void_p),
    "g_hash_table_size": ([c_void_p], c_uint),
    "g_list_free": ([POINTER(GList)], None),
}


def _resolve(name: str) -> str:
    """Turn a configured library name or path into something LoadLibrary accepts."""
    if "/" in name or name.endswith(".so") or ".so." in name:
        if not Path(name).exists():
            raise LibraryNotFoundError(name, "file does not exist")
        return name
    found = ctypes.util.find_library(name)
    if not found:
        raise LibraryNotFoundError(name, "not found on the loader search path")
    return found


class CpdbLibrary:
    """
    Loaded cpdb frontend library plus GLib helpers.

    This class is responsible for:
    1. Locating and loading libcpdb-frontend and libglib-2.0
    2. Declaring argtypes/restype for every function used
    3. Calling cpdbInit() once
    4. Offering one method per foreign operation, including the struct
       reads and pointer-to-pointer dereferences ctypes needs help with

    It does NOT own any foreign object; ownership lives in the wrapper
    classes and their handle guards.

    Attributes:
        frontend_library: Configured name or path of libcpdb-frontend
        glib_library: Configured name or path of libglib-2.0
        is_loaded: True once both libraries are loaded
        is_initialized: True once cpdbInit() has run
    """

    def __init__(
        self,
        frontend_library: Optional[str] = None,
        glib_library: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Create an unloaded library handle.

        Args:
            frontend_library: Name or path of libcpdb-frontend (default: Config.FRONTEND_LIBRARY)
            glib_library: Name or path of libglib-2.0 (default: Config.GLIB_LIBRARY)
            logger: Logger instance (optional)

        Note:
            This does NOT load anything - call load() or initialize().
        """
        self.frontend_library = frontend_library or Config.FRONTEND_LIBRARY
        self.glib_library = glib_library or Config.GLIB_LIBRARY
        self._logger = logger or get_logger(__name__)
        self._cpdb = None
        self._glib = None
        self._missing: set = set()
        self._is_initialized = False
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._cpdb is not None and self._glib is not None

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def load(self) -> None:
        """
        Load both shared libraries and declare function signatures.

        Safe to call multiple times.

        Raises:
            LibraryNotFoundError: If a library cannot be located or loaded
        """
        with self._lock:
            if self.is_loaded:
                return
            self._cpdb = self._load_one(self.frontend_library)
            self._glib = self._load_one(self.glib_library)
            self._setup_functions()

    def _load_one(self, name: str):
        path = _resolve(name)
        try:
            library = cdll.LoadLibrary(path)
        except OSError as e:
            self._logger.error(f"Failed to load {path}: {e}")
            raise LibraryNotFoundError(name, str(e)) from e
        self._logger.debug(f"Loaded shared library {path}")
        return library

    def _setup_functions(self) -> None:
        """Declare argtypes/restype; optional symbols that are absent are recorded."""
        for table, library, required in (
            (_FRONTEND_FUNCTIONS, self._cpdb, True),
            (_OPTIONAL_FRONTEND_FUNCTIONS, self._cpdb, False),
            (_GLIB_FUNCTIONS, self._glib, True),
        ):
            for name, (argtypes, restype) in table.items():
                try:
                    function = getattr(library, name)
                except AttributeError as e:
                    if required:
                        raise LibraryNotFoundError(name, "symbol missing from loaded library") from e
                    self._missing.add(name)
                    self._logger.debug(f"Optional symbol {name} not exported")
                    continue
                function.argtypes = argtypes
                function.restype = restype

    def initialize(self) -> None:
        """
        Load the libraries if needed and run cpdbInit() once.

        Idempotent: later calls return immediately.
        """
        self.load()
        with self._lock:
            if self._is_initialized:
                return
            self._cpdb.cpdbInit()
            self._is_initialized = True
        self._logger.debug("cpdb-libs initialized")

    def supports(self, function_name: str) -> bool:
        """Check whether an optional foreign function is exported."""
        self.load()
        return function_name not in self._missing

    def _call(self, name: str, *args):
        self.load()
        if name in self._missing:
            raise UnsupportedOperationError(name)
        return getattr(self._cpdb, name)(*args)

    # =========================================================================
    # STRINGS AND MEMORY
    # =========================================================================

    def read_string(self, address: int) -> bytes:
        """Copy a NUL-terminated foreign string; does not free it."""
        return string_at(address)

    def free(self, address: int) -> None:
        """Release a foreign buffer with g_free()."""
        self.load()
        self._glib.g_free(address)

    def version(self) -> Optional[int]:
        """Address of the static version string (not to be freed)."""
        return self._call("cpdbGetVersion")

    # =========================================================================
    # FRONTEND
    # =========================================================================

    def make_printer_callback(self, function: Callable[[Optional[int], Optional[int], int], None]):
        """
        Wrap a Python function as a cpdb_printer_callback.

        The returned object must stay referenced for as long as the foreign
        side may call it.
        """
        return PRINTER_CALLBACK(function)

    def new_frontend(self, callback) -> Optional[int]:
        return self._call("cpdbGetNewFrontendObj", callback)

    def delete_frontend(self, frontend: int) -> None:
        self._call("cpdbDeleteFrontendObj", frontend)

    def connect(self, frontend: int) -> None:
        self._call("cpdbConnectToDBus", frontend)

    def disconnect(self, frontend: int) -> None:
        self._call("cpdbDisconnectFromDBus", frontend)

    def refresh_printers(self, frontend: int) -> None:
        self._call("cpdbGetAllPrinters", frontend)

    def find_printer(self, frontend: int, printer_id: bytes, backend: bytes) -> Optional[int]:
        return self._call("cpdbFindPrinterObj", frontend, printer_id, backend)

    def default_printer(self, frontend: int, backend: Optional[bytes] = None) -> Optional[int]:
        if backend is None:
            return self._call("cpdbGetDefaultPrinter", frontend)
        return self._call("cpdbGetDefaultPrinterForBackend", frontend, backend)

    def set_remote_hidden(self, frontend: int, hidden: bool) -> None:
        self._call("cpdbHideRemotePrinters" if hidden else "cpdbUnhideRemotePrinters", frontend)

    def set_temporary_hidden(self, frontend: int, hidden: bool) -> None:
        self._call("cpdbHideTemporaryPrinters" if hidden else "cpdbUnhideTemporaryPrinters", frontend)

    def add_printer(self, frontend: int, printer: int) -> bool:
        return bool(self._call("cpdbAddPrinter", frontend, printer))

    def delete_printer(self, printer: int) -> None:
        self._call("cpdbDeletePrinterObj", printer)

    # =========================================================================
    # PRINTER
    # =========================================================================

    def printer_field(self, printer: int, field: str) -> Optional[int]:
        """Address held by a string member of cpdb_printer_obj_t (borrowed)."""
        self.load()
        return read_printer_string(printer, PRINTER_STRING_FIELDS[field])

    def printer_accepting_field(self, printer: int) -> bool:
        """accepting_jobs member as last reported by the backend (not a live query)."""
        self.load()
        return bool(ctypes_struct(printer, CpdbPrinter).accepting_jobs)

    def printer_settings(self, printer: int) -> Optional[int]:
        """Address of the printer's own cpdb_settings_t (borrowed), None when unset."""
        self.load()
        return raw_pointer_field(ctypes_struct(printer, CpdbPrinter), "settings")

    def is_accepting_jobs(self, printer: int) -> bool:
        return bool(self._call("cpdbIsAcceptingJobs", printer))

    def get_state(self, printer: int) -> Optional[int]:
        return self._call("cpdbGetState", printer)

    def print_file(self, printer: int, path: bytes) -> Optional[int]:
        return self._call("cpdbPrintFile", printer, path)

    def print_file_with_title(self, printer: int, path: bytes, title: bytes) -> Optional[int]:
        return self._call("cpdbPrintFileWithJobTitle", printer, path, title)

    def add_setting_to_printer(self, printer: int, name: bytes, value: bytes) -> None:
        self._call("cpdbAddSettingToPrinter", printer, name, value)

    def clear_setting_from_printer(self, printer: int, name: bytes) -> bool:
        return bool(self._call("cpdbClearSettingFromPrinter", printer, name))

    def get_all_options(self, printer: int) -> Optional[int]:
        return self._call("cpdbGetAllOptions", printer)

    def get_option(self, printer: int, name: bytes) -> Optional[int]:
        return self._call("cpdbGetOption", printer, name)

    def get_default(self, printer: int, name: bytes) -> Optional[int]:
        return self._call("cpdbGetDefault", printer, name)

    def get_current(self, printer: int, name: bytes) -> Optional[int]:
        return self._call("cpdbGetCurrent", printer, name)

    def get_media(self, printer: int, media: bytes) -> Optional[int]:
        return self._call("cpdbGetMedia", printer, media)

    def get_media_size(self, printer: int, media: bytes) -> Tuple[int, int, int]:
        """Returns (status, width, length)."""
        width = c_int(0)
        length = c_int(0)
        status = self._call("cpdbGetMediaSize", printer, media, byref(width), byref(length))
        return status, width.value, length.value

    def get_media_margins(self, printer: int, media: bytes) -> Tuple[int, List[Tuple[int, int, int, int]]]:
        """
        Returns (count, margins) with margins as (top, bottom, left, right).

        The foreign function fills a cpdb_margin_t ** out parameter; the
        array it points to belongs to the printer and is not freed here.
        """
        margins_out = pointer(POINTER(CpdbMargin)())
        count = self._call("cpdbGetMediaMargins", printer, media, margins_out)
        if count <= 0:
            return count, []
        return count, read_margin_out(margins_out, count)

    def pickle_printer(self, printer: int, path: bytes, frontend: int) -> None:
        self._call("cpdbPicklePrinterToFile", printer, path, frontend)

    def resurrect_printer(self, path: bytes) -> Optional[int]:
        return self._call("cpdbResurrectPrinterFromFile", path)

    # =========================================================================
    # OPTIONS AND MEDIA
    # =========================================================================

    def new_options(self) -> Optional[int]:
        return self._call("cpdbGetNewOptions")

    def delete_options(self, options: int) -> None:
        self._call("cpdbDeleteOptions", options)

    def options_entries(self, options: int) -> List[int]:
        """cpdb_option_t addresses held by a cpdb_options_t."""
        table = ctypes_struct(options, CpdbOptions).table
        return [entry for entry in self._hash_values(table) if entry]

    def read_option(self, option: int) -> RawOption:
        return read_option(option)

    def read_media(self, media: int) -> RawMedia:
        return read_media(media)

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def new_settings(self) -> Optional[int]:
        return self._call("cpdbGetNewSettings")

    def copy_settings(self, source: int, dest: int) -> None:
        self._call("cpdbCopySettings", source, dest)

    def add_setting(self, settings: int, name: bytes, value: bytes) -> None:
        self._call("cpdbAddSetting", settings, name, value)

    def clear_setting(self, settings: int, name: bytes) -> bool:
        return bool(self._call("cpdbClearSetting", settings, name))

    def delete_settings(self, settings: int) -> None:
        self._call("cpdbDeleteSettings", settings)

    def save_settings(self, settings: int, path: bytes) -> int:
        return self._call("cpdbSaveSettingsToDisk", settings, path)

    def read_settings(self, path: bytes) -> Optional[int]:
        return self._call("cpdbReadSettingsFromDisk", path)

    def settings_entries(self, settings: int) -> List[Tuple[int, Optional[int]]]:
        """(key address, value address) pairs held by a cpdb_settings_t."""
        table = ctypes_struct(settings, CpdbSettings).table
        if not table:
            return []
        self.load()
        keys = self._glib.g_hash_table_get_keys(table)
        try:
            return [
                (key, self._glib.g_hash_table_lookup(table, key) or None)
                for key in walk_glist(keys)
                if key
            ]
        finally:
            self._glib.g_list_free(keys)

    def _hash_values(self, table: Optional[int]) -> List[Optional[int]]:
        if not table:
            return []
        self.load()
        values = self._glib.g_hash_table_get_values(table)
        try:
            return walk_glist(values)
        finally:
            self._glib.g_list_free(values)


def ctypes_struct(address: int, struct_type):
    """View foreign memory at address as struct_type."""
    return cast(address, POINTER(struct_type)).contents


# =============================================================================
# PROCESS-WIDE INSTANCE
# =============================================================================

_library: Optional[CpdbLibrary] = None
_library_lock = threading.Lock()


def get_library() -> CpdbLibrary:
    """
    Return the process-wide library, creating and loading it on first use.

    Raises:
        LibraryNotFoundError: If the shared libraries cannot be loaded
    """
    global _library
    with _library_lock:
        if _library is None:
            _library = CpdbLibrary()
        library = _library
    library.load()
    return library


def set_library(library: Optional[CpdbLibrary]) -> None:
    """
    Replace the process-wide library (None resets to lazy creation).

    Intended for embedding applications that load cpdb from a custom
    location, and for tests that substitute a fake.
    """
    global _library
    with _library_lock:
        _library = library


def init() -> None:
    """
    Initialize cpdb-libs for this process.

    May be called any number of times; only the first call reaches
    cpdbInit(). There is no matching teardown.
    """
    get_library().initialize()


def version() -> str:
    """
    Version string reported by the loaded cpdb-libs.

    Raises:
        UnsupportedOperationError: If the library does not export cpdbGetVersion
    """
    library = get_library()
    return from_foreign_string(library, library.version())
