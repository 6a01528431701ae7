"""
Printer references.

A Printer is a non-owning view of a cpdb_printer_obj_t held by a Frontend.
It never frees anything. It becomes invalid (InvalidPrinterError) when its
session closes or when the backend withdraws the printer.

FIELD READS vs LIVE QUERIES:
    Fields (id, name, location, ...) read the struct the library keeps and
    work while the session is open, connected or not. A null field reads
    as "".

    Live queries (is_accepting_jobs, get_updated_state, printing, options,
    media) talk to the backend and need a connected session; otherwise
    they raise FrontendError before anything else happens.

STRING OWNERSHIP:
    Struct fields and option names      -> borrowed, never freed
    Job ids, state, default/current     -> handed over, freed once here
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from cpdb.core.exceptions import (
    CpdbIOError,
    JobFailedError,
    OptionError,
    StatusCodeError,
    check_status,
)
from cpdb.core.handle import BorrowedHandle, Slot
from cpdb.core.marshal import (
    OptionPairs,
    from_foreign_field,
    from_foreign_string_take_ownership,
    to_foreign_options,
    to_foreign_string,
)
from cpdb.logging_config import get_logger
from cpdb.models.capability import ThreadCapability
from cpdb.models.media import Margins, MediaSize
from cpdb.models.printer import PrinterInfo
from cpdb.services.settings import Media, Options

logger = get_logger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

# cpdbGetOption reports this when the backend has no default for the option
NO_VALUE = "NA"


class Printer:
    """
    Borrowed reference to a printer inside a Frontend session.

    Thread capability: SESSION_BOUND. Copies made with clone() share the
    same pointer and validity.
    """

    thread_capability = ThreadCapability.SESSION_BOUND

    def __init__(self, frontend, pointer: Optional[int], slot: Optional[Slot] = None):
        self._frontend = frontend
        self._library = frontend.library
        self._handle = BorrowedHandle(frontend.handle, pointer, slot)

    @property
    def is_valid(self) -> bool:
        return self._handle.is_valid

    def clone(self) -> "Printer":
        """Another reference to the same printer; dropping it frees nothing."""
        return Printer(self._frontend, self._handle.pointer, self._handle.slot)

    def _live(self, operation: str) -> int:
        # InvalidPrinterError once the session is closed, FrontendError while merely disconnected
        pointer = self._handle.borrow()
        self._frontend.require_connected(operation)
        return pointer

    # =========================================================================
    # FIELDS
    # =========================================================================

    def _field(self, name: str) -> str:
        address = self._library.printer_field(self._handle.borrow(), name)
        return from_foreign_field(self._library, address)

    @property
    def id(self) -> str:
        return self._field("id")

    @property
    def name(self) -> str:
        return self._field("name")

    @property
    def location(self) -> str:
        return self._field("location")

    @property
    def description(self) -> str:
        return self._field("description")

    @property
    def make_and_model(self) -> str:
        return self._field("make_and_model")

    @property
    def backend_name(self) -> str:
        return self._field("backend_name")

    @property
    def state(self) -> str:
        """State as last reported; see get_updated_state() for a live value."""
        return self._field("state")

    def accepts_pdf(self) -> bool:
        """Heuristic: the make/model string mentions PDF."""
        return "pdf" in self.make_and_model.lower()

    def info(self) -> PrinterInfo:
        """Snapshot of all descriptive fields."""
        return PrinterInfo(
            id=self.id,
            name=self.name,
            location=self.location,
            description=self.description,
            make_and_model=self.make_and_model,
            backend_name=self.backend_name,
            state=self.state,
            accepting_jobs=self._library.printer_accepting_field(self._handle.borrow()),
        )

    # =========================================================================
    # LIVE STATUS
    # =========================================================================

    def is_accepting_jobs(self) -> bool:
        return self._library.is_accepting_jobs(self._live("is_accepting_jobs"))

    def get_updated_state(self) -> str:
        """
        Ask the backend for the current state.

        Raises:
            FrontendError: If the session is not connected
            NullHandleError: If the backend returned no state
        """
        pointer = self._live("get_updated_state")
        return from_foreign_string_take_ownership(self._library, self._library.get_state(pointer))

    # =========================================================================
    # PRINTING
    # =========================================================================

    def print_single_file(self, path: PathLike) -> str:
        """
        Print a file with the printer's current settings.

        Returns:
            Job id assigned by the backend

        Raises:
            FrontendError: If the session is not connected
            JobFailedError: If the backend returned no job id
        """
        pointer = self._live("print_single_file")
        path = os.fspath(path)
        job_id = self._library.print_file(pointer, to_foreign_string(path))
        return self._take_job_id(job_id, path)

    def submit_job(self, path: PathLike, options: Optional[OptionPairs] = None, title: str = "") -> str:
        """
        Print a file with extra options and a job title.

        Each option is applied to the printer's own settings for this job
        only. Afterwards every touched setting is put back to the value it
        had before, or cleared when it had none.

        Args:
            path: File to print
            options: Mapping or (name, value) pairs
            title: Job title shown in the queue

        Returns:
            Job id assigned by the backend

        Raises:
            FrontendError: If the session is not connected
            InvalidEncodingError: If a path, option or title cannot be marshaled
            JobFailedError: If the backend returned no job id
        """
        pointer = self._live("submit_job")
        path = os.fspath(path)
        foreign_path = to_foreign_string(path)
        foreign_title = to_foreign_string(title)
        foreign_options = to_foreign_options(options)
        previous = self._own_settings(pointer) if foreign_options else {}
        applied: Dict[bytes, None] = {}
        try:
            for name, value in foreign_options:
                applied[name] = None
                self._library.add_setting_to_printer(pointer, name, value)
            job_id = self._library.print_file_with_title(pointer, foreign_path, foreign_title)
        finally:
            self._restore_settings(pointer, applied, previous)
        return self._take_job_id(job_id, path)

    def _own_settings(self, pointer: int) -> Dict[bytes, bytes]:
        settings = self._library.printer_settings(pointer)
        if not settings:
            return {}
        return {
            self._library.read_string(key): self._library.read_string(value) if value else b""
            for key, value in self._library.settings_entries(settings)
        }

    def _restore_settings(self, pointer: int, applied, previous: Dict[bytes, bytes]) -> None:
        for name in applied:
            if name in previous:
                self._library.add_setting_to_printer(pointer, name, previous[name])
            else:
                self._library.clear_setting_from_printer(pointer, name)

    def _take_job_id(self, job_id: Optional[int], path: str) -> str:
        if not job_id:
            logger.error(f"Print of {path} on {self.name!r} returned no job id")
            raise JobFailedError(f"no job id returned for {path}")
        result = from_foreign_string_take_ownership(self._library, job_id)
        logger.debug(f"Submitted {path} to {self.name!r} as job {result}")
        return result

    def add_setting(self, name: str, value: str) -> None:
        """Set an option on this printer's own settings."""
        self._library.add_setting_to_printer(
            self._handle.borrow(), to_foreign_string(name), to_foreign_string(value)
        )

    def clear_setting(self, name: str) -> bool:
        """Remove an option from this printer's own settings."""
        return self._library.clear_setting_from_printer(self._handle.borrow(), to_foreign_string(name))

    # =========================================================================
    # OPTIONS
    # =========================================================================

    def get_all_options(self) -> Options:
        """
        Every option the printer supports.

        Raises:
            FrontendError: If the session is not connected
            OptionError: If the backend reports no options
        """
        pointer = self._live("get_all_options")
        options = self._library.get_all_options(pointer)
        if not options:
            raise OptionError(f"no options reported by {self.name!r}")
        return Options(self._library, self._handle.derive(options))

    def get_option(self, name: str) -> str:
        """
        Default value recorded in the option's description.

        Returns:
            The value, or "NA" when the option has no default

        Raises:
            OptionError: If the printer has no such option
        """
        pointer = self._live("get_option")
        option = self._library.get_option(pointer, to_foreign_string(name))
        if not option:
            raise OptionError(f"unknown option {name!r}")
        raw = self._library.read_option(option)
        if not raw.default_value:
            return NO_VALUE
        return from_foreign_field(self._library, raw.default_value)

    def get_default(self, name: str) -> str:
        """
        Raises:
            OptionError: If the printer has no such option
        """
        return self._option_value("get_default", name)

    def get_current(self, name: str) -> str:
        """
        Raises:
            OptionError: If the printer has no such option
        """
        return self._option_value("get_current", name)

    def _option_value(self, operation: str, name: str) -> str:
        pointer = self._live(operation)
        value = getattr(self._library, operation)(pointer, to_foreign_string(name))
        if not value:
            raise OptionError(f"unknown option {name!r}")
        return from_foreign_string_take_ownership(self._library, value)

    # =========================================================================
    # MEDIA
    # =========================================================================

    def _media_pointer(self, operation: str, name: str):
        pointer = self._live(operation)
        foreign_name = to_foreign_string(name)
        media = self._library.get_media(pointer, foreign_name)
        if not media:
            raise OptionError(f"unknown media {name!r}")
        return pointer, foreign_name, media

    def get_media(self, name: str) -> Media:
        """
        Raises:
            OptionError: If the printer has no such media
        """
        _, _, media = self._media_pointer("get_media", name)
        return Media(self._library, self._handle.derive(media))

    def get_media_size(self, name: str) -> MediaSize:
        """
        Raises:
            OptionError: If the printer has no such media
            StatusCodeError: If cpdb-libs reports a failure
        """
        pointer, foreign_name, _ = self._media_pointer("get_media_size", name)
        status, width, length = self._library.get_media_size(pointer, foreign_name)
        check_status(status, "get_media_size")
        return MediaSize(width, length)

    def get_media_margins(self, name: str) -> Margins:
        """
        First margin set of a media, as (top, bottom, left, right).

        Raises:
            OptionError: If the printer has no such media or no margins for it
            StatusCodeError: If cpdb-libs reports a negative count
        """
        pointer, foreign_name, _ = self._media_pointer("get_media_margins", name)
        count, margins = self._library.get_media_margins(pointer, foreign_name)
        if count < 0:
            raise StatusCodeError(count, "get_media_margins")
        if not margins:
            raise OptionError(f"no margins reported for media {name!r}")
        return Margins(*margins[0])

    def get_all_media_margins(self, name: str) -> List[Margins]:
        """Every margin set of a media; see get_media_margins()."""
        pointer, foreign_name, _ = self._media_pointer("get_all_media_margins", name)
        count, margins = self._library.get_media_margins(pointer, foreign_name)
        if count < 0:
            raise StatusCodeError(count, "get_media_margins")
        return [Margins(*margin) for margin in margins]

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def save_to_file(self, path: PathLike) -> None:
        """
        Save the printer so Frontend.load_printer() can restore it later.

        Raises:
            CpdbIOError: If the target directory does not exist
        """
        path = Path(path)
        if not path.parent.is_dir():
            raise CpdbIOError(f"directory does not exist: {path.parent}")
        pointer = self._handle.borrow()
        self._library.pickle_printer(pointer, to_foreign_string(os.fspath(path)), self._frontend.handle.borrow())
        logger.debug(f"Printer {self.name!r} saved to {path}")

    # =========================================================================
    # IDENTITY
    # =========================================================================

    def __eq__(self, other) -> bool:
        if not isinstance(other, Printer):
            return NotImplemented
        return self._handle == other._handle

    def __hash__(self) -> int:
        return hash(self._handle)

    def __repr__(self) -> str:
        if not self._handle.is_valid:
            return "<Printer invalid>"
        return f"<Printer {self.name!r} ({self.backend_name})>"
