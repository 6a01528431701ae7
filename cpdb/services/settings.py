"""
Settings, option sets and media descriptions.

Settings and Options.create() objects own their foreign handle and free it
on close(). Options and Media returned by Printer queries point into data
the printer object keeps; they borrow through the printer's guard, become
unusable when the printer's session closes, and close() only ends the
wrapper's own use of them.

Usage:
    with Settings.create() as settings:
        settings.add_setting("copies", "2")
        settings.save_to_disk("job.conf")

    with printer.get_all_options() as options:
        for option in options:
            print(option.name, option.supported_values)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from cpdb.core.exceptions import (
    BackendError,
    CpdbIOError,
    NullHandleError,
    OptionError,
    check_status,
)
from cpdb.core.handle import BorrowedHandle, OwnedHandle
from cpdb.core.library import get_library
from cpdb.core.marshal import (
    from_foreign_field,
    from_foreign_string,
    to_foreign_string,
)
from cpdb.logging_config import get_logger
from cpdb.models.capability import ThreadCapability
from cpdb.models.media import Margins, MediaSize
from cpdb.models.option import OptionInfo

logger = get_logger(__name__)

PathLike = Union[str, "os.PathLike[str]"]
Handle = Union[OwnedHandle, BorrowedHandle]


class _Guarded:
    """Common close()/context-manager plumbing over either handle shape."""

    thread_capability = ThreadCapability.TRANSFERABLE
    _kind = "object"

    def __init__(self, library, handle: Handle):
        self._library = library
        self._handle = handle
        self._closed = False

    @property
    def is_closed(self) -> bool:
        if isinstance(self._handle, OwnedHandle):
            return self._handle.is_released
        return self._closed

    @property
    def is_owned(self) -> bool:
        return isinstance(self._handle, OwnedHandle)

    def _borrow(self) -> int:
        if self._closed:
            raise NullHandleError(f"{self._kind} already closed")
        return self._handle.borrow()

    def close(self) -> None:
        """Release the object; calling it again does nothing."""
        if isinstance(self._handle, OwnedHandle):
            self._handle.release()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


# =============================================================================
# SETTINGS
# =============================================================================

class Settings(_Guarded):
    """
    Owned cpdb_settings_t: option name -> value pairs for a print job.

    Thread capability: TRANSFERABLE.
    """

    _kind = "settings"

    def __init__(self, library, pointer: Optional[int]):
        super().__init__(library, OwnedHandle.wrap(pointer, library.delete_settings, "settings"))

    @classmethod
    def create(cls, library=None) -> "Settings":
        """
        Allocate an empty settings object.

        Raises:
            BackendError: If cpdbGetNewSettings returns null
        """
        library = library or get_library()
        pointer = library.new_settings()
        if not pointer:
            logger.error("cpdbGetNewSettings returned NULL")
            raise BackendError("could not allocate settings")
        return cls(library, pointer)

    def copy(self) -> "Settings":
        """Independent deep copy with its own foreign handle."""
        duplicate = Settings.create(self._library)
        try:
            self._library.copy_settings(self._borrow(), duplicate._borrow())
        except Exception:
            duplicate.close()
            raise
        return duplicate

    def add_setting(self, name: str, value: str) -> None:
        """Set name to value, replacing any previous value."""
        self._library.add_setting(self._borrow(), to_foreign_string(name), to_foreign_string(value))

    def clear_setting(self, name: str) -> bool:
        """
        Remove a setting.

        Returns:
            False when the setting was not present
        """
        return self._library.clear_setting(self._borrow(), to_foreign_string(name))

    def items(self) -> List[Tuple[str, str]]:
        entries = self._library.settings_entries(self._borrow())
        return [
            (from_foreign_string(self._library, key), from_foreign_field(self._library, value))
            for key, value in entries
        ]

    def to_dict(self) -> Dict[str, str]:
        return dict(self.items())

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.to_dict().get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self.to_dict()

    def __len__(self) -> int:
        return len(self._library.settings_entries(self._borrow()))

    def save_to_disk(self, path: PathLike) -> None:
        """
        Write the settings to path in cpdb-libs' own format.

        Raises:
            CpdbIOError: If the target directory does not exist
            StatusCodeError: If cpdb-libs reports a failure
        """
        path = Path(path)
        if not path.parent.is_dir():
            raise CpdbIOError(f"directory does not exist: {path.parent}")
        status = self._library.save_settings(self._borrow(), to_foreign_string(os.fspath(path)))
        if status:
            logger.error(f"cpdbSaveSettingsToDisk failed with {status} for {path}")
        check_status(status, "save_settings")
        logger.debug(f"Settings saved to {path}")

    @classmethod
    def read_from_disk(cls, path: PathLike, library=None) -> "Settings":
        """
        Load settings written by save_to_disk().

        Raises:
            CpdbIOError: If the file does not exist
            BackendError: If cpdb-libs cannot parse it
        """
        library = library or get_library()
        path = Path(path)
        if not path.is_file():
            raise CpdbIOError(f"settings file not found: {path}")
        pointer = library.read_settings(to_foreign_string(os.fspath(path)))
        if not pointer:
            logger.error(f"cpdbReadSettingsFromDisk returned NULL for {path}")
            raise BackendError(f"could not read settings from {path}")
        return cls(library, pointer)

    def __repr__(self) -> str:
        if self.is_closed:
            return "<Settings closed>"
        return f"<Settings {self.to_dict()!r}>"


# =============================================================================
# OPTIONS
# =============================================================================

class Options(_Guarded):
    """
    A cpdb_options_t: the options a printer supports.

    Iterating yields OptionInfo snapshots, sorted by option name.

    Thread capability: TRANSFERABLE when created with Options.create(),
    SESSION_BOUND when returned by Printer.get_all_options().
    """

    _kind = "options"

    @classmethod
    def create(cls, library=None) -> "Options":
        """
        Allocate an empty, owned option set.

        Raises:
            BackendError: If cpdbGetNewOptions returns null
        """
        library = library or get_library()
        pointer = library.new_options()
        if not pointer:
            logger.error("cpdbGetNewOptions returned NULL")
            raise BackendError("could not allocate options")
        return cls(library, OwnedHandle.wrap(pointer, library.delete_options, "options"))

    @property
    def thread_capability(self) -> ThreadCapability:
        if self.is_owned:
            return ThreadCapability.TRANSFERABLE
        return ThreadCapability.SESSION_BOUND

    def _read_all(self) -> List[OptionInfo]:
        library = self._library
        options = []
        for entry in library.options_entries(self._borrow()):
            raw = library.read_option(entry)
            options.append(OptionInfo(
                name=from_foreign_field(library, raw.name),
                group=from_foreign_field(library, raw.group),
                supported_values=tuple(from_foreign_field(library, v) for v in raw.supported),
                default_value=from_foreign_field(library, raw.default_value),
            ))
        options.sort(key=lambda option: option.name)
        return options

    def __iter__(self) -> Iterator[OptionInfo]:
        return iter(self._read_all())

    def __len__(self) -> int:
        return len(self._library.options_entries(self._borrow()))

    def names(self) -> List[str]:
        return [option.name for option in self._read_all()]

    def get(self, name: str) -> OptionInfo:
        """
        Raises:
            OptionError: If the set has no option called name
        """
        for option in self._read_all():
            if option.name == name:
                return option
        raise OptionError(f"unknown option {name!r}")

    def __repr__(self) -> str:
        if self.is_closed:
            return "<Options closed>"
        return f"<Options {len(self)} option(s)>"


# =============================================================================
# MEDIA
# =============================================================================

class Media(_Guarded):
    """
    A cpdb_media_t returned by Printer.get_media().

    Thread capability: SESSION_BOUND.
    """

    _kind = "media"
    thread_capability = ThreadCapability.SESSION_BOUND

    def _raw(self):
        return self._library.read_media(self._borrow())

    @property
    def name(self) -> str:
        return from_foreign_field(self._library, self._raw().name)

    @property
    def size(self) -> MediaSize:
        raw = self._raw()
        return MediaSize(raw.width, raw.length)

    @property
    def margins(self) -> List[Margins]:
        """Every margin set the printer reports for this media."""
        return [Margins(*margin) for margin in self._raw().margins]

    def __repr__(self) -> str:
        if self.is_closed:
            return "<Media closed>"
        raw = self._raw()
        return f"<Media {from_foreign_field(self._library, raw.name)!r} {raw.width}x{raw.length}>"
