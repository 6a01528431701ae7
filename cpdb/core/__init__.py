"""
Core module for cpdb.

Contains the foreign boundary infrastructure:
- exceptions: Error taxonomy and status code conversion
- ffi: ctypes structure layouts and pointer dereference helpers
- library: Shared library loading and the foreign call surface
- handle: Owning and borrowing handle guards
- marshal: C string and option array conversion
"""

from .exceptions import (
    CpdbError,
    LibraryNotFoundError,
    NullHandleError,
    InvalidPrinterError,
    JobFailedError,
    BackendError,
    FrontendError,
    OptionError,
    StatusCodeError,
    InvalidEncodingError,
    CpdbIOError,
    UnsupportedOperationError,
    HandleStateError,
    check_status,
)
from .handle import OwnedHandle, BorrowedHandle, Slot
from .library import CpdbLibrary, get_library, set_library, init, version
from .marshal import (
    to_foreign_string,
    from_foreign_string,
    from_foreign_string_take_ownership,
    to_foreign_options,
)

__all__ = [
    # Errors
    "CpdbError",
    "LibraryNotFoundError",
    "NullHandleError",
    "InvalidPrinterError",
    "JobFailedError",
    "BackendError",
    "FrontendError",
    "OptionError",
    "StatusCodeError",
    "InvalidEncodingError",
    "CpdbIOError",
    "UnsupportedOperationError",
    "HandleStateError",
    "check_status",
    # Handles
    "OwnedHandle",
    "BorrowedHandle",
    "Slot",
    # Library
    "CpdbLibrary",
    "get_library",
    "set_library",
    "init",
    "version",
    # Marshaling
    "to_foreign_string",
    "from_foreign_string",
    "from_foreign_string_take_ownership",
    "to_foreign_options",
]
