"""
Custom exceptions for cpdb.

Exception Hierarchy:
    CpdbError (base)
    ├── LibraryNotFoundError      - Shared library could not be located (startup failure)
    ├── NullHandleError           - Null or already released foreign handle
    ├── InvalidPrinterError       - Printer reference outlived its session or was removed
    ├── JobFailedError            - Print job submission produced no job id
    ├── BackendError              - Foreign object construction/IO returned nothing
    ├── FrontendError             - Session allocation or transport failure
    ├── OptionError               - Unknown option or media name
    ├── StatusCodeError           - Non-zero foreign status code
    ├── InvalidEncodingError      - Text cannot cross the C string boundary
    ├── CpdbIOError               - Local file missing/unwritable before a foreign call
    └── UnsupportedOperationError - Operation the loaded library does not provide

    HandleStateError (RuntimeError) - Wrapper invariant violated (programming error)

Usage:
    Every CpdbError is recoverable: callers catch it and carry on.
    HandleStateError signals a bug in calling code and sits
    outside the CpdbError tree so that `except CpdbError` does not hide it.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CpdbError(Exception):
    """
    Base exception for all cpdb errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all binding errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# =============================================================================
# STARTUP ERRORS - The foreign library cannot be used at all
# =============================================================================

class LibraryNotFoundError(CpdbError):
    """
    The cpdb frontend (or GLib) shared library could not be loaded.

    Typical causes:
    - cpdb-libs not installed
    - Incorrect CPDB_FRONTEND_LIBRARY in .env
    - Library present but not on the loader search path
    """

    def __init__(self, library: str, reason: str = ""):
        message = f"Shared library not found: {library}"
        if reason:
            message = f"{message} ({reason})"
        details = {
            "library": library,
            "resolution": "Install cpdb-libs or point CPDB_FRONTEND_LIBRARY at the .so file",
        }
        super().__init__(message, details)
        self.library = library


# =============================================================================
# HANDLE ERRORS
# =============================================================================

class NullHandleError(CpdbError):
    """A foreign pointer was null, or the handle holding it was released."""

    def __init__(self, context: str = ""):
        details = {"context": context} if context else None
        super().__init__("Null pointer encountered", details)
        self.context = context


class InvalidPrinterError(CpdbError):
    """
    A printer reference is no longer usable.

    Raised when the owning session has been closed, when the foreign
    transport reported the printer as removed, or when a lookup found
    no printer at all.
    """

    def __init__(self, context: str = ""):
        details = {"context": context} if context else None
        super().__init__("Invalid printer object", details)
        self.context = context


# =============================================================================
# RUNTIME ERRORS - Operation fails, caller may recover
# =============================================================================

class _DetailError(CpdbError):
    """Shared shape for errors rendered as '<prefix>: <detail>'."""

    prefix = ""

    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{self.prefix}: {detail}", details)
        self.detail = detail


class JobFailedError(_DetailError):
    """The foreign print call returned no job id."""

    prefix = "Print job failed"


class BackendError(_DetailError):
    """A foreign constructor or file operation returned a null object."""

    prefix = "Backend error"


class FrontendError(_DetailError):
    """
    Session-level failure.

    Covers allocation of the session object and every operation that needs
    the transport while the session is disconnected.
    """

    prefix = "Frontend error"


class OptionError(_DetailError):
    """The printer does not recognise the requested option or media."""

    prefix = "Option parsing error"


class CpdbIOError(_DetailError):
    """A local file precondition failed before crossing the boundary."""

    prefix = "I/O error"


class StatusCodeError(CpdbError):
    """A foreign function reported a non-zero status code."""

    def __init__(self, code: int, context: str = ""):
        details = {"code": code}
        if context:
            details["context"] = context
        super().__init__(f"Invalid status code: {code}", details)
        self.code = code
        self.context = context


class InvalidEncodingError(CpdbError):
    """
    Text cannot be represented as a C string, or foreign bytes are not UTF-8.

    The most common cause is an embedded NUL character, which would silently
    truncate the value on the foreign side.
    """

    def __init__(self, reason: str = ""):
        details = {"reason": reason} if reason else None
        super().__init__("Invalid string encoding", details)
        self.reason = reason


class UnsupportedOperationError(CpdbError):
    """The loaded library build does not export the requested function."""

    def __init__(self, operation: str = ""):
        details = {"operation": operation} if operation else None
        super().__init__("Unsupported operation", details)
        self.operation = operation


# =============================================================================
# PROGRAMMING ERRORS - Not part of the recoverable taxonomy
# =============================================================================

class HandleStateError(RuntimeError):
    """
    A handle was used in a way that breaks the wrapper's own invariants.

    Example: releasing an OwnedHandle while a borrowed() scope on it is
    still open.
    """


def check_status(code: int, context: str = "") -> None:
    """
    Convert a foreign status code into the error taxonomy.

    Args:
        code: Integer returned by the foreign function (0 means success)
        context: Name of the operation, kept in the error details

    Raises:
        StatusCodeError: If code is non-zero
    """
    if code != 0:
        raise StatusCodeError(code, context)
