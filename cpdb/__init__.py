"""
cpdb - Python bindings for the Common Print Dialog Backends frontend library.

Usage:
    import cpdb

    cpdb.init()
    with cpdb.Frontend.create() as frontend:
        frontend.connect()
        for printer in frontend.list_printers():
            print(printer.name, printer.make_and_model)

init() may be called any number of times; there is no teardown.
"""

import logging

from cpdb.core import (
    BackendError,
    CpdbError,
    CpdbIOError,
    FrontendError,
    HandleStateError,
    InvalidEncodingError,
    InvalidPrinterError,
    JobFailedError,
    LibraryNotFoundError,
    NullHandleError,
    OptionError,
    StatusCodeError,
    UnsupportedOperationError,
    init,
    version,
)
from cpdb.models import (
    Margins,
    MediaSize,
    OptionInfo,
    PrinterEvent,
    PrinterInfo,
    ThreadCapability,
)
from cpdb.services import Frontend, Media, Options, Printer, Settings

__version__ = "0.3.0"

# Library code stays silent unless the application configures logging
logging.getLogger("cpdb").addHandler(logging.NullHandler())

__all__ = [
    "init",
    "version",
    # Wrappers
    "Frontend",
    "Printer",
    "Settings",
    "Options",
    "Media",
    # Models
    "Margins",
    "MediaSize",
    "OptionInfo",
    "PrinterEvent",
    "PrinterInfo",
    "ThreadCapability",
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
]
