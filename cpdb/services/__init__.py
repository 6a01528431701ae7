"""
Services layer for cpdb.

Wrapper objects callers work with:
- Frontend: owning session, sole source of printers
- Printer: borrowed printer reference scoped to a session
- Settings / Options / Media: independently owned value objects
- DiscoveryRegistry: thread-safe record of printers announced by callback

Ownership Model:
    Frontend (OwnedHandle)
    ├── Printer (BorrowedHandle + discovery Slot)
    │   ├── Options from get_all_options() (borrowed)
    │   └── Media from get_media() (borrowed)
    Settings (OwnedHandle)
    Options.create() (OwnedHandle)
"""

from .discovery import DiscoveryRegistry
from .frontend import Frontend
from .printer import Printer
from .settings import Media, Options, Settings

__all__ = [
    "DiscoveryRegistry",
    "Frontend",
    "Printer",
    "Media",
    "Options",
    "Settings",
]
