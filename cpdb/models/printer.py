"""
Printer data models.

These models are plain Python copies of foreign printer state. They hold no
foreign memory and stay valid after the session that produced them closes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class PrinterEvent(Enum):
    """
    Change reported by the foreign discovery callback.

    Values match the foreign cpdb_printer_update_t enumeration.
    """

    ADDED = 0
    """A backend announced a new printer."""

    REMOVED = 1
    """A backend withdrew a printer; its foreign object is about to be freed."""

    STATE_CHANGED = 2
    """A known printer changed state or job acceptance."""

    @classmethod
    def from_foreign(cls, code: int) -> "PrinterEvent":
        """
        Map a foreign update code to an event.

        Unknown codes are treated as STATE_CHANGED so that a newer library
        adding update kinds never breaks discovery.
        """
        try:
            return cls(code)
        except ValueError:
            return cls.STATE_CHANGED


@dataclass(frozen=True)
class PrinterInfo:
    """
    Snapshot of a printer's descriptive fields.

    Produced by Printer.info(); every string field is "" when the foreign
    object carried no value.
    """

    id: str
    """Backend-specific printer identifier."""

    name: str
    """Human-readable queue name."""

    location: str
    """Physical location string."""

    description: str
    """Free-form info string."""

    make_and_model: str
    """Manufacturer and model."""

    backend_name: str
    """Backend that reported the printer (e.g. 'CUPS', 'FILE')."""

    state: str
    """State field as last reported by the backend."""

    accepting_jobs: bool
    """Whether the queue accepted jobs when the snapshot was taken."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display or JSON export."""
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "description": self.description,
            "makeAndModel": self.make_and_model,
            "backendName": self.backend_name,
            "state": self.state,
            "acceptingJobs": self.accepting_jobs,
        }
