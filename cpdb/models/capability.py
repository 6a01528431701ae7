"""
Thread capability contract.

cpdb-libs documents its objects as thread-compatible: one object may be used
from any thread, but never from two threads at once. Each wrapper class
publishes which of the capabilities below it offers as a class attribute
named thread_capability.
"""

from enum import Enum


class ThreadCapability(Enum):
    """What a caller may do with an object across threads."""

    TRANSFERABLE = "transferable"
    """
    May be handed to another thread. Concurrent calls on the same object
    need caller-side locking; close() alone is safe to race.
    """

    SESSION_BOUND = "session_bound"
    """
    Same as TRANSFERABLE, but only while the owning session stays open.
    The caller must not close the session while another thread uses
    the object.
    """
