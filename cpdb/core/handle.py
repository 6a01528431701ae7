"""
Handle guards for foreign pointers.

Two shapes, never interchangeable:

    OwnedHandle    - owns the pointer; release() calls the foreign free
                     function exactly once, then the handle is null forever
    BorrowedHandle - a view of a pointer owned by someone else; it can be
                     checked and borrowed but has no release at all

A BorrowedHandle is bound to the OwnedHandle that keeps its pointer alive
(for printers, the session handle) and optionally to a Slot, which the owner
retires when the foreign side drops that single object. Either event makes
every borrow fail with InvalidPrinterError.

Every foreign call must go through borrow() (or a borrowed() scope) first,
so no call crosses the boundary with a null or freed pointer.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from cpdb.core.exceptions import HandleStateError, InvalidPrinterError, NullHandleError
from cpdb.logging_config import get_logger

logger = get_logger(__name__)


class OwnedHandle:
    """
    Exclusive owner of one foreign pointer.

    The check-and-clear inside release() runs under a small lock, so two
    threads closing the same wrapper free the pointer once. Nothing else is
    locked: using one handle from several threads at once remains the
    caller's business.

    Attributes:
        kind: Short label used in log messages and error details
    """

    def __init__(self, pointer: int, free_fn: Callable[[int], None], kind: str = "handle"):
        if not pointer:
            raise NullHandleError(kind)
        self.kind = kind
        self._pointer: Optional[int] = pointer
        self._free_fn = free_fn
        self._borrows = 0
        self._lock = threading.Lock()

    @classmethod
    def wrap(cls, pointer: Optional[int], free_fn: Callable[[int], None], kind: str = "handle") -> "OwnedHandle":
        """
        Take ownership of a pointer returned by a foreign constructor.

        Raises:
            NullHandleError: If pointer is null
        """
        return cls(pointer, free_fn, kind)

    @property
    def is_released(self) -> bool:
        return self._pointer is None

    def borrow(self) -> int:
        """
        Return the live pointer for a single foreign call.

        Raises:
            NullHandleError: If the handle has been released
        """
        pointer = self._pointer
        if pointer is None:
            raise NullHandleError(f"{self.kind} already released")
        return pointer

    @contextmanager
    def borrowed(self) -> Iterator[int]:
        """
        Scope a multi-step use of the pointer.

        release() inside the scope raises HandleStateError instead of
        freeing memory that is still being used.
        """
        with self._lock:
            pointer = self.borrow()
            self._borrows += 1
        try:
            yield pointer
        finally:
            with self._lock:
                self._borrows -= 1

    def release(self) -> None:
        """
        Free the pointer; a no-op when already released.

        Raises:
            HandleStateError: If a borrowed() scope is still open
        """
        with self._lock:
            if self._pointer is None:
                return
            if self._borrows:
                raise HandleStateError(f"{self.kind} released while {self._borrows} borrow(s) active")
            pointer = self._pointer
            self._pointer = None
        logger.debug(f"Releasing {self.kind} at {pointer:#x}")
        self._free_fn(pointer)

    def __enter__(self) -> "OwnedHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._pointer is None else f"{self._pointer:#x}"
        return f"<OwnedHandle {self.kind} {state}>"


class Slot:
    """Validity flag for one object inside an owner, retired when it goes away."""

    __slots__ = ("_retired",)

    def __init__(self):
        self._retired = False

    @property
    def is_retired(self) -> bool:
        return self._retired

    def retire(self) -> None:
        self._retired = True


class BorrowedHandle:
    """
    Non-owning view of a pointer kept alive by `owner`.

    There is no release(): dropping a BorrowedHandle, or any
    number of copies of it, never frees anything.
    """

    __slots__ = ("_owner", "_pointer", "_slot")

    def __init__(self, owner: OwnedHandle, pointer: Optional[int], slot: Optional[Slot] = None):
        self._owner = owner
        self._pointer = pointer
        self._slot = slot

    @property
    def owner(self) -> OwnedHandle:
        return self._owner

    @property
    def pointer(self) -> Optional[int]:
        return self._pointer

    @property
    def slot(self) -> Optional[Slot]:
        return self._slot

    @property
    def is_valid(self) -> bool:
        return bool(self._pointer) and not self._owner.is_released and not (
            self._slot is not None and self._slot.is_retired
        )

    def borrow(self) -> int:
        """
        Return the pointer for a single foreign call.

        Raises:
            InvalidPrinterError: If the owner was released or the slot retired
            NullHandleError: If the pointer itself is null
        """
        if self._owner.is_released:
            raise InvalidPrinterError(f"owning {self._owner.kind} released")
        if self._slot is not None and self._slot.is_retired:
            raise InvalidPrinterError("object removed by the print system")
        if not self._pointer:
            raise NullHandleError("borrowed pointer is null")
        return self._pointer

    def copy(self) -> "BorrowedHandle":
        return BorrowedHandle(self._owner, self._pointer, self._slot)

    def derive(self, pointer: Optional[int]) -> "BorrowedHandle":
        """View of another pointer kept alive by the same owner and slot."""
        return BorrowedHandle(self._owner, pointer, self._slot)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BorrowedHandle):
            return NotImplemented
        return self._owner is other._owner and self._pointer == other._pointer

    def __hash__(self) -> int:
        return hash((id(self._owner), self._pointer))
