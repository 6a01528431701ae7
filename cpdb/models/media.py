"""Media size and margin values copied out of foreign media structures."""

from __future__ import annotations

from typing import NamedTuple


class MediaSize(NamedTuple):
    """Media dimensions in hundredths of a millimetre."""

    width: int
    length: int


class Margins(NamedTuple):
    """
    One set of printable-area margins, hundredths of a millimetre.

    Field order is (top, bottom, left, right) regardless of the order the
    foreign structure stores them in.
    """

    top: int
    bottom: int
    left: int
    right: int
