"""
ctypes declarations for the cpdb-libs frontend ABI.

Structure layouts mirror cpdb-frontend.h (cpdb-libs 2.x). Only the fields
the bindings read are named meaningfully; the rest keep their slot so that
offsets stay correct.

String fields are declared as c_char_p. When reading foreign memory the
bindings never let ctypes auto-convert those fields: raw_pointer_field()
returns the address so the marshaling layer decides whether the buffer is borrowed or must be freed.
"""

from __future__ import annotations

from ctypes import (
    CFUNCTYPE,
    POINTER,
    Structure,
    c_char_p,
    c_int,
    c_void_p,
    addressof,
    cast,
)
from typing import List, NamedTuple, Optional, Tuple

# GLib's gboolean is a plain int
gboolean = c_int


class CpdbMargin(Structure):
    """cpdb_margin_t"""

    _fields_ = [
        ("left", c_int),
        ("right", c_int),
        ("top", c_int),
        ("bottom", c_int),
    ]


class CpdbMedia(Structure):
    """cpdb_media_t"""

    _fields_ = [
        ("name", c_char_p),
        ("width", c_int),
        ("length", c_int),
        ("num_margins", c_int),
        ("margins", POINTER(CpdbMargin)),
    ]


class CpdbOption(Structure):
    """cpdb_option_t"""

    _fields_ = [
        ("option_name", c_char_p),
        ("group_name", c_char_p),
        ("num_supported", c_int),
        ("supported_values", POINTER(c_char_p)),
        ("default_value", c_char_p),
    ]


class CpdbOptions(Structure):
    """cpdb_options_t"""

    _fields_ = [
        ("table", c_void_p),  # GHashTable* name -> cpdb_option_t*
        ("media", c_void_p),  # GHashTable* name -> cpdb_media_t*
        ("count", c_int),
        ("media_count", c_int),
    ]


class CpdbSettings(Structure):
    """cpdb_settings_t"""

    _fields_ = [
        ("count", c_int),
        ("table", c_void_p),  # GHashTable* name -> value
    ]


class CpdbPrinter(Structure):
    """cpdb_printer_obj_t (leading, stable part only)"""

    _fields_ = [
        ("frontend_obj", c_void_p),
        ("backend_proxy", c_void_p),
        ("id", c_char_p),
        ("name", c_char_p),
        ("location", c_char_p),
        ("info", c_char_p),
        ("make_and_model", c_char_p),
        ("state", c_char_p),
        ("accepting_jobs", gboolean),
        ("backend_name", c_char_p),
        ("options", POINTER(CpdbOptions)),
        ("settings", POINTER(CpdbSettings)),
    ]


class GList(Structure):
    pass


GList._fields_ = [
    ("data", c_void_p),
    ("next", POINTER(GList)),
    ("prev", POINTER(GList)),
]


# void (*cpdb_printer_callback)(cpdb_frontend_obj_t *, cpdb_printer_obj_t *, cpdb_printer_update_t)
PRINTER_CALLBACK = CFUNCTYPE(None, c_void_p, c_void_p, c_int)

# Public field name -> cpdb_printer_obj_t member
PRINTER_STRING_FIELDS = {
    "id": "id",
    "name": "name",
    "location": "location",
    "description": "info",
    "make_and_model": "make_and_model",
    "state": "state",
    "backend_name": "backend_name",
}


class RawOption(NamedTuple):
    """Pointers and counts read from a cpdb_option_t, strings not yet converted."""

    name: Optional[int]
    group: Optional[int]
    supported: Tuple[Optional[int], ...]
    default_value: Optional[int]


class RawMedia(NamedTuple):
    """Fields read from a cpdb_media_t; margins as (top, bottom, left, right)."""

    name: Optional[int]
    width: int
    length: int
    margins: Tuple[Tuple[int, int, int, int], ...]


def raw_pointer_field(struct: Structure, field: str) -> Optional[int]:
    """
    Read a pointer-typed member as an address, bypassing ctypes conversion.

    Args:
        struct: Structure instance living in foreign (or ctypes) memory
        field: Member name

    Returns:
        The stored address, or None when the member is NULL
    """
    offset = getattr(type(struct), field).offset
    slot = cast(addressof(struct) + offset, POINTER(c_void_p))
    return slot.contents.value or None


def read_margins(margins: "POINTER(CpdbMargin)", count: int) -> List[Tuple[int, int, int, int]]:
    """
    Copy a foreign cpdb_margin_t array into (top, bottom, left, right) tuples.

    Args:
        margins: Pointer to the first element
        count: Number of elements

    Returns:
        List of margin tuples, empty when the pointer is NULL or count <= 0
    """
    if count <= 0 or not margins:
        return []
    return [(m.top, m.bottom, m.left, m.right) for m in margins[:count]]


def read_margin_out(margins_out: "POINTER(POINTER(CpdbMargin))", count: int) -> List[Tuple[int, int, int, int]]:
    """
    Dereference a cpdb_margin_t ** out parameter, then copy the array.

    The foreign call writes the array address into the slot we passed, so
    there is one more level of indirection than in read_margins().
    """
    if not margins_out:
        return []
    return read_margins(margins_out.contents, count)


def read_media(media_ptr: int) -> RawMedia:
    """Copy the fields of a cpdb_media_t."""
    media = cast(media_ptr, POINTER(CpdbMedia)).contents
    margins = read_margins(media.margins, media.num_margins)
    return RawMedia(
        name=raw_pointer_field(media, "name"),
        width=media.width,
        length=media.length,
        margins=tuple(margins),
    )


def read_option(option_ptr: int) -> RawOption:
    """Copy the pointers held by a cpdb_option_t."""
    option = cast(option_ptr, POINTER(CpdbOption)).contents
    supported: Tuple[Optional[int], ...] = ()
    if option.num_supported > 0 and option.supported_values:
        values = cast(option.supported_values, POINTER(c_void_p))
        supported = tuple(values[i] or None for i in range(option.num_supported))
    return RawOption(
        name=raw_pointer_field(option, "option_name"),
        group=raw_pointer_field(option, "group_name"),
        supported=supported,
        default_value=raw_pointer_field(option, "default_value"),
    )


def read_printer_string(printer_ptr: int, member: str) -> Optional[int]:
    """Address stored in a char * member of cpdb_printer_obj_t."""
    printer = cast(printer_ptr, POINTER(CpdbPrinter)).contents
    return raw_pointer_field(printer, member)


def walk_glist(head: "POINTER(GList)") -> List[Optional[int]]:
    """Collect the data pointers of a GList, in list order."""
    items: List[Optional[int]] = []
    node = head
    while node:
        items.append(node.contents.data or None)
        node = node.contents.next
    return items
