"""
Text marshaling across the C string boundary.

Two read functions exist and must not be mixed up:

    from_foreign_string()                 - the library keeps the buffer;
                                            copy it, never free it
    from_foreign_string_take_ownership()  - the library handed the buffer
                                            over; copy it, then g_free it
                                            exactly once

Struct fields, option names and the version string are retained by the
library. Job ids, printer state and option default/current values are
allocated per call and belong to the caller.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Tuple, Union

from cpdb.core.exceptions import InvalidEncodingError, NullHandleError

ENCODING = "utf-8"

OptionPairs = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def to_foreign_string(text: str) -> bytes:
    """
    Encode text for a `const char *` argument.

    Raises:
        InvalidEncodingError: If text holds a NUL character or cannot be
            encoded (lone surrogates)
    """
    if not isinstance(text, str):
        raise TypeError(f"expected str, got {type(text).__name__}")
    if "\x00" in text:
        raise InvalidEncodingError("embedded NUL character")
    try:
        return text.encode(ENCODING)
    except UnicodeEncodeError as e:
        raise InvalidEncodingError(str(e)) from e


def from_foreign_string(library, pointer: Optional[int]) -> str:
    """
    Copy a NUL-terminated foreign string the library keeps ownership of.

    Raises:
        NullHandleError: If pointer is null
        InvalidEncodingError: If the bytes are not valid UTF-8
    """
    if not pointer:
        raise NullHandleError("foreign string")
    raw = library.read_string(pointer)
    try:
        return raw.decode(ENCODING)
    except UnicodeDecodeError as e:
        raise InvalidEncodingError(str(e)) from e


def from_foreign_string_take_ownership(library, pointer: Optional[int]) -> str:
    """
    Copy a caller-owned foreign string and free it.

    The buffer is freed even when decoding fails. A null pointer is never
    passed to the free function.

    Raises:
        NullHandleError: If pointer is null
        InvalidEncodingError: If the bytes are not valid UTF-8
    """
    if not pointer:
        raise NullHandleError("owned foreign string")
    try:
        return from_foreign_string(library, pointer)
    finally:
        library.free(pointer)


def from_foreign_field(library, pointer: Optional[int]) -> str:
    """Like from_foreign_string(), but a null field reads as ""."""
    if not pointer:
        return ""
    return from_foreign_string(library, pointer)


def to_foreign_options(options: Optional[OptionPairs]) -> List[Tuple[bytes, bytes]]:
    """
    Marshal job options into (name, value) byte pairs, in order.

    Args:
        options: Mapping or iterable of (name, value) pairs; None means none

    Raises:
        InvalidEncodingError: If any name or value cannot be marshaled
    """
    if options is None:
        options = ()
    elif isinstance(options, Mapping):
        options = options.items()
    return [(to_foreign_string(name), to_foreign_string(value)) for name, value in options]
