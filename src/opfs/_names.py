# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Entry name validation shared by all backends.

Constants:
    MAX_NAME_BYTES: Maximum encoded length of a single entry name (255 bytes)

Functions:
    validate_name: Reject names that some backend could not store verbatim
    is_valid_name: Boolean form of ``validate_name``
"""

from __future__ import annotations

from typing import Final

from .errors import InvalidNameError

MAX_NAME_BYTES: Final[int] = 255

_RESERVED_NAMES: Final[frozenset[str]] = frozenset({".", ".."})
_FORBIDDEN_CHARACTERS: Final[frozenset[str]] = frozenset({"/", "\\", "\x00"})


def validate_name(name: str) -> str:
    """Validate a single entry name and return it unchanged.

    A name is a path *segment*, never a path: separators are rejected rather
    than interpreted, so ``"a/b"`` does not reach into a subdirectory.

    Args:
        name: Candidate entry name.

    Returns:
        The same name, for call chaining.

    Raises:
        InvalidNameError: If the name is empty, reserved (``.``/``..``),
            contains a separator or NUL, or exceeds MAX_NAME_BYTES.

    Examples:
        >>> validate_name("notes.txt")
        'notes.txt'
    """
    if not isinstance(name, str):
        msg = f"Entry name must be a string, got {type(name).__name__}"
        raise InvalidNameError(msg)
    if not name:
        msg = "Entry name must not be empty"
        raise InvalidNameError(msg, name=name)
    if name in _RESERVED_NAMES:
        msg = f"Entry name '{name}' is reserved"
        raise InvalidNameError(msg, name=name)
    if any(char in _FORBIDDEN_CHARACTERS for char in name):
        msg = f"Entry name '{name}' contains a path separator or NUL"
        raise InvalidNameError(msg, name=name)
    try:
        encoded = name.encode("utf-8")
    except UnicodeEncodeError:
        msg = f"Entry name {name!r} is not valid UTF-8 text"
        raise InvalidNameError(msg, name=name) from None
    if len(encoded) > MAX_NAME_BYTES:
        msg = f"Entry name exceeds limit of {MAX_NAME_BYTES} bytes"
        raise InvalidNameError(msg, name=name)
    return name


def is_valid_name(name: str) -> bool:
    """Return True when ``validate_name`` would accept ``name``."""
    try:
        _ = validate_name(name)
    except InvalidNameError:
        return False
    return True


__all__ = [
    "MAX_NAME_BYTES",
    "is_valid_name",
    "validate_name",
]
