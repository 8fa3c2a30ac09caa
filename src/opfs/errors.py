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

"""Error taxonomy shared by every :mod:`opfs` backend.

Each backend translates its native failures onto these classes so callers can
handle a missing entry, a kind conflict, a non-empty directory or an
out-of-range seek the same way regardless of where the bytes live. Anything
the contract does not model surfaces as :class:`BackendError`.
"""

from __future__ import annotations

from ._types import EntryKind


class OpfsError(Exception):
    """Base class for all opfs exceptions.

    Subclasses also inherit from a builtin exception type (``FileNotFoundError``,
    ``ValueError``, ...) so callers that already handle standard errors keep
    working.

    Example:
        Catch any contract failure with a single handler::

            try:
                handle = await root.get_file_handle("notes.txt")
            except OpfsError as e:
                logger.error("Storage error: %s", e)
    """

    def __init__(self, message: str, *, name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.name = name

    def __str__(self) -> str:
        return self.message


class EntryNotFoundError(OpfsError, FileNotFoundError):
    """Raised when a required entry is absent from its directory.

    Produced by ``get_file_handle``/``get_directory_handle`` with
    ``create=False`` and by ``remove_entry`` on a missing name.
    """


class TypeMismatchError(OpfsError, OSError):
    """Raised when an entry exists but is the other kind.

    Attributes:
        expected: The kind the caller asked for.
    """

    def __init__(
        self, message: str, *, name: str | None = None, expected: EntryKind
    ) -> None:
        super().__init__(message, name=name)
        self.expected = expected


class DirectoryNotEmptyError(OpfsError, OSError):
    """Raised when removing a populated directory without ``recursive``."""


class SeekOutOfRangeError(OpfsError, IndexError):
    """Raised when a stream cursor would move outside ``[0, len(buffer)]``.

    Attributes:
        offset: The requested position.
        length: The buffer length at the time of the request.
    """

    def __init__(self, message: str, *, offset: int, length: int) -> None:
        super().__init__(message)
        self.offset = offset
        self.length = length


class InvalidNameError(OpfsError, ValueError):
    """Raised when an entry name cannot be stored by every backend."""


class BackendError(OpfsError, RuntimeError):
    """Opaque failure below the contract (I/O, permission, quota).

    Attributes:
        code: Backend-specific identifier such as an ``errno`` value or a
            host ``DOMException`` name. ``None`` when unavailable.
    """

    def __init__(
        self,
        message: str,
        *,
        name: str | None = None,
        code: int | str | None = None,
    ) -> None:
        super().__init__(message, name=name)
        self.code = code


class StreamClosedError(BackendError):
    """Raised when a closed writable stream is written, sought or truncated."""

    def __init__(self, message: str = "I/O operation on closed stream") -> None:
        super().__init__(message, code="closed")


__all__ = [
    "BackendError",
    "DirectoryNotEmptyError",
    "EntryNotFoundError",
    "InvalidNameError",
    "OpfsError",
    "SeekOutOfRangeError",
    "StreamClosedError",
    "TypeMismatchError",
]
