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

"""Option records and enumeration types for the capability contract.

All option records are immutable frozen dataclasses. Their defaults match the
host API they mirror: nothing is created, existing data is not kept and
removal is not recursive unless the caller asks for it.

Types are organized into:

- **Option types**: ``GetFileHandleOptions``, ``GetDirectoryHandleOptions``,
  ``CreateWritableOptions``, ``RemoveEntryOptions``
- **Enumeration types**: ``EntryKind``, ``DirectoryEntry``, ``EntryStream``
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Final, Generic, Self, TypeVar

if TYPE_CHECKING:
    from .errors import OpfsError

HandleT = TypeVar("HandleT")


class EntryKind(Enum):
    """Tag of a directory entry."""

    FILE = "file"
    DIRECTORY = "directory"


# ---------------------------------------------------------------------------
# Option Records
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class GetFileHandleOptions:
    """Options for ``DirectoryHandle.get_file_handle()``.

    Attributes:
        create: Create an empty file when the name is absent.
    """

    create: bool = False


@dataclass(slots=True, frozen=True)
class GetDirectoryHandleOptions:
    """Options for ``DirectoryHandle.get_directory_handle()``.

    Attributes:
        create: Create an empty directory when the name is absent.
    """

    create: bool = False


@dataclass(slots=True, frozen=True)
class CreateWritableOptions:
    """Options for ``FileHandle.create_writable()``.

    Attributes:
        keep_existing_data: Preserve the current content. When False the
            file is emptied as soon as the stream is created. The cursor
            starts at 0 either way; seek to ``size()`` to append.
    """

    keep_existing_data: bool = False


@dataclass(slots=True, frozen=True)
class RemoveEntryOptions:
    """Options for ``DirectoryHandle.remove_entry()``.

    Attributes:
        recursive: Remove a directory together with its contents.
    """

    recursive: bool = False


DEFAULT_FILE_OPTIONS: Final = GetFileHandleOptions()
DEFAULT_DIRECTORY_OPTIONS: Final = GetDirectoryHandleOptions()
DEFAULT_WRITABLE_OPTIONS: Final = CreateWritableOptions()
DEFAULT_REMOVE_OPTIONS: Final = RemoveEntryOptions()


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class DirectoryEntry(Generic[HandleT]):
    """One element produced by ``DirectoryHandle.entries()``.

    An element either carries a handle or the error that prevented the
    backend from producing one (for example an entry removed while the
    directory was being listed). Failures are per element: the rest of the
    enumeration is unaffected.

    Attributes:
        name: Entry name without path.
        handle: File or directory handle, ``None`` when ``error`` is set.
        error: Failure for this element only.

    Example::

        async for entry in await directory.entries():
            if entry.is_file:
                data = await entry.unwrap().read()
    """

    name: str
    handle: HandleT | None = None
    error: OpfsError | None = None

    @property
    def ok(self) -> bool:
        """True when the element carries a handle."""
        return self.error is None

    @property
    def kind(self) -> EntryKind | None:
        """Kind of the entry, ``None`` for failed elements."""
        if self.handle is None:
            return None
        return getattr(self.handle, "kind", None)

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    def unwrap(self) -> HandleT:
        """Return the handle or raise the element's error."""
        if self.error is not None:
            raise self.error
        if self.handle is None:  # pragma: no cover - constructor misuse
            msg = f"Entry '{self.name}' has neither a handle nor an error"
            raise ValueError(msg)
        return self.handle


class EntryStream(Generic[HandleT]):
    """Lazy, finite, single-pass async sequence of directory entries.

    Backends build one from a snapshot taken when ``entries()`` is awaited;
    an async iterator source is also accepted. Once consumed it stays
    exhausted: iterating again yields nothing.
    """

    __slots__ = ("_source",)

    def __init__(
        self,
        source: Iterable[DirectoryEntry[HandleT]]
        | AsyncIterator[DirectoryEntry[HandleT]],
    ) -> None:
        self._source: AsyncIterator[DirectoryEntry[HandleT]] = (
            source if isinstance(source, AsyncIterator) else _aiter_of(source)
        )

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> DirectoryEntry[HandleT]:
        return await anext(self._source)

    async def collect(self) -> list[DirectoryEntry[HandleT]]:
        """Drain the remaining elements into a list."""
        return [entry async for entry in self]


async def _aiter_of(
    items: Iterable[DirectoryEntry[HandleT]],
) -> AsyncIterator[DirectoryEntry[HandleT]]:
    for item in items:
        yield item


__all__ = [
    "DEFAULT_DIRECTORY_OPTIONS",
    "DEFAULT_FILE_OPTIONS",
    "DEFAULT_REMOVE_OPTIONS",
    "DEFAULT_WRITABLE_OPTIONS",
    "CreateWritableOptions",
    "DirectoryEntry",
    "EntryKind",
    "EntryStream",
    "GetDirectoryHandleOptions",
    "GetFileHandleOptions",
    "RemoveEntryOptions",
]
