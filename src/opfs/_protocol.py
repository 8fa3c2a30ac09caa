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

"""Capability contract for directory, file and writable-stream handles.

This module provides the three handle protocols every backend implements so
callers can store and retrieve bytes without coupling to a specific storage
implementation:

- ``opfs.memory``: reference in-memory backend
- ``opfs.native``: host operating system filesystem
- ``opfs.web``: browser Origin Private File System (via Pyodide)

Every method is a coroutine. Failures are raised as the classes in
``opfs.errors``; the contract layer performs no retries.
"""

from __future__ import annotations

from typing import Protocol, Self, TypeVar, runtime_checkable

from ._types import (
    CreateWritableOptions,
    EntryKind,
    EntryStream,
    GetDirectoryHandleOptions,
    GetFileHandleOptions,
    RemoveEntryOptions,
)

StreamT_co = TypeVar("StreamT_co", bound="WritableFileStream", covariant=True)
FileT_co = TypeVar("FileT_co", bound="FileHandle[WritableFileStream]", covariant=True)


@runtime_checkable
class WritableFileStream(Protocol):
    """Single-writer view over a file's content with a private cursor.

    The cursor starts at 0. Writes rebuild the content as
    ``content[:cursor] + data``: anything after the written range is dropped,
    in every backend.

    Example::

        async with await file.create_writable() as stream:
            await stream.write_at_cursor_pos(b"Hello")
            await stream.seek(0)
            await stream.write_at_cursor_pos(b"Hi")
        assert await file.read() == b"Hi"
    """

    @property
    def cursor(self) -> int:
        """Byte offset of the next write."""
        ...

    @property
    def closed(self) -> bool:
        """True once ``close()`` has completed."""
        ...

    async def write_at_cursor_pos(self, data: bytes) -> None:
        """Write ``data`` at the cursor and advance the cursor past it.

        Raises:
            StreamClosedError: The stream has been closed.
            BackendError: The backend failed to store the bytes.
        """
        ...

    async def seek(self, offset: int) -> None:
        """Move the cursor to ``offset``.

        Raises:
            SeekOutOfRangeError: ``offset`` is negative or past the end.
            StreamClosedError: The stream has been closed.
        """
        ...

    async def truncate(self, size: int) -> None:
        """Resize the content to ``size`` bytes, zero-filling when growing.

        The cursor is clamped to the new size.

        Raises:
            SeekOutOfRangeError: ``size`` is negative.
            StreamClosedError: The stream has been closed.
        """
        ...

    async def close(self) -> None:
        """Finalize the stream. Closing twice is a no-op."""
        ...

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager, closing the stream."""
        ...


@runtime_checkable
class FileHandle(Protocol[StreamT_co]):
    """Reference to a stored file.

    Copies of a handle alias the same file. ``read()`` and ``size()`` always
    reflect the current content, independent of any open stream's cursor.
    """

    @property
    def name(self) -> str:
        """Entry name of the file."""
        ...

    @property
    def kind(self) -> EntryKind:
        """Always ``EntryKind.FILE``."""
        ...

    async def create_writable(
        self, options: CreateWritableOptions | None = None
    ) -> StreamT_co:
        """Open a writable stream over the file.

        Args:
            options: ``keep_existing_data=False`` (default) empties the file
                immediately; ``True`` preserves it. The cursor starts at 0.

        Raises:
            EntryNotFoundError: The file no longer exists (delegating backends).
            BackendError: The backend refused to open the file.
        """
        ...

    async def read(self) -> bytes:
        """Return the full current content."""
        ...

    async def size(self) -> int:
        """Return the current content length in bytes."""
        ...

    async def is_same_entry(self, other: object) -> bool:
        """True when ``other`` refers to the same stored file."""
        ...


@runtime_checkable
class DirectoryHandle(Protocol[FileT_co]):
    """Reference to a stored directory.

    Names are single path segments validated by ``opfs.validate_name``.

    Example::

        async def save(root: DirectoryHandle[FileHandle[WritableFileStream]]) -> None:
            docs = await root.get_directory_handle(
                "docs", GetDirectoryHandleOptions(create=True)
            )
            file = await docs.get_file_handle(
                "notes.txt", GetFileHandleOptions(create=True)
            )
            async with await file.create_writable() as stream:
                await stream.write_at_cursor_pos(b"hello")
    """

    @property
    def name(self) -> str:
        """Entry name of the directory (empty for a root)."""
        ...

    @property
    def kind(self) -> EntryKind:
        """Always ``EntryKind.DIRECTORY``."""
        ...

    async def get_file_handle(
        self, name: str, options: GetFileHandleOptions | None = None
    ) -> FileT_co:
        """Return the file called ``name``.

        Raises:
            EntryNotFoundError: Absent and ``create`` is False.
            TypeMismatchError: ``name`` is a directory.
            InvalidNameError: ``name`` is not a valid entry name.
        """
        ...

    async def get_directory_handle(
        self, name: str, options: GetDirectoryHandleOptions | None = None
    ) -> Self:
        """Return the subdirectory called ``name``.

        Raises:
            EntryNotFoundError: Absent and ``create`` is False.
            TypeMismatchError: ``name`` is a file.
            InvalidNameError: ``name`` is not a valid entry name.
        """
        ...

    async def remove_entry(
        self, name: str, options: RemoveEntryOptions | None = None
    ) -> None:
        """Remove the entry called ``name``.

        Raises:
            EntryNotFoundError: ``name`` is absent.
            DirectoryNotEmptyError: ``name`` is a populated directory and
                ``recursive`` is False.
        """
        ...

    async def entries(self) -> EntryStream[Self | FileT_co]:
        """Return a single-pass snapshot of the directory's children."""
        ...

    async def resolve(self, possible_descendant: object) -> list[str] | None:
        """Return the names leading to ``possible_descendant``.

        Returns ``[]`` for this directory itself and ``None`` when the handle
        is not inside this directory.
        """
        ...

    async def is_same_entry(self, other: object) -> bool:
        """True when ``other`` refers to the same stored directory."""
        ...


__all__ = [
    "DirectoryHandle",
    "FileHandle",
    "WritableFileStream",
]
