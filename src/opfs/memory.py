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

"""Reference in-memory backend.

Pure-software implementation of the capability contract over a hierarchical
in-process namespace, suitable for tests and for storage that does not need to
outlive the process.

Example usage::

    from opfs import CreateWritableOptions, GetFileHandleOptions
    from opfs.memory import MemoryDirectoryHandle

    root = MemoryDirectoryHandle()
    file = await root.get_file_handle("notes.txt", GetFileHandleOptions(create=True))
    async with await file.create_writable() as stream:
        await stream.write_at_cursor_pos(b"Hello")
    assert await file.read() == b"Hello"

Every directory map and every file buffer is a node guarded by its own lock
and shared by all handles that alias it. Mutations replace the buffer or map
entry wholesale while holding the lock and never suspend, so concurrent
readers observe either the old or the new state.

Removing an entry detaches its node (and, for directories, every descendant).
Directory and file handles to a detached node raise ``EntryNotFoundError``;
a stream that was already open keeps writing to the detached buffer.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Self

from ._logging import get_logger
from ._names import validate_name
from ._types import (
    DEFAULT_DIRECTORY_OPTIONS,
    DEFAULT_FILE_OPTIONS,
    DEFAULT_REMOVE_OPTIONS,
    DEFAULT_WRITABLE_OPTIONS,
    CreateWritableOptions,
    DirectoryEntry,
    EntryKind,
    EntryStream,
    GetDirectoryHandleOptions,
    GetFileHandleOptions,
    RemoveEntryOptions,
)
from .dbc import ensure, invariant
from .errors import (
    DirectoryNotEmptyError,
    EntryNotFoundError,
    SeekOutOfRangeError,
    StreamClosedError,
    TypeMismatchError,
)

__all__ = [
    "MemoryDirectoryHandle",
    "MemoryEntry",
    "MemoryFileHandle",
    "MemoryWritableFileStream",
]

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Internal Nodes
# ---------------------------------------------------------------------------


@dataclass(slots=True, eq=False)
class _FileNode:
    """Shared storage behind every handle to one file."""

    content: bytes = b""
    removed: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def _empty_children() -> dict[str, _FileNode | _DirectoryNode]:
    return {}


@dataclass(slots=True, eq=False)
class _DirectoryNode:
    """Shared storage behind every handle to one directory."""

    children: dict[str, _FileNode | _DirectoryNode] = field(
        default_factory=_empty_children
    )
    removed: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def _detach(node: _FileNode | _DirectoryNode) -> None:
    """Mark a removed node and all of its descendants as detached."""
    pending: list[_FileNode | _DirectoryNode] = [node]
    while pending:
        current = pending.pop()
        with current.lock:
            current.removed = True
            if isinstance(current, _DirectoryNode):
                pending.extend(current.children.values())


def _not_found(name: str) -> EntryNotFoundError:
    return EntryNotFoundError(f"'{name}' does not exist", name=name)


# ---------------------------------------------------------------------------
# Writable Stream
# ---------------------------------------------------------------------------


def _cursor_within_buffer(
    self: MemoryWritableFileStream, *args: object, **kwargs: object
) -> bool:
    if "exception" in kwargs:
        return True
    return self.cursor <= len(self._file.content)


@invariant(lambda self: self.cursor >= 0)
@dataclass(slots=True, eq=False)
class MemoryWritableFileStream:
    """Writable stream over an in-memory file buffer.

    States are ``OPEN`` until :meth:`close` and ``CLOSED`` afterwards. Each
    write rebuilds the buffer as ``buffer[:cursor] + data``: bytes after the
    written range are dropped. If another stream shrank the buffer below this
    stream's cursor the gap is zero-filled.
    """

    _file: _FileNode = field(repr=False)
    _cursor: int = 0
    _closed: bool = False

    @property
    def cursor(self) -> int:
        """Byte offset of the next write."""
        return self._cursor

    @property
    def closed(self) -> bool:
        """True once the stream has been closed."""
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise StreamClosedError

    @ensure(_cursor_within_buffer)
    async def write_at_cursor_pos(self, data: bytes) -> None:
        """Replace everything from the cursor onwards with ``data``."""
        self._check_open()
        payload = bytes(data)
        with self._file.lock:
            prefix = self._file.content[: self._cursor]
            if len(prefix) < self._cursor:
                prefix += bytes(self._cursor - len(prefix))
            self._file.content = prefix + payload
        self._cursor += len(payload)

    @ensure(_cursor_within_buffer)
    async def seek(self, offset: int) -> None:
        """Move the cursor; ``offset`` must lie within ``[0, len(buffer)]``."""
        self._check_open()
        with self._file.lock:
            length = len(self._file.content)
        if offset < 0 or offset > length:
            msg = (
                f"cannot seek to {offset} because the file is only "
                f"{length} bytes long"
            )
            raise SeekOutOfRangeError(msg, offset=offset, length=length)
        self._cursor = offset

    @ensure(_cursor_within_buffer)
    async def truncate(self, size: int) -> None:
        """Resize the buffer to ``size`` bytes and clamp the cursor."""
        self._check_open()
        if size < 0:
            msg = f"cannot truncate to negative size {size}"
            raise SeekOutOfRangeError(
                msg, offset=size, length=len(self._file.content)
            )
        with self._file.lock:
            current = self._file.content
            if size <= len(current):
                self._file.content = current[:size]
            else:
                self._file.content = current + bytes(size - len(current))
        self._cursor = min(self._cursor, size)

    async def close(self) -> None:
        """Close the stream. The buffer is already up to date."""
        self._closed = True

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# File Handle
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class MemoryFileHandle:
    """Handle to an in-memory file. Copies alias the same buffer."""

    _node: _FileNode = field(default_factory=_FileNode, repr=False)
    _name: str = ""

    @property
    def name(self) -> str:
        """Entry name of the file."""
        return self._name

    @property
    def kind(self) -> EntryKind:
        return EntryKind.FILE

    def _ensure_present(self) -> None:
        if self._node.removed:
            raise _not_found(self._name)

    async def create_writable(
        self, options: CreateWritableOptions | None = None
    ) -> MemoryWritableFileStream:
        """Open a stream; without ``keep_existing_data`` the buffer is cleared now."""
        options = options or DEFAULT_WRITABLE_OPTIONS
        with self._node.lock:
            self._ensure_present()
            if not options.keep_existing_data:
                self._node.content = b""
        return MemoryWritableFileStream(_file=self._node)

    async def read(self) -> bytes:
        """Return the full current content."""
        with self._node.lock:
            self._ensure_present()
            return self._node.content

    async def size(self) -> int:
        """Return the current content length."""
        with self._node.lock:
            self._ensure_present()
            return len(self._node.content)

    async def is_same_entry(self, other: object) -> bool:
        return isinstance(other, MemoryFileHandle) and other._node is self._node


# ---------------------------------------------------------------------------
# Directory Handle
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class MemoryDirectoryHandle:
    """Handle to an in-memory directory.

    ``MemoryDirectoryHandle()`` creates a fresh, empty root. Copies of a
    handle alias the same directory map.
    """

    _node: _DirectoryNode = field(default_factory=_DirectoryNode, repr=False)
    _name: str = ""

    @property
    def name(self) -> str:
        """Entry name of the directory (empty for a root)."""
        return self._name

    @property
    def kind(self) -> EntryKind:
        return EntryKind.DIRECTORY

    def _ensure_present(self) -> None:
        if self._node.removed:
            raise _not_found(self._name)

    async def get_file_handle(
        self, name: str, options: GetFileHandleOptions | None = None
    ) -> MemoryFileHandle:
        """Return the file called ``name``, creating it when asked to."""
        _ = validate_name(name)
        options = options or DEFAULT_FILE_OPTIONS
        created = False
        with self._node.lock:
            self._ensure_present()
            child = self._node.children.get(name)
            if child is None:
                if not options.create:
                    raise _not_found(name)
                child = _FileNode()
                self._node.children[name] = child
                created = True
            elif isinstance(child, _DirectoryNode):
                raise TypeMismatchError(
                    f"'{name}' is a directory", name=name, expected=EntryKind.FILE
                )
        if created:
            logger.debug(
                "File created.",
                event="opfs.memory.entry_created",
                context={"name": name, "kind": EntryKind.FILE.value},
            )
        return MemoryFileHandle(_node=child, _name=name)

    async def get_directory_handle(
        self, name: str, options: GetDirectoryHandleOptions | None = None
    ) -> MemoryDirectoryHandle:
        """Return the subdirectory called ``name``, creating it when asked to."""
        _ = validate_name(name)
        options = options or DEFAULT_DIRECTORY_OPTIONS
        created = False
        with self._node.lock:
            self._ensure_present()
            child = self._node.children.get(name)
            if child is None:
                if not options.create:
                    raise _not_found(name)
                child = _DirectoryNode()
                self._node.children[name] = child
                created = True
            elif isinstance(child, _FileNode):
                raise TypeMismatchError(
                    f"'{name}' is a file", name=name, expected=EntryKind.DIRECTORY
                )
        if created:
            logger.debug(
                "Directory created.",
                event="opfs.memory.entry_created",
                context={"name": name, "kind": EntryKind.DIRECTORY.value},
            )
        return MemoryDirectoryHandle(_node=child, _name=name)

    async def remove_entry(
        self, name: str, options: RemoveEntryOptions | None = None
    ) -> None:
        """Remove ``name``; populated directories need ``recursive=True``."""
        _ = validate_name(name)
        options = options or DEFAULT_REMOVE_OPTIONS
        with self._node.lock:
            self._ensure_present()
            child = self._node.children.get(name)
            if child is None:
                raise _not_found(name)
            with child.lock:
                if (
                    isinstance(child, _DirectoryNode)
                    and child.children
                    and not options.recursive
                ):
                    msg = f"Directory '{name}' is not empty"
                    raise DirectoryNotEmptyError(msg, name=name)
                del self._node.children[name]
        _detach(child)
        logger.debug(
            "Entry removed.",
            event="opfs.memory.entry_removed",
            context={"name": name, "recursive": options.recursive},
        )

    async def entries(self) -> EntryStream[MemoryEntry]:
        """Return a snapshot of the children taken now."""
        with self._node.lock:
            self._ensure_present()
            snapshot = list(self._node.children.items())
        return EntryStream(
            [DirectoryEntry(name, _wrap(name, node)) for name, node in snapshot]
        )

    async def resolve(self, possible_descendant: object) -> list[str] | None:
        """Return the names leading from this directory to the given handle."""
        if not isinstance(
            possible_descendant, MemoryDirectoryHandle | MemoryFileHandle
        ):
            return None
        target = possible_descendant._node
        if target is self._node:
            return []
        pending: list[tuple[_DirectoryNode, list[str]]] = [(self._node, [])]
        while pending:
            directory, path = pending.pop()
            with directory.lock:
                children = list(directory.children.items())
            for name, child in children:
                if child is target:
                    return [*path, name]
                if isinstance(child, _DirectoryNode):
                    pending.append((child, [*path, name]))
        return None

    async def is_same_entry(self, other: object) -> bool:
        return isinstance(other, MemoryDirectoryHandle) and other._node is self._node


MemoryEntry = MemoryDirectoryHandle | MemoryFileHandle


def _wrap(name: str, node: _FileNode | _DirectoryNode) -> MemoryEntry:
    if isinstance(node, _DirectoryNode):
        return MemoryDirectoryHandle(_node=node, _name=name)
    return MemoryFileHandle(_node=node, _name=name)
