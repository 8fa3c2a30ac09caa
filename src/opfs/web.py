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

"""Web backend delegating to a host Origin Private File System.

The handles wrap the browser's ``FileSystemDirectoryHandle``,
``FileSystemFileHandle`` and ``FileSystemWritableFileStream`` objects as seen
from Pyodide. Host values cross the boundary through a :class:`HostBridge`;
:class:`PyodideBridge` is the default and imports the Pyodide runtime lazily,
so this module can be imported (and tested against a fake host) anywhere.

Host failures arrive as exceptions carrying a ``DOMException`` name and are
translated onto the opfs error taxonomy:

=========================== ==========================
Host error name             opfs error
=========================== ==========================
``NotFoundError``           ``EntryNotFoundError``
``TypeMismatchError``       ``TypeMismatchError``
``InvalidModificationError`` ``DirectoryNotEmptyError``
``TypeError``               ``InvalidNameError``
anything else               ``BackendError``
=========================== ==========================

Host writable streams stage their content until ``close()``, so unlike the
other backends the file content observed through a file handle only changes
once the stream is closed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Protocol, Self, runtime_checkable

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
from .errors import (
    BackendError,
    DirectoryNotEmptyError,
    EntryNotFoundError,
    InvalidNameError,
    OpfsError,
    SeekOutOfRangeError,
    StreamClosedError,
    TypeMismatchError,
)

__all__ = [
    "HostBridge",
    "PyodideBridge",
    "WebDirectoryHandle",
    "WebEntry",
    "WebFileHandle",
    "WebWritableFileStream",
    "app_specific_dir",
    "translate_host_error",
]

logger = get_logger(__name__)

# A host-side object (a ``JsProxy`` under Pyodide).
HostObject = Any


@runtime_checkable
class HostBridge(Protocol):
    """Converts values between Python and the host storage API."""

    def make_options(self, **fields: object) -> HostObject:
        """Build a host options dictionary from keyword fields."""
        ...

    def to_host_bytes(self, data: bytes) -> HostObject:
        """Convert ``data`` into a host byte buffer."""
        ...

    def from_host_bytes(self, buffer: HostObject) -> bytes:
        """Copy a host ``ArrayBuffer`` into Python bytes."""
        ...

    def error_name(self, error: BaseException) -> str | None:
        """Return the host error name, or ``None`` for non-host exceptions."""
        ...


class PyodideBridge:
    """Host bridge for code running inside Pyodide."""

    def make_options(self, **fields: object) -> HostObject:
        from js import Object  # pyright: ignore[reportMissingImports]
        from pyodide.ffi import to_js  # pyright: ignore[reportMissingImports]

        return to_js(fields, dict_converter=Object.fromEntries)

    def to_host_bytes(self, data: bytes) -> HostObject:
        from pyodide.ffi import to_js  # pyright: ignore[reportMissingImports]

        return to_js(data)

    def from_host_bytes(self, buffer: HostObject) -> bytes:
        return bytes(buffer.to_bytes())

    def error_name(self, error: BaseException) -> str | None:
        from pyodide.ffi import JsException  # pyright: ignore[reportMissingImports]

        if isinstance(error, JsException):
            return str(error.name)
        return None


def translate_host_error(
    error_name: str,
    message: str,
    *,
    name: str,
    expected: EntryKind | None = None,
) -> OpfsError:
    """Map a host ``DOMException`` name onto the opfs taxonomy."""
    translated: OpfsError
    if error_name == "NotFoundError":
        translated = EntryNotFoundError(f"'{name}' does not exist", name=name)
    elif error_name == "TypeMismatchError" and expected is not None:
        other = (
            EntryKind.DIRECTORY if expected is EntryKind.FILE else EntryKind.FILE
        )
        translated = TypeMismatchError(
            f"'{name}' is a {other.value}", name=name, expected=expected
        )
    elif error_name == "InvalidModificationError":
        translated = DirectoryNotEmptyError(
            f"Directory '{name}' is not empty", name=name
        )
    elif error_name == "TypeError":
        translated = InvalidNameError(f"Invalid entry name '{name}'", name=name)
    else:
        translated = BackendError(
            f"Operation on '{name}' failed: {message}", name=name, code=error_name
        )
    logger.debug(
        "Host error translated.",
        event="opfs.web.error_translated",
        context={
            "name": name,
            "host_error": error_name,
            "translated": type(translated).__name__,
        },
    )
    return translated


async def _host_call[R](
    bridge: HostBridge,
    pending: Awaitable[R],
    *,
    name: str,
    expected: EntryKind | None = None,
) -> R:
    """Await a host promise, translating host errors."""
    try:
        return await pending
    except OpfsError:
        raise
    except Exception as err:
        error_name = bridge.error_name(err)
        if error_name is None:
            raise
        raise translate_host_error(
            error_name, str(err), name=name, expected=expected
        ) from err


# ---------------------------------------------------------------------------
# Writable Stream
# ---------------------------------------------------------------------------


@dataclass(slots=True, eq=False)
class WebWritableFileStream:
    """Writable stream over a host ``FileSystemWritableFileStream``.

    The host stream stages writes in a private copy, so the length used for
    seek range checks is tracked locally. Every write is followed by a host
    ``truncate`` at the end of the written range.
    """

    _host: HostObject = field(repr=False)
    _bridge: HostBridge = field(repr=False)
    _name: str
    _length: int = 0
    _cursor: int = 0
    _closed: bool = False
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

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

    async def write_at_cursor_pos(self, data: bytes) -> None:
        """Write ``data`` at the cursor and drop everything after it."""
        payload = bytes(data)
        async with self._lock:
            self._check_open()
            end = self._cursor + len(payload)
            params = self._bridge.make_options(
                type="write",
                position=self._cursor,
                data=self._bridge.to_host_bytes(payload),
            )
            await _host_call(self._bridge, self._host.write(params), name=self._name)
            self._length = max(self._length, end)
            self._cursor = end
            await _host_call(self._bridge, self._host.truncate(end), name=self._name)
            self._length = end

    async def seek(self, offset: int) -> None:
        """Move the cursor; ``offset`` must lie within ``[0, size]``."""
        async with self._lock:
            self._check_open()
            if offset < 0 or offset > self._length:
                msg = (
                    f"cannot seek to {offset} because the file is only "
                    f"{self._length} bytes long"
                )
                raise SeekOutOfRangeError(msg, offset=offset, length=self._length)
            self._cursor = offset

    async def truncate(self, size: int) -> None:
        """Resize the staged content to ``size`` bytes and clamp the cursor."""
        async with self._lock:
            self._check_open()
            if size < 0:
                msg = f"cannot truncate to negative size {size}"
                raise SeekOutOfRangeError(msg, offset=size, length=self._length)
            await _host_call(self._bridge, self._host.truncate(size), name=self._name)
            self._length = size
            self._cursor = min(self._cursor, size)

    async def close(self) -> None:
        """Commit the staged content. Closing twice is a no-op."""
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            await _host_call(self._bridge, self._host.close(), name=self._name)

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
class WebFileHandle:
    """Handle wrapping a host ``FileSystemFileHandle``."""

    _host: HostObject = field(repr=False)
    _bridge: HostBridge = field(default_factory=PyodideBridge, repr=False)

    @property
    def name(self) -> str:
        """Entry name of the file."""
        return str(self._host.name)

    @property
    def kind(self) -> EntryKind:
        return EntryKind.FILE

    async def _snapshot(self) -> HostObject:
        return await _host_call(
            self._bridge, self._host.getFile(), name=self.name, expected=EntryKind.FILE
        )

    async def create_writable(
        self, options: CreateWritableOptions | None = None
    ) -> WebWritableFileStream:
        """Open a host writable stream; ``keep_existing_data`` is forwarded."""
        options = options or DEFAULT_WRITABLE_OPTIONS
        params = self._bridge.make_options(
            keepExistingData=options.keep_existing_data
        )
        writable = await _host_call(
            self._bridge,
            self._host.createWritable(params),
            name=self.name,
            expected=EntryKind.FILE,
        )
        # The host stream starts from the content committed when it opened.
        length = 0
        if options.keep_existing_data:
            length = int((await self._snapshot()).size)
        return WebWritableFileStream(
            _host=writable, _bridge=self._bridge, _name=self.name, _length=length
        )

    async def read(self) -> bytes:
        """Return the full committed content."""
        snapshot = await self._snapshot()
        buffer = await _host_call(
            self._bridge, snapshot.arrayBuffer(), name=self.name
        )
        return self._bridge.from_host_bytes(buffer)

    async def size(self) -> int:
        """Return the committed content length."""
        return int((await self._snapshot()).size)

    async def is_same_entry(self, other: object) -> bool:
        if not isinstance(other, WebFileHandle):
            return False
        same = await _host_call(
            self._bridge, self._host.isSameEntry(other._host), name=self.name
        )
        return bool(same)


# ---------------------------------------------------------------------------
# Directory Handle
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class WebDirectoryHandle:
    """Handle wrapping a host ``FileSystemDirectoryHandle``."""

    _host: HostObject = field(repr=False)
    _bridge: HostBridge = field(default_factory=PyodideBridge, repr=False)

    @property
    def name(self) -> str:
        """Entry name of the directory (empty for the origin root)."""
        return str(self._host.name)

    @property
    def kind(self) -> EntryKind:
        return EntryKind.DIRECTORY

    def _wrap(self, host: HostObject) -> WebEntry:
        kind = str(host.kind)
        if kind == EntryKind.DIRECTORY.value:
            return WebDirectoryHandle(host, self._bridge)
        if kind == EntryKind.FILE.value:
            return WebFileHandle(host, self._bridge)
        msg = f"Unknown host entry kind '{kind}'"
        raise BackendError(msg, name=str(host.name), code="UnknownKind")

    async def get_file_handle(
        self, name: str, options: GetFileHandleOptions | None = None
    ) -> WebFileHandle:
        """Return the file called ``name``, creating it when asked to."""
        _ = validate_name(name)
        options = options or DEFAULT_FILE_OPTIONS
        params = self._bridge.make_options(create=options.create)
        host = await _host_call(
            self._bridge,
            self._host.getFileHandle(name, params),
            name=name,
            expected=EntryKind.FILE,
        )
        return WebFileHandle(host, self._bridge)

    async def get_directory_handle(
        self, name: str, options: GetDirectoryHandleOptions | None = None
    ) -> WebDirectoryHandle:
        """Return the subdirectory called ``name``, creating it when asked to."""
        _ = validate_name(name)
        options = options or DEFAULT_DIRECTORY_OPTIONS
        params = self._bridge.make_options(create=options.create)
        host = await _host_call(
            self._bridge,
            self._host.getDirectoryHandle(name, params),
            name=name,
            expected=EntryKind.DIRECTORY,
        )
        return WebDirectoryHandle(host, self._bridge)

    async def remove_entry(
        self, name: str, options: RemoveEntryOptions | None = None
    ) -> None:
        """Remove ``name``; populated directories need ``recursive=True``."""
        _ = validate_name(name)
        options = options or DEFAULT_REMOVE_OPTIONS
        params = self._bridge.make_options(recursive=options.recursive)
        await _host_call(
            self._bridge, self._host.removeEntry(name, params), name=name
        )
        logger.debug(
            "Entry removed.",
            event="opfs.web.entry_removed",
            context={"name": name, "recursive": options.recursive},
        )

    async def entries(self) -> EntryStream[WebEntry]:
        """Return a snapshot of the host listing taken now.

        An entry whose host kind cannot be mapped is reported as an element
        carrying a ``BackendError``.
        """
        snapshot: list[DirectoryEntry[WebEntry]] = []
        iterator = self._host.entries()
        while True:
            try:
                pair = await _host_call(
                    self._bridge, anext(iterator), name=self.name
                )
            except StopAsyncIteration:
                break
            entry_name = str(pair[0])
            try:
                handle = self._wrap(pair[1])
            except BackendError as err:
                snapshot.append(DirectoryEntry(entry_name, error=err))
                continue
            snapshot.append(DirectoryEntry(entry_name, handle))
        return EntryStream(snapshot)

    async def resolve(self, possible_descendant: object) -> list[str] | None:
        """Return the names leading from this directory to the given handle."""
        if not isinstance(possible_descendant, WebDirectoryHandle | WebFileHandle):
            return None
        path = await _host_call(
            self._bridge,
            self._host.resolve(possible_descendant._host),
            name=self.name,
        )
        if path is None:
            return None
        return [str(part) for part in path]

    async def is_same_entry(self, other: object) -> bool:
        if not isinstance(other, WebDirectoryHandle):
            return False
        same = await _host_call(
            self._bridge, self._host.isSameEntry(other._host), name=self.name
        )
        return bool(same)


WebEntry = WebDirectoryHandle | WebFileHandle


async def app_specific_dir(
    app_name: str | None = None, *, bridge: HostBridge | None = None
) -> WebDirectoryHandle:
    """Return the origin-private root (or its ``app_name`` subdirectory)."""
    from js import navigator  # pyright: ignore[reportMissingImports]

    bridge = bridge or PyodideBridge()
    pending: Awaitable[HostObject] = navigator.storage.getDirectory()
    root = WebDirectoryHandle(await _host_call(bridge, pending, name=""), bridge)
    if app_name is None:
        return root
    return await root.get_directory_handle(
        app_name, GetDirectoryHandleOptions(create=True)
    )
