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

"""Native backend delegating to the host operating system's filesystem.

Handles are thin wrappers around paths; blocking calls run in worker threads
through :func:`asyncio.to_thread`. OS errors are translated onto the opfs
error taxonomy so callers see the same failures as with the in-memory
backend.

Example usage::

    from opfs import GetFileHandleOptions
    from opfs.native import NativeDirectoryHandle

    root = NativeDirectoryHandle.from_path("/srv/app-data")
    file = await root.get_file_handle("notes.txt", GetFileHandleOptions(create=True))

A write truncates the file right after the written range, matching the
rebuild-at-cursor policy of the reference backend instead of the patch-in-place
behaviour of a bare ``write(2)``.
"""

from __future__ import annotations

import asyncio
import errno
import os
import shutil
import stat
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import BinaryIO, Self

from platformdirs import user_data_dir

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
    "NativeDirectoryHandle",
    "NativeEntry",
    "NativeFileHandle",
    "NativeWritableFileStream",
    "app_specific_dir",
    "translate_os_error",
]

logger = get_logger(__name__)

DATA_DIR_ENV = "OPFS_DATA_DIR"
_NOT_EMPTY_ERRNOS = frozenset({errno.ENOTEMPTY, errno.EEXIST})


def translate_os_error(err: OSError, name: str) -> OpfsError:
    """Map an ``OSError`` raised for entry ``name`` onto the opfs taxonomy.

    Args:
        err: The error raised by the operating system.
        name: Entry name the operation targeted.

    Returns:
        The matching opfs error; unmodelled failures become ``BackendError``
        carrying the original ``errno``.
    """
    translated: OpfsError
    if isinstance(err, OpfsError):
        return err
    if isinstance(err, FileNotFoundError):
        translated = EntryNotFoundError(f"'{name}' does not exist", name=name)
    elif isinstance(err, IsADirectoryError):
        translated = TypeMismatchError(
            f"'{name}' is a directory", name=name, expected=EntryKind.FILE
        )
    elif isinstance(err, NotADirectoryError):
        translated = TypeMismatchError(
            f"'{name}' is a file", name=name, expected=EntryKind.DIRECTORY
        )
    elif err.errno == errno.ENOTEMPTY:
        translated = DirectoryNotEmptyError(
            f"Directory '{name}' is not empty", name=name
        )
    else:
        reason = err.strerror or str(err)
        translated = BackendError(
            f"Operation on '{name}' failed: {reason}", name=name, code=err.errno
        )
    logger.debug(
        "OS error translated.",
        event="opfs.native.error_translated",
        context={
            "name": name,
            "errno": err.errno,
            "translated": type(translated).__name__,
        },
    )
    return translated


async def _offload[R](name: str, func: Callable[..., R], *args: object) -> R:
    """Run a blocking call in a worker thread, translating OS errors."""
    try:
        return await asyncio.to_thread(func, *args)
    except OpfsError:
        raise
    except OSError as err:
        raise translate_os_error(err, name) from err


def _not_found(name: str) -> EntryNotFoundError:
    return EntryNotFoundError(f"'{name}' does not exist", name=name)


def _stat_or_none(path: Path) -> os.stat_result | None:
    try:
        return path.stat()
    except FileNotFoundError:
        return None


# ---------------------------------------------------------------------------
# Writable Stream
# ---------------------------------------------------------------------------


@dataclass(slots=True, eq=False)
class NativeWritableFileStream:
    """Writable stream over an open file descriptor.

    Operations on one stream are serialized by an ``asyncio.Lock`` so the
    cursor and the descriptor position never disagree.
    """

    _file: BinaryIO = field(repr=False)
    _name: str
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

    def _length(self) -> int:
        return os.fstat(self._file.fileno()).st_size

    def _write_sync(self, payload: bytes) -> None:
        handle = self._file
        _ = handle.seek(self._cursor)
        view = memoryview(payload)
        written = 0
        while written < len(view):
            written += handle.write(view[written:]) or 0
        _ = handle.truncate(self._cursor + len(payload))

    async def write_at_cursor_pos(self, data: bytes) -> None:
        """Write ``data`` at the cursor and drop everything after it."""
        payload = bytes(data)
        async with self._lock:
            self._check_open()
            await _offload(self._name, self._write_sync, payload)
            self._cursor += len(payload)

    async def seek(self, offset: int) -> None:
        """Move the cursor; ``offset`` must lie within ``[0, size]``."""
        async with self._lock:
            self._check_open()
            length = await _offload(self._name, self._length)
            if offset < 0 or offset > length:
                msg = (
                    f"cannot seek to {offset} because the file is only "
                    f"{length} bytes long"
                )
                raise SeekOutOfRangeError(msg, offset=offset, length=length)
            self._cursor = offset

    async def truncate(self, size: int) -> None:
        """Resize the file to ``size`` bytes and clamp the cursor."""
        async with self._lock:
            self._check_open()
            if size < 0:
                length = await _offload(self._name, self._length)
                msg = f"cannot truncate to negative size {size}"
                raise SeekOutOfRangeError(msg, offset=size, length=length)
            _ = await _offload(self._name, self._file.truncate, size)
            self._cursor = min(self._cursor, size)

    async def close(self) -> None:
        """Close the descriptor. Closing twice is a no-op."""
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            await _offload(self._name, self._file.close)

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
class NativeFileHandle:
    """Handle to a file on the host filesystem."""

    _path: Path
    _name: str = ""

    @property
    def name(self) -> str:
        """Entry name of the file."""
        return self._name

    @property
    def kind(self) -> EntryKind:
        return EntryKind.FILE

    @property
    def path(self) -> Path:
        """Location of the file on the host."""
        return self._path

    def _open_sync(self, keep_existing_data: bool) -> BinaryIO:
        flags = os.O_RDWR
        if not keep_existing_data:
            flags |= os.O_TRUNC
        descriptor = os.open(self._path, flags)
        return os.fdopen(descriptor, "r+b", buffering=0)

    def _size_sync(self) -> int:
        result = self._path.stat()
        if stat.S_ISDIR(result.st_mode):
            raise IsADirectoryError(errno.EISDIR, "Is a directory", str(self._path))
        return result.st_size

    async def create_writable(
        self, options: CreateWritableOptions | None = None
    ) -> NativeWritableFileStream:
        """Open the file for writing; truncates now unless keeping data."""
        options = options or DEFAULT_WRITABLE_OPTIONS
        handle = await _offload(
            self._name, self._open_sync, options.keep_existing_data
        )
        return NativeWritableFileStream(_file=handle, _name=self._name)

    async def read(self) -> bytes:
        """Return the full current content."""
        return await _offload(self._name, self._path.read_bytes)

    async def size(self) -> int:
        """Return the current content length."""
        return await _offload(self._name, self._size_sync)

    async def is_same_entry(self, other: object) -> bool:
        if not isinstance(other, NativeFileHandle):
            return False
        return _same_path(self._path, other._path)


# ---------------------------------------------------------------------------
# Directory Handle
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class NativeDirectoryHandle:
    """Handle to a directory on the host filesystem.

    Use :meth:`from_path` to wrap an existing directory as a root.
    """

    _path: Path
    _name: str = ""

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> NativeDirectoryHandle:
        """Wrap ``path`` as a root directory handle (its name is empty)."""
        return cls(_path=Path(path))

    @property
    def name(self) -> str:
        """Entry name of the directory (empty for a root)."""
        return self._name

    @property
    def kind(self) -> EntryKind:
        return EntryKind.DIRECTORY

    @property
    def path(self) -> Path:
        """Location of the directory on the host."""
        return self._path

    def _ensure_present(self) -> None:
        if not self._path.is_dir():
            raise _not_found(self._name)

    def _get_file_sync(self, name: str, create: bool) -> None:
        self._ensure_present()
        target = self._path / name
        result = _stat_or_none(target)
        if result is None:
            if not create:
                raise _not_found(name)
            target.touch(exist_ok=True)
            logger.debug(
                "File created.",
                event="opfs.native.entry_created",
                context={"name": name, "kind": EntryKind.FILE.value},
            )
            return
        if stat.S_ISDIR(result.st_mode):
            raise TypeMismatchError(
                f"'{name}' is a directory", name=name, expected=EntryKind.FILE
            )
        if not stat.S_ISREG(result.st_mode):
            raise TypeMismatchError(
                f"'{name}' is not a regular file",
                name=name,
                expected=EntryKind.FILE,
            )

    def _get_directory_sync(self, name: str, create: bool) -> None:
        self._ensure_present()
        target = self._path / name
        result = _stat_or_none(target)
        if result is None:
            if not create:
                raise _not_found(name)
            try:
                target.mkdir()
            except FileExistsError:
                if not target.is_dir():
                    raise
            logger.debug(
                "Directory created.",
                event="opfs.native.entry_created",
                context={"name": name, "kind": EntryKind.DIRECTORY.value},
            )
            return
        if not stat.S_ISDIR(result.st_mode):
            raise TypeMismatchError(
                f"'{name}' is a file", name=name, expected=EntryKind.DIRECTORY
            )

    def _remove_sync(self, name: str, recursive: bool) -> None:
        self._ensure_present()
        target = self._path / name
        try:
            result = target.lstat()
        except FileNotFoundError:
            raise _not_found(name) from None
        if not stat.S_ISDIR(result.st_mode):
            target.unlink()
        elif recursive:
            shutil.rmtree(target)
        else:
            try:
                target.rmdir()
            except OSError as err:
                if err.errno in _NOT_EMPTY_ERRNOS:
                    msg = f"Directory '{name}' is not empty"
                    raise DirectoryNotEmptyError(msg, name=name) from err
                raise
        logger.debug(
            "Entry removed.",
            event="opfs.native.entry_removed",
            context={"name": name, "recursive": recursive},
        )

    def _scan_sync(self) -> list[DirectoryEntry[NativeEntry]]:
        self._ensure_present()
        snapshot: list[DirectoryEntry[NativeEntry]] = []
        with os.scandir(self._path) as iterator:
            for item in iterator:
                try:
                    _ = validate_name(item.name)
                except InvalidNameError as err:
                    snapshot.append(DirectoryEntry(item.name, error=err))
                    continue
                handle: NativeEntry
                try:
                    if item.is_dir(follow_symlinks=False):
                        handle = NativeDirectoryHandle(Path(item.path), item.name)
                    elif item.is_file(follow_symlinks=False):
                        handle = NativeFileHandle(Path(item.path), item.name)
                    else:
                        continue
                except OSError as err:
                    error = translate_os_error(err, item.name)
                    snapshot.append(DirectoryEntry(item.name, error=error))
                    continue
                snapshot.append(DirectoryEntry(item.name, handle))
        return snapshot

    async def get_file_handle(
        self, name: str, options: GetFileHandleOptions | None = None
    ) -> NativeFileHandle:
        """Return the file called ``name``, creating it when asked to."""
        _ = validate_name(name)
        options = options or DEFAULT_FILE_OPTIONS
        await _offload(name, self._get_file_sync, name, options.create)
        return NativeFileHandle(self._path / name, name)

    async def get_directory_handle(
        self, name: str, options: GetDirectoryHandleOptions | None = None
    ) -> NativeDirectoryHandle:
        """Return the subdirectory called ``name``, creating it when asked to."""
        _ = validate_name(name)
        options = options or DEFAULT_DIRECTORY_OPTIONS
        await _offload(name, self._get_directory_sync, name, options.create)
        return NativeDirectoryHandle(self._path / name, name)

    async def remove_entry(
        self, name: str, options: RemoveEntryOptions | None = None
    ) -> None:
        """Remove ``name``; populated directories need ``recursive=True``."""
        _ = validate_name(name)
        options = options or DEFAULT_REMOVE_OPTIONS
        await _offload(name, self._remove_sync, name, options.recursive)

    async def entries(self) -> EntryStream[NativeEntry]:
        """Return a snapshot of the directory listing taken now.

        Symbolic links and special files are skipped.
        """
        snapshot = await _offload(self._name, self._scan_sync)
        return EntryStream(snapshot)

    async def resolve(self, possible_descendant: object) -> list[str] | None:
        """Return the names leading from this directory to the given handle."""
        if not isinstance(
            possible_descendant, NativeDirectoryHandle | NativeFileHandle
        ):
            return None
        base = self._path.resolve()
        target = possible_descendant.path.resolve()
        try:
            relative = target.relative_to(base)
        except ValueError:
            return None
        return list(relative.parts)

    async def is_same_entry(self, other: object) -> bool:
        if not isinstance(other, NativeDirectoryHandle):
            return False
        return _same_path(self._path, other._path)


NativeEntry = NativeDirectoryHandle | NativeFileHandle


def _same_path(left: Path, right: Path) -> bool:
    return left.resolve() == right.resolve()


def _data_dir(app_name: str | None) -> Path:
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        base = Path(override).expanduser()
        return base / app_name if app_name else base
    return Path(user_data_dir(app_name, appauthor=False))


async def app_specific_dir(app_name: str | None = None) -> NativeDirectoryHandle:
    """Return a root handle for persistent per-user application data.

    The location is the platform's user data directory (``app_name`` appended
    when given) unless ``OPFS_DATA_DIR`` is set. The directory is created if
    it does not exist yet.
    """
    if app_name is not None:
        _ = validate_name(app_name)
    path = _data_dir(app_name)
    await _offload(path.name, partial(path.mkdir, parents=True, exist_ok=True))
    logger.debug(
        "App data directory resolved.",
        event="opfs.native.app_dir_resolved",
        context={"path": str(path)},
    )
    return NativeDirectoryHandle.from_path(path)
