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

"""Tests for the native filesystem backend."""

from __future__ import annotations

import errno
import os
from pathlib import Path
from types import TracebackType
from typing import Self

import pytest

from opfs import (
    BackendError,
    CreateWritableOptions,
    DirectoryNotEmptyError,
    EntryKind,
    EntryNotFoundError,
    GetDirectoryHandleOptions,
    GetFileHandleOptions,
    InvalidNameError,
    OpfsError,
    RemoveEntryOptions,
    TypeMismatchError,
)
from opfs import native
from opfs.native import (
    NativeDirectoryHandle,
    NativeFileHandle,
    app_specific_dir,
    translate_os_error,
)
from tests.helpers import HandleContractValidationSuite, run, write_file

CREATE_FILE = GetFileHandleOptions(create=True)
CREATE_DIR = GetDirectoryHandleOptions(create=True)
KEEP = CreateWritableOptions(keep_existing_data=True)


class TestNativeContract(HandleContractValidationSuite):
    """Run the shared contract suite against a temporary directory."""

    @pytest.fixture
    def root(self, tmp_path: Path) -> NativeDirectoryHandle:
        return NativeDirectoryHandle.from_path(tmp_path)


@pytest.fixture
def root(tmp_path: Path) -> NativeDirectoryHandle:
    return NativeDirectoryHandle.from_path(tmp_path)


# -----------------------------------------------------------------------------
# Error translation
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("error", "expected_type"),
    [
        (FileNotFoundError(errno.ENOENT, "No such file"), EntryNotFoundError),
        (IsADirectoryError(errno.EISDIR, "Is a directory"), TypeMismatchError),
        (NotADirectoryError(errno.ENOTDIR, "Not a directory"), TypeMismatchError),
        (OSError(errno.ENOTEMPTY, "Directory not empty"), DirectoryNotEmptyError),
        (PermissionError(errno.EACCES, "Permission denied"), BackendError),
        (OSError(errno.ENOSPC, "No space left on device"), BackendError),
    ],
)
def test_translate_os_error(error: OSError, expected_type: type[OpfsError]) -> None:
    translated = translate_os_error(error, "entry")

    assert type(translated) is expected_type
    assert translated.name == "entry"


def test_translate_os_error_keeps_errno_as_code() -> None:
    translated = translate_os_error(OSError(errno.EIO, "I/O error"), "disk")

    assert isinstance(translated, BackendError)
    assert translated.code == errno.EIO
    assert "I/O error" in str(translated)


def test_translate_os_error_reports_expected_kind() -> None:
    file_expected = translate_os_error(IsADirectoryError(errno.EISDIR, "x"), "a")
    dir_expected = translate_os_error(NotADirectoryError(errno.ENOTDIR, "x"), "b")

    assert isinstance(file_expected, TypeMismatchError)
    assert file_expected.expected is EntryKind.FILE
    assert isinstance(dir_expected, TypeMismatchError)
    assert dir_expected.expected is EntryKind.DIRECTORY


def test_translate_os_error_passes_opfs_errors_through() -> None:
    original = EntryNotFoundError("missing", name="missing")

    assert translate_os_error(original, "other") is original


def test_unexpected_os_error_becomes_backend_error(
    root: NativeDirectoryHandle, monkeypatch: pytest.MonkeyPatch
) -> None:
    file = run(write_file(root, "f.txt", b"x"))

    def broken(self: Path) -> bytes:
        raise OSError(errno.EIO, "Input/output error", str(self))

    monkeypatch.setattr(Path, "read_bytes", broken)

    with pytest.raises(BackendError) as excinfo:
        _ = run(file.read())
    assert excinfo.value.code == errno.EIO
    assert excinfo.value.name == "f.txt"


# -----------------------------------------------------------------------------
# Disk effects
# -----------------------------------------------------------------------------


def test_handles_map_to_paths(tmp_path: Path, root: NativeDirectoryHandle) -> None:
    folder = run(root.get_directory_handle("folder", CREATE_DIR))
    file = run(folder.get_file_handle("data.bin", CREATE_FILE))

    assert folder.path == tmp_path / "folder"
    assert file.path == tmp_path / "folder" / "data.bin"
    assert file.path.is_file()


def test_write_truncates_after_written_range(
    tmp_path: Path, root: NativeDirectoryHandle
) -> None:
    (tmp_path / "f.txt").write_bytes(b"Hello")

    async def scenario() -> bytes:
        file = await root.get_file_handle("f.txt")
        stream = await file.create_writable(KEEP)
        await stream.write_at_cursor_pos(b"J")
        on_disk = (tmp_path / "f.txt").read_bytes()
        await stream.close()
        return on_disk

    assert run(scenario()) == b"J"


def test_create_writable_truncates_on_open(
    tmp_path: Path, root: NativeDirectoryHandle
) -> None:
    (tmp_path / "f.txt").write_bytes(b"Hello")

    async def scenario() -> None:
        file = await root.get_file_handle("f.txt")
        stream = await file.create_writable()
        assert (tmp_path / "f.txt").read_bytes() == b""
        await stream.close()

    run(scenario())


def test_recursive_removal_deletes_tree(
    tmp_path: Path, root: NativeDirectoryHandle
) -> None:
    (tmp_path / "tree" / "nested").mkdir(parents=True)
    (tmp_path / "tree" / "nested" / "leaf").write_bytes(b"x")

    with pytest.raises(DirectoryNotEmptyError):
        run(root.remove_entry("tree"))
    run(root.remove_entry("tree", RemoveEntryOptions(recursive=True)))

    assert not (tmp_path / "tree").exists()


def test_handle_to_removed_directory_raises(root: NativeDirectoryHandle) -> None:
    async def scenario() -> NativeDirectoryHandle:
        folder = await root.get_directory_handle("folder", CREATE_DIR)
        await root.remove_entry("folder")
        return folder

    folder = run(scenario())
    with pytest.raises(EntryNotFoundError):
        _ = run(folder.get_file_handle("new.txt", CREATE_FILE))
    with pytest.raises(EntryNotFoundError):
        _ = run(folder.entries())


def test_create_writable_on_removed_file_raises(root: NativeDirectoryHandle) -> None:
    async def scenario() -> NativeFileHandle:
        file = await write_file(root, "f.txt", b"x")
        await root.remove_entry("f.txt")
        return file

    file = run(scenario())
    with pytest.raises(EntryNotFoundError):
        _ = run(file.create_writable())


def test_handles_follow_paths_after_recreation(root: NativeDirectoryHandle) -> None:
    async def scenario() -> bytes:
        old = await write_file(root, "f.txt", b"old")
        await root.remove_entry("f.txt")
        _ = await write_file(root, "f.txt", b"new")
        return await old.read()

    assert run(scenario()) == b"new"


def test_size_of_path_replaced_by_directory(
    tmp_path: Path, root: NativeDirectoryHandle
) -> None:
    file = run(root.get_file_handle("swap", CREATE_FILE))
    (tmp_path / "swap").unlink()
    (tmp_path / "swap").mkdir()

    with pytest.raises(TypeMismatchError):
        _ = run(file.size())


def test_special_file_lookup_raises_type_mismatch(
    tmp_path: Path, root: NativeDirectoryHandle
) -> None:
    if not hasattr(os, "mkfifo"):
        pytest.skip("named pipes are not supported here")
    os.mkfifo(tmp_path / "pipe")

    with pytest.raises(TypeMismatchError) as excinfo:
        _ = run(root.get_file_handle("pipe", CREATE_FILE))
    assert excinfo.value.expected is EntryKind.FILE
    assert [entry.name for entry in run(run(root.entries()).collect())] == []


# -----------------------------------------------------------------------------
# Enumeration
# -----------------------------------------------------------------------------


def test_entries_skip_symlinks(tmp_path: Path, root: NativeDirectoryHandle) -> None:
    (tmp_path / "real.txt").write_bytes(b"x")
    try:
        os.symlink(tmp_path / "real.txt", tmp_path / "link.txt")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks are not supported here")

    async def scenario() -> list[str]:
        return [entry.name async for entry in await root.entries()]

    assert run(scenario()) == ["real.txt"]


class _BrokenDirEntry:
    def __init__(self, name: str, path: str) -> None:
        self.name = name
        self.path = path

    def is_dir(self, *, follow_symlinks: bool = True) -> bool:
        raise PermissionError(errno.EACCES, "Permission denied", self.path)

    def is_file(self, *, follow_symlinks: bool = True) -> bool:
        return False


class _FakeScandir:
    def __init__(self, items: list[object]) -> None:
        self._items = items

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        return None

    def __iter__(self):  # noqa: ANN204
        return iter(self._items)


def test_entries_report_per_element_errors(
    tmp_path: Path, root: NativeDirectoryHandle, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "good.txt").write_bytes(b"ok")
    real_scandir = os.scandir

    def scandir(path: str | os.PathLike[str]) -> _FakeScandir:
        with real_scandir(path) as iterator:
            items: list[object] = list(iterator)
        items.append(_BrokenDirEntry("locked", str(tmp_path / "locked")))
        return _FakeScandir(items)

    monkeypatch.setattr(os, "scandir", scandir)

    listing = {entry.name: entry for entry in run(run(root.entries()).collect())}

    assert listing["good.txt"].ok
    locked = listing["locked"]
    assert not locked.ok
    assert locked.kind is None
    assert isinstance(locked.error, BackendError)
    assert locked.error.code == errno.EACCES
    with pytest.raises(BackendError):
        _ = locked.unwrap()


def test_entries_report_unusable_names_as_errors(
    tmp_path: Path, root: NativeDirectoryHandle
) -> None:
    if os.sep == "\\":
        pytest.skip("backslash is a path separator here")
    (tmp_path / "a\\b").write_bytes(b"x")
    (tmp_path / "good.txt").write_bytes(b"y")

    listing = {entry.name: entry for entry in run(run(root.entries()).collect())}

    assert listing["good.txt"].ok
    odd = listing["a\\b"]
    assert not odd.ok
    assert isinstance(odd.error, InvalidNameError)
    assert odd.error.name == "a\\b"
    with pytest.raises(InvalidNameError):
        _ = odd.unwrap()


# -----------------------------------------------------------------------------
# Application data directory
# -----------------------------------------------------------------------------


def test_app_specific_dir_honours_override(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("OPFS_DATA_DIR", str(tmp_path / "data"))

    handle = run(app_specific_dir("my-app"))

    assert handle.path == tmp_path / "data" / "my-app"
    assert handle.path.is_dir()
    assert handle.name == ""


def test_app_specific_dir_uses_platform_data_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, data_dir_env: None
) -> None:
    calls: list[tuple[str | None, object]] = []

    def fake_user_data_dir(appname: str | None, appauthor: object) -> str:
        calls.append((appname, appauthor))
        return str(tmp_path / "platform" / (appname or ""))

    monkeypatch.setattr(native, "user_data_dir", fake_user_data_dir)

    handle = run(app_specific_dir("my-app"))
    base = run(app_specific_dir())

    assert calls == [("my-app", False), (None, False)]
    assert handle.path == tmp_path / "platform" / "my-app"
    assert handle.path.is_dir()
    assert base.path == tmp_path / "platform"


def test_app_specific_dir_rejects_invalid_app_name() -> None:
    with pytest.raises(InvalidNameError):
        _ = run(app_specific_dir("../escape"))
