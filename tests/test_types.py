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

"""Tests for option records and enumeration types."""

from __future__ import annotations

import dataclasses
from collections.abc import AsyncIterator

import pytest

from opfs import (
    CreateWritableOptions,
    DirectoryEntry,
    EntryKind,
    EntryNotFoundError,
    EntryStream,
    GetDirectoryHandleOptions,
    GetFileHandleOptions,
    RemoveEntryOptions,
)
from opfs.memory import MemoryDirectoryHandle, MemoryFileHandle
from tests.helpers import run


def test_option_defaults_are_conservative() -> None:
    assert GetFileHandleOptions().create is False
    assert GetDirectoryHandleOptions().create is False
    assert CreateWritableOptions().keep_existing_data is False
    assert RemoveEntryOptions().recursive is False


def test_option_records_are_frozen() -> None:
    options = GetFileHandleOptions(create=True)

    with pytest.raises(dataclasses.FrozenInstanceError):
        options.create = False  # type: ignore[misc]


def test_entry_kind_values_match_host_strings() -> None:
    assert EntryKind.FILE.value == "file"
    assert EntryKind.DIRECTORY.value == "directory"


class TestDirectoryEntry:
    """DirectoryEntry carries a handle or a per-element error."""

    def test_successful_entry(self) -> None:
        handle = MemoryFileHandle(_name="a.txt")
        entry = DirectoryEntry("a.txt", handle)

        assert entry.ok
        assert entry.is_file
        assert not entry.is_directory
        assert entry.kind is EntryKind.FILE
        assert entry.unwrap() is handle

    def test_directory_entry_kind(self) -> None:
        entry = DirectoryEntry("d", MemoryDirectoryHandle())

        assert entry.is_directory
        assert entry.kind is EntryKind.DIRECTORY

    def test_failed_entry(self) -> None:
        error = EntryNotFoundError("vanished", name="gone")
        entry: DirectoryEntry[MemoryFileHandle] = DirectoryEntry("gone", error=error)

        assert not entry.ok
        assert entry.kind is None
        assert not entry.is_file
        with pytest.raises(EntryNotFoundError) as excinfo:
            _ = entry.unwrap()
        assert excinfo.value is error


class TestEntryStream:
    """EntryStream is a finite single-pass async iterator."""

    def test_collect_from_iterable(self) -> None:
        entries = [DirectoryEntry("a"), DirectoryEntry("b")]
        stream: EntryStream[object] = EntryStream(entries)

        assert run(stream.collect()) == entries
        assert run(stream.collect()) == []

    def test_wraps_async_iterator(self) -> None:
        async def produce() -> AsyncIterator[DirectoryEntry[object]]:
            yield DirectoryEntry("x")
            yield DirectoryEntry("y")

        async def scenario() -> list[str]:
            stream: EntryStream[object] = EntryStream(produce())
            return [entry.name async for entry in stream]

        assert run(scenario()) == ["x", "y"]
