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

"""Tests for the opfs error taxonomy."""

from __future__ import annotations

import pytest

from opfs import (
    BackendError,
    DirectoryNotEmptyError,
    EntryKind,
    EntryNotFoundError,
    InvalidNameError,
    OpfsError,
    SeekOutOfRangeError,
    StreamClosedError,
    TypeMismatchError,
)


@pytest.mark.parametrize(
    ("error", "builtin"),
    [
        (EntryNotFoundError("missing", name="a"), FileNotFoundError),
        (TypeMismatchError("kind", name="a", expected=EntryKind.FILE), OSError),
        (DirectoryNotEmptyError("full", name="a"), OSError),
        (SeekOutOfRangeError("range", offset=9, length=3), IndexError),
        (InvalidNameError("bad", name=""), ValueError),
        (BackendError("io", code=5), RuntimeError),
    ],
)
def test_errors_are_also_builtin_types(error: OpfsError, builtin: type) -> None:
    assert isinstance(error, OpfsError)
    assert isinstance(error, builtin)


def test_error_message_and_name() -> None:
    error = EntryNotFoundError("'a.txt' does not exist", name="a.txt")

    assert str(error) == "'a.txt' does not exist"
    assert error.message == "'a.txt' does not exist"
    assert error.name == "a.txt"


def test_seek_out_of_range_carries_position() -> None:
    error = SeekOutOfRangeError("too far", offset=10, length=5)

    assert (error.offset, error.length) == (10, 5)
    assert error.name is None


def test_type_mismatch_carries_expected_kind() -> None:
    error = TypeMismatchError("is a dir", name="d", expected=EntryKind.FILE)

    assert error.expected is EntryKind.FILE


def test_stream_closed_is_backend_error() -> None:
    error = StreamClosedError()

    assert isinstance(error, BackendError)
    assert error.code == "closed"
    assert str(error) == "I/O operation on closed stream"


def test_catching_base_class() -> None:
    with pytest.raises(OpfsError):
        raise DirectoryNotEmptyError("full", name="dir")
