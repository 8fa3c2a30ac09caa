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

"""Uniform asynchronous file-storage handles over interchangeable backends.

The contract lives at the package root; backends are submodules:

- :mod:`opfs.memory`: in-process reference backend
- :mod:`opfs.native`: host operating system filesystem
- :mod:`opfs.web`: browser Origin Private File System
- :mod:`opfs.persistent`: whichever of native/web fits the running platform
"""

from __future__ import annotations

from . import dbc, memory, native, persistent, web
from ._logging import StructuredLogger, configure_logging, get_logger
from ._names import MAX_NAME_BYTES, is_valid_name, validate_name
from ._protocol import DirectoryHandle, FileHandle, WritableFileStream
from ._types import (
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
from .memory import MemoryDirectoryHandle, MemoryFileHandle, MemoryWritableFileStream

__all__ = [
    "MAX_NAME_BYTES",
    "BackendError",
    "CreateWritableOptions",
    "DirectoryEntry",
    "DirectoryHandle",
    "DirectoryNotEmptyError",
    "EntryKind",
    "EntryNotFoundError",
    "EntryStream",
    "FileHandle",
    "GetDirectoryHandleOptions",
    "GetFileHandleOptions",
    "InvalidNameError",
    "MemoryDirectoryHandle",
    "MemoryFileHandle",
    "MemoryWritableFileStream",
    "OpfsError",
    "RemoveEntryOptions",
    "SeekOutOfRangeError",
    "StreamClosedError",
    "StructuredLogger",
    "TypeMismatchError",
    "WritableFileStream",
    "configure_logging",
    "dbc",
    "get_logger",
    "is_valid_name",
    "memory",
    "native",
    "persistent",
    "validate_name",
    "web",
]
