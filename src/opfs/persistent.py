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

"""Platform-selected persistent backend.

Under Pyodide (``sys.platform == "emscripten"``) the names below refer to the
web backend, everywhere else to the native backend. The choice is made once
at import time::

    from opfs import persistent

    root = await persistent.app_specific_dir("my-app")
    file = await root.get_file_handle("state.bin", GetFileHandleOptions(create=True))
"""

from __future__ import annotations

import sys

from .errors import OpfsError

__all__ = [
    "BACKEND",
    "DirectoryHandle",
    "Error",
    "FileHandle",
    "WritableFileStream",
    "app_specific_dir",
]

Error = OpfsError

if sys.platform == "emscripten":  # pragma: no cover
    from .web import WebDirectoryHandle as DirectoryHandle
    from .web import WebFileHandle as FileHandle
    from .web import WebWritableFileStream as WritableFileStream
    from .web import app_specific_dir

    BACKEND = "web"
else:
    from .native import NativeDirectoryHandle as DirectoryHandle
    from .native import NativeFileHandle as FileHandle
    from .native import NativeWritableFileStream as WritableFileStream
    from .native import app_specific_dir

    BACKEND = "native"
