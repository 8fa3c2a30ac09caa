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

from __future__ import annotations

from collections.abc import Iterator

import pytest

from opfs import dbc


@pytest.fixture(autouse=True)
def reset_dbc_state() -> Iterator[None]:
    """Keep contract enforcement from leaking between tests."""
    previous = dbc._forced_state  # pyright: ignore[reportPrivateUsage]
    try:
        yield
    finally:
        dbc._forced_state = previous  # pyright: ignore[reportPrivateUsage]


@pytest.fixture
def data_dir_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure ``OPFS_DATA_DIR`` is unset unless a test sets it."""
    monkeypatch.delenv("OPFS_DATA_DIR", raising=False)
