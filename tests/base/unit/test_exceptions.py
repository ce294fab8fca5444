# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


from __future__ import annotations

import pytest

from docquery.exceptions import (
    CursorException,
    DocQueryException,
    DuplicateKeyException,
    StoreException,
    UnknownFilterException,
    is_unique_constraint_violation,
)


class _CodedError(Exception):
    def __init__(self, code: object) -> None:
        super().__init__("coded")
        self.code = code


class TestExceptions:
    @pytest.mark.describe("test of the exception hierarchy")
    def test_hierarchy(self) -> None:
        unknown = UnknownFilterException(
            "No filter 'shade'.",
            cursor_state="declared",
            filter_name="shade",
        )
        assert isinstance(unknown, CursorException)
        assert isinstance(unknown, DocQueryException)
        assert str(unknown) == "No filter 'shade'."
        assert unknown.text == "No filter 'shade'."
        assert unknown.cursor_state == "declared"
        assert unknown.filter_name == "shade"

        duplicate = DuplicateKeyException("Duplicate _id", code=11000, key="a1")
        assert isinstance(duplicate, StoreException)
        assert isinstance(duplicate, DocQueryException)
        assert not isinstance(duplicate, CursorException)
        assert duplicate.key == "a1"
        assert DuplicateKeyException("Dup", code=11000).key is None

    @pytest.mark.describe("test of exceptions being raised and caught")
    def test_raise_catch(self) -> None:
        with pytest.raises(DocQueryException) as exc_info:
            raise CursorException("Already finalized.", cursor_state="finalized")
        assert exc_info.value.cursor_state == "finalized"  # type: ignore[attr-defined]

    @pytest.mark.describe("test of unique-constraint violation detection")
    def test_is_unique_constraint_violation(self) -> None:
        assert is_unique_constraint_violation(
            DuplicateKeyException("Dup", code=11000)
        )
        assert is_unique_constraint_violation(_CodedError(11001))
        assert is_unique_constraint_violation(_CodedError(12582))
        assert not is_unique_constraint_violation(_CodedError(2))
        assert not is_unique_constraint_violation(_CodedError("11000"))
        assert not is_unique_constraint_violation(ValueError("no code"))
