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

from dataclasses import dataclass


class DocQueryException(Exception):
    """
    Any exception raised by docquery itself while building or running a query,
    such as:
      - a cursor is created without the request context it needs,
      - a filter is set on a cursor that was already finalized,
    but not, for instance,
      - an error raised by a filter's finalizer or by the underlying store,
        which are always propagated unchanged.
    """

    pass


@dataclass
class CursorException(DocQueryException):
    """
    A cursor operation was invoked in a way that is not admissible: this is
    a programming error on the caller side (for instance, adding filters to a
    cursor already finalized in place, or a finalizer returning something other
    than a FinalizeOutcome).

    Attributes:
        text: a text message about the exception.
        cursor_state: a string description of the current state
            of the cursor. See the documentation for CursorState.
    """

    text: str
    cursor_state: str

    def __init__(
        self,
        text: str,
        *,
        cursor_state: str,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.cursor_state = cursor_state


@dataclass
class UnknownFilterException(CursorException):
    """
    A filter was requested by name on a cursor class that does not register it.

    Attributes:
        text: a text message about the exception.
        cursor_state: a string description of the current state of the cursor.
        filter_name: the name that could not be resolved.
    """

    filter_name: str

    def __init__(
        self,
        text: str,
        *,
        cursor_state: str,
        filter_name: str,
    ) -> None:
        super().__init__(text, cursor_state=cursor_state)
        self.filter_name = filter_name
