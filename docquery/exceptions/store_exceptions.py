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
from typing import Any

from docquery.exceptions.query_exceptions import DocQueryException
from docquery.settings.defaults import UNIQUE_CONSTRAINT_ERROR_CODES


class StoreException(DocQueryException):
    """
    An error raised by one of the document stores bundled with docquery
    (such as the in-memory store). Errors raised by third-party stores,
    for instance a pymongo `OperationFailure`, are not converted to this class.
    """

    pass


@dataclass
class DuplicateKeyException(StoreException):
    """
    A write to a store was rejected because it would violate a unique
    constraint (typically, a document with the same `_id` exists already).

    Attributes:
        text: a text message about the exception.
        code: the store-specific error code.
        key: the offending key, if known.
    """

    text: str
    code: int
    key: Any

    def __init__(
        self,
        text: str,
        *,
        code: int,
        key: Any = None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.code = code
        self.key = key


def is_unique_constraint_violation(error: BaseException) -> bool:
    """
    Tell whether an error raised by a store signals a unique-constraint
    violation, which write paths may react to by retrying with a new key.

    The check relies on the `code` attribute of the error, which is carried
    both by DuplicateKeyException and by pymongo's OperationFailure family.

    Args:
        error: an exception raised by a store operation.

    Returns:
        True if the error code belongs to the known unique-violation codes.
    """

    code = getattr(error, "code", None)
    return isinstance(code, int) and code in UNIQUE_CONSTRAINT_ERROR_CODES
