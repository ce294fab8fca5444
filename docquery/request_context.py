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

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RequestContext:
    """
    The identity on whose behalf a query runs. Cursors never inspect it: they
    only hand it over to the permission evaluator and to the after-load hooks.

    Attributes:
        user_id: an identifier of the user, or None for anonymous requests.
        roles: the roles granted to the user.
        privileged: True for contexts that run with full privileges, such as
            command-line tasks and migrations (see `RequestContext.task`).
        attributes: any further information the collaborators may need
            (locale, mode, session data and so on).
    """

    user_id: str | None = None
    roles: frozenset[str] = frozenset()
    privileged: bool = False
    attributes: dict[str, Any] = field(default_factory=dict, compare=False)

    @staticmethod
    def anonymous() -> RequestContext:
        """Create a context for a logged-out visitor."""

        return RequestContext()

    @staticmethod
    def task(**attributes: Any) -> RequestContext:
        """
        Create a privileged context, suitable for command-line tasks and other
        code not running on behalf of a particular user.
        """

        return RequestContext(
            user_id=None,
            roles=frozenset({"admin"}),
            privileged=True,
            attributes=dict(attributes),
        )

    def has_role(self, role: str) -> bool:
        return self.privileged or role in self.roles
