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

__version__: str = "1.2.0"


import docquery.constants  # noqa: E402
import docquery.cursors  # noqa: F401, E402
import docquery.stores  # noqa: E402
from docquery.data.manager import (  # noqa: E402
    AsyncDocManager,
    DocManager,
    DocTypeManager,
    PermissionEvaluator,
    TypeRegistry,
)
from docquery.request_context import RequestContext  # noqa: E402
from docquery.stores import AsyncMemoryStore, MemoryStore  # noqa: E402
from docquery.utils.query_options import QueryOptions  # noqa: E402

__all__ = [
    "AsyncDocManager",
    "AsyncMemoryStore",
    "DocManager",
    "DocTypeManager",
    "MemoryStore",
    "PermissionEvaluator",
    "QueryOptions",
    "RequestContext",
    "TypeRegistry",
    "__version__",
]
