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

from docquery.data.stores.base import (
    AsyncDocumentStore,
    DocumentStore,
)
from docquery.data.stores.memory import (
    AsyncMemoryStore,
    MemoryStore,
)
from docquery.data.stores.mongo import (
    AsyncPyMongoStore,
    PyMongoStore,
)

__all__ = [
    "AsyncDocumentStore",
    "AsyncMemoryStore",
    "AsyncPyMongoStore",
    "DocumentStore",
    "MemoryStore",
    "PyMongoStore",
]
