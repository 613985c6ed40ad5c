# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# "License"); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.
from typing import Any, Iterable, Optional


class ValidationError(Exception):
    """Raises when there is an issue with the schema"""


class InvalidEntryStatusError(ValueError):
    """Raised when a manifest entry has a status that is not allowed by the operation"""

    def __init__(self, status: Any, allowed: Iterable[Any]):
        self.status = status
        self.allowed = frozenset(allowed)
        allowed_str = ", ".join(sorted(str(s) for s in self.allowed))
        super().__init__(f"Invalid manifest entry status: {status} (allowed statuses: {allowed_str})")


class ManifestWriterStateError(RuntimeError):
    """Raised when the manifest writer is used in the wrong lifecycle state"""


class ManifestReaderStateError(RuntimeError):
    """Raised when the manifest reader is used in the wrong lifecycle state"""


class ManifestIOError(OSError):
    """Raised when reading or writing a manifest fails on the underlying file"""

    def __init__(self, message: str, location: Optional[str] = None, operation: Optional[str] = None):
        self.location = location
        self.operation = operation
        super().__init__(message)


class UnsupportedFormatVersionError(ValueError):
    """Raised when a manifest is written for a format version that has no writer"""

    def __init__(self, format_version: Any):
        self.format_version = format_version
        super().__init__(f"Cannot write manifest for table version: {format_version}")
