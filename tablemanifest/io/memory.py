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
"""In-memory FileIO, registered for the `memory://` scheme.

Files only become visible once the stream that writes them is closed.
"""
from __future__ import annotations

from io import SEEK_CUR, SEEK_END, SEEK_SET
from types import TracebackType
from typing import Dict, List, Optional, Type, Union

from tablemanifest.io import FileIO, InputFile, InputStream, OutputFile, OutputStream, location_of
from tablemanifest.typedef import EMPTY_DICT, Properties


class MemoryInputStream(InputStream):
    """
    Seekable stream over a bytes buffer.

    Examples:
        >>> stream = MemoryInputStream(b'22memory1925')
        >>> stream.tell()
        0
        >>> stream.read(2)
        b'22'
        >>> stream.seek(8)
        8
        >>> stream.read(4)
        b'1925'
        >>> stream.close()
    """

    buffer: bytes
    len: int
    pos: int

    def __init__(self, buffer: bytes):
        self.buffer = buffer
        self.len = len(buffer)
        self.pos = 0

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = self.len - self.pos
        b = self.buffer[self.pos : self.pos + size]
        self.pos += len(b)
        return b

    def seek(self, offset: int, whence: int = SEEK_SET) -> int:
        if whence == SEEK_SET:
            self.pos = offset
        elif whence == SEEK_CUR:
            self.pos += offset
        elif whence == SEEK_END:
            self.pos = self.len + offset
        else:
            raise ValueError(f"Unknown whence {whence}")

        return self.pos

    def tell(self) -> int:
        return self.pos

    def close(self) -> None:
        self.buffer = b""
        self.pos = 0

    def __enter__(self) -> MemoryInputStream:
        """Provides setup when opening a MemoryInputStream using a 'with' statement."""
        return self

    def __exit__(
        self, exctype: Optional[Type[BaseException]], excinst: Optional[BaseException], exctb: Optional[TracebackType]
    ) -> None:
        """Performs cleanup when exiting the scope of a 'with' statement."""
        self.close()


class MemoryOutputStream(OutputStream):
    """Collects the written chunks and publishes them to the store on close."""

    def __init__(self, store: Dict[str, bytes], location: str):
        self._store = store
        self._location = location
        self._chunks: List[bytes] = []
        self.closed = False

    def write(self, b: bytes) -> int:
        if self.closed:
            raise ValueError(f"I/O operation on closed stream: {self._location}")
        self._chunks.append(bytes(b))
        return len(b)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        if not self.closed:
            self._store[self._location] = b"".join(self._chunks)
            self.closed = True

    def __enter__(self) -> MemoryOutputStream:
        """Provides setup when opening a MemoryOutputStream using a 'with' statement."""
        return self

    def __exit__(
        self, exctype: Optional[Type[BaseException]], excinst: Optional[BaseException], exctb: Optional[TracebackType]
    ) -> None:
        """Performs cleanup when exiting the scope of a 'with' statement."""
        self.close()


class MemoryFile(InputFile, OutputFile):
    def __init__(self, location: str, store: Dict[str, bytes]):
        self._store = store
        super().__init__(location=location)

    def __len__(self) -> int:
        """Returns the total length of the file, in bytes."""
        if self.location not in self._store:
            raise FileNotFoundError(f"Cannot get file info, file not found: {self.location}")
        return len(self._store[self.location])

    def exists(self) -> bool:
        return self.location in self._store

    def open(self, seekable: bool = True) -> MemoryInputStream:
        if self.location not in self._store:
            raise FileNotFoundError(f"Cannot open file, does not exist: {self.location}")
        return MemoryInputStream(self._store[self.location])

    def create(self, overwrite: bool = False) -> MemoryOutputStream:
        if not overwrite and self.exists():
            raise FileExistsError(f"Cannot create file, already exists: {self.location}")
        return MemoryOutputStream(self._store, self.location)

    def to_input_file(self) -> MemoryFile:
        return self


class MemoryFileIO(FileIO):
    """A FileIO that keeps its files in a dictionary, mostly useful for tests."""

    files: Dict[str, bytes]

    def __init__(self, properties: Properties = EMPTY_DICT):
        self.files = {}
        super().__init__(properties=properties)

    def new_input(self, location: str) -> MemoryFile:
        return MemoryFile(location, self.files)

    def new_output(self, location: str) -> MemoryFile:
        return MemoryFile(location, self.files)

    def delete(self, location: Union[str, InputFile, OutputFile]) -> None:
        str_location = location_of(location)
        if str_location not in self.files:
            raise FileNotFoundError(f"Cannot delete file, does not exist: {str_location}")
        del self.files[str_location]
