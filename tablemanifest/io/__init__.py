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
"""File IO used to create manifests and to read them back.

A manifest writer needs an OutputFile it can create in overwrite mode, a reader needs an
InputFile it can open as a seekable stream, and a failed copy deletes what it wrote. A
FileIO hands out files for locations and deletes them. `load_file_io` picks the
implementation from the properties, the location scheme or the configuration.
"""
from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from io import SEEK_SET
from types import TracebackType
from typing import (
    Dict,
    Optional,
    Protocol,
    Type,
    Union,
    runtime_checkable,
)
from urllib.parse import urlparse

from tablemanifest.typedef import EMPTY_DICT, Properties

logger = logging.getLogger(__name__)

WAREHOUSE = "warehouse"
PY_IO_IMPL = "py-io-impl"
BUFFER_SIZE = "buffer-size"
S3_ENDPOINT = "s3.endpoint"
S3_ACCESS_KEY_ID = "s3.access-key-id"
S3_SECRET_ACCESS_KEY = "s3.secret-access-key"
S3_SESSION_TOKEN = "s3.session-token"
S3_REGION = "s3.region"
HDFS_HOST = "hdfs.host"
HDFS_PORT = "hdfs.port"
HDFS_USER = "hdfs.user"

ARROW_FILE_IO = "tablemanifest.io.pyarrow.PyArrowFileIO"
MEMORY_FILE_IO = "tablemanifest.io.memory.MemoryFileIO"

SCHEMA_TO_FILE_IO: Dict[str, str] = {
    "file": ARROW_FILE_IO,
    "s3": ARROW_FILE_IO,
    "s3a": ARROW_FILE_IO,
    "s3n": ARROW_FILE_IO,
    "hdfs": ARROW_FILE_IO,
    "memory": MEMORY_FILE_IO,
}


@runtime_checkable
class InputStream(Protocol):
    """The seekable stream returned by InputFile.open(), a subset of IOBase."""

    @abstractmethod
    def read(self, size: int = 0) -> bytes:
        ...

    @abstractmethod
    def seek(self, offset: int, whence: int = SEEK_SET) -> int:
        ...

    @abstractmethod
    def tell(self) -> int:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self) -> InputStream:
        ...

    @abstractmethod
    def __exit__(
        self, exctype: Optional[Type[BaseException]], excinst: Optional[BaseException], exctb: Optional[TracebackType]
    ) -> None:
        ...


@runtime_checkable
class OutputStream(Protocol):  # pragma: no cover
    """The stream returned by OutputFile.create(), a subset of IOBase."""

    @abstractmethod
    def write(self, b: bytes) -> int:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def __enter__(self) -> OutputStream:
        ...

    @abstractmethod
    def __exit__(
        self, exctype: Optional[Type[BaseException]], excinst: Optional[BaseException], exctb: Optional[TracebackType]
    ) -> None:
        ...


class _Location(ABC):
    def __init__(self, location: str):
        self._location = location

    @property
    def location(self) -> str:
        """The URI or local path of the file."""
        return self._location

    @abstractmethod
    def __len__(self) -> int:
        """The size of the file in bytes.

        Raises:
            FileNotFoundError: When there is no file at the location.
        """

    @abstractmethod
    def exists(self) -> bool:
        ...


class InputFile(_Location):
    """A file that can be opened for reading, such as an existing manifest."""

    @abstractmethod
    def open(self, seekable: bool = True) -> InputStream:
        """Opens the file for reading.

        Raises:
            PermissionError: When the file cannot be accessed.
            FileNotFoundError: When the file does not exist.
        """


class OutputFile(_Location):
    """A file that can be created, such as a new manifest."""

    @abstractmethod
    def to_input_file(self) -> InputFile:
        ...

    @abstractmethod
    def create(self, overwrite: bool = False) -> OutputStream:
        """Creates the file and returns a stream to write it.

        Raises:
            PermissionError: When the file cannot be accessed.
            FileExistsError: When the file exists and `overwrite` is False.
        """


def location_of(file: Union[str, InputFile, OutputFile]) -> str:
    return file if isinstance(file, str) else file.location


class FileIO(ABC):
    """Hands out input and output files for locations, and deletes them."""

    properties: Properties

    def __init__(self, properties: Properties = EMPTY_DICT):
        self.properties = properties

    @abstractmethod
    def new_input(self, location: str) -> InputFile:
        ...

    @abstractmethod
    def new_output(self, location: str) -> OutputFile:
        ...

    @abstractmethod
    def delete(self, location: Union[str, InputFile, OutputFile]) -> None:
        """Deletes a file, given by location or as a file.

        Raises:
            FileNotFoundError: When there is no file at the location.
        """


def _import_file_io(io_impl: str, properties: Properties) -> Optional[FileIO]:
    module_name, _, class_name = io_impl.rpartition(".")
    if not module_name:
        raise ValueError(f"py-io-impl should be full path (module.CustomFileIO), got: {io_impl}")
    try:
        module = importlib.import_module(module_name)
    except ModuleNotFoundError:
        logger.warning("Could not initialize FileIO: %s", io_impl)
        return None
    return getattr(module, class_name)(properties)


def _file_io_for_location(location: str, properties: Properties) -> Optional[FileIO]:
    scheme = urlparse(location).scheme
    if (io_impl := SCHEMA_TO_FILE_IO.get(scheme)) is None:
        logger.warning("No preferred file implementation for schema: %s", scheme)
        return None
    return _import_file_io(io_impl, properties)


def load_file_io(properties: Properties = EMPTY_DICT, location: Optional[str] = None) -> FileIO:
    """Returns the FileIO for the properties and location.

    The properties are layered over the `io` section of the configuration. The implementation
    is taken from `py-io-impl` when set, otherwise from the scheme of the location or of the
    warehouse, and defaults to PyArrow.

    Raises:
        ValueError: When `py-io-impl` is set but cannot be loaded.
    """
    from tablemanifest.utils.config import Config

    properties = {**Config().get_io_config(), **properties}

    if io_impl := properties.get(PY_IO_IMPL):
        if file_io := _import_file_io(io_impl, properties):
            logger.info("Loaded FileIO: %s", io_impl)
            return file_io
        raise ValueError(f"Could not initialize FileIO: {io_impl}")

    for candidate in (location, properties.get(WAREHOUSE)):
        if candidate and (file_io := _file_io_for_location(candidate, properties)):
            return file_io

    logger.info("Defaulting to PyArrow FileIO")
    from tablemanifest.io.pyarrow import PyArrowFileIO

    return PyArrowFileIO(properties)
