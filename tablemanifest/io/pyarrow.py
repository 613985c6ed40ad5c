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
"""The default FileIO, on top of the pyarrow filesystems.

Local paths and `file://`, `s3://` and `hdfs://` locations are supported. One filesystem is
created per scheme and netloc, and reused.
"""
from __future__ import annotations

import errno
import os
from contextlib import contextmanager
from functools import lru_cache
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    Optional,
    Tuple,
    Union,
)
from urllib.parse import urlparse

from pyarrow.fs import FileInfo, FileSystem, FileType, LocalFileSystem

from tablemanifest.io import (
    BUFFER_SIZE,
    HDFS_HOST,
    HDFS_PORT,
    HDFS_USER,
    S3_ACCESS_KEY_ID,
    S3_ENDPOINT,
    S3_REGION,
    S3_SECRET_ACCESS_KEY,
    S3_SESSION_TOKEN,
    FileIO,
    InputFile,
    InputStream,
    OutputFile,
    OutputStream,
    location_of,
)
from tablemanifest.typedef import EMPTY_DICT, Properties

ONE_MEGABYTE = 1024 * 1024


@contextmanager
def _translate_errors(action: str, location: str) -> Iterator[None]:
    """Raises the builtin FileNotFoundError and PermissionError for the OSErrors pyarrow raises."""
    try:
        yield
    except (FileNotFoundError, FileExistsError, PermissionError):
        raise
    except OSError as e:
        if e.errno == errno.ENOENT or "Path does not exist" in str(e):
            raise FileNotFoundError(f"Cannot {action}, file not found: {location}") from e
        if e.errno == errno.EACCES or "AWS Error [code 15]" in str(e):
            raise PermissionError(f"Cannot {action}, access denied: {location}") from e
        raise


class PyArrowFile(InputFile, OutputFile):
    """A file on a pyarrow filesystem, streamed as pyarrow NativeFile instances.

    `path` is the location as the filesystem understands it.
    """

    def __init__(self, location: str, path: str, fs: FileSystem, buffer_size: int = ONE_MEGABYTE):
        self._filesystem = fs
        self._path = path
        self._buffer_size = buffer_size
        super().__init__(location=location)

    def _file_info(self) -> FileInfo:
        with _translate_errors("get file info", self.location):
            file_info = self._filesystem.get_file_info(self._path)
        if file_info.type == FileType.NotFound:
            raise FileNotFoundError(f"Cannot get file info, file not found: {self.location}")
        return file_info

    def __len__(self) -> int:
        return self._file_info().size

    def exists(self) -> bool:
        try:
            self._file_info()
        except FileNotFoundError:
            return False
        return True

    def open(self, seekable: bool = True) -> InputStream:
        with _translate_errors("open file", self.location):
            if seekable:
                return self._filesystem.open_input_file(self._path)
            return self._filesystem.open_input_stream(self._path, buffer_size=self._buffer_size)

    def create(self, overwrite: bool = False) -> OutputStream:
        """Opens an output stream, refusing an existing file unless `overwrite` is set.

        The existence check and the creation are two calls, a concurrent writer can create the
        file in between.
        """
        if not overwrite and self.exists():
            raise FileExistsError(f"Cannot create file, already exists: {self.location}")
        with _translate_errors("create file", self.location):
            return self._filesystem.open_output_stream(self._path, buffer_size=self._buffer_size)

    def to_input_file(self) -> PyArrowFile:
        return self


class PyArrowFileIO(FileIO):
    fs_by_scheme: Callable[[str, Optional[str]], FileSystem]

    def __init__(self, properties: Properties = EMPTY_DICT):
        self.fs_by_scheme = lru_cache(self._initialize_fs)
        super().__init__(properties=properties)

    @staticmethod
    def parse_location(location: str) -> Tuple[str, str, str]:
        """Splits a location into its scheme, its netloc and the path the filesystem expects."""
        uri = urlparse(location)
        if uri.scheme in ("", "file"):
            return "file", uri.netloc, os.path.abspath(uri.path if uri.scheme else location)
        if uri.scheme == "hdfs":
            return uri.scheme, uri.netloc, location
        return uri.scheme, uri.netloc, f"{uri.netloc}{uri.path}"

    def _s3(self, netloc: Optional[str]) -> FileSystem:
        from pyarrow.fs import S3FileSystem

        return S3FileSystem(
            endpoint_override=self.properties.get(S3_ENDPOINT),
            access_key=self.properties.get(S3_ACCESS_KEY_ID),
            secret_key=self.properties.get(S3_SECRET_ACCESS_KEY),
            session_token=self.properties.get(S3_SESSION_TOKEN),
            region=self.properties.get(S3_REGION),
        )

    def _hdfs(self, netloc: Optional[str]) -> FileSystem:
        from pyarrow.fs import HadoopFileSystem

        if netloc:
            return HadoopFileSystem.from_uri(f"hdfs://{netloc}")
        options: Dict[str, Any] = {
            name: self.properties[key] for name, key in (("host", HDFS_HOST), ("user", HDFS_USER)) if key in self.properties
        }
        if HDFS_PORT in self.properties:
            options["port"] = int(self.properties[HDFS_PORT])
        return HadoopFileSystem(**options)

    def _initialize_fs(self, scheme: str, netloc: Optional[str] = None) -> FileSystem:
        builders: Dict[str, Callable[[Optional[str]], FileSystem]] = {
            "file": lambda _: LocalFileSystem(),
            "s3": self._s3,
            "s3a": self._s3,
            "s3n": self._s3,
            "hdfs": self._hdfs,
        }
        if scheme not in builders:
            raise ValueError(f"Unrecognized filesystem type in URI: {scheme}")
        return builders[scheme](netloc)

    def _new_file(self, location: str) -> PyArrowFile:
        scheme, netloc, path = self.parse_location(location)
        buffer_size = int(self.properties.get(BUFFER_SIZE, ONE_MEGABYTE))
        return PyArrowFile(location, path, self.fs_by_scheme(scheme, netloc), buffer_size)

    def new_input(self, location: str) -> PyArrowFile:
        return self._new_file(location)

    def new_output(self, location: str) -> PyArrowFile:
        return self._new_file(location)

    def delete(self, location: Union[str, InputFile, OutputFile]) -> None:
        """Deletes the file at the location.

        Raises:
            FileNotFoundError: When there is no such file.
            PermissionError: When the file cannot be accessed.
        """
        str_location = location_of(location)
        scheme, netloc, path = self.parse_location(str_location)
        with _translate_errors("delete file", str_location):
            self.fs_by_scheme(scheme, netloc).delete_file(path)
