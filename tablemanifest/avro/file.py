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
"""
Avro object container files of records, written and read with fastavro.

Records travel as StructProtocol instances positioned after a table schema. They are turned
into the plain dictionaries fastavro encodes, and back, following the field ids of the
schema. Dates, times and timestamps are kept as ordinals, uuids as UUID instances.
"""
from __future__ import annotations

import datetime
import json
import uuid
from enum import Enum
from functools import singledispatch
from types import TracebackType
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterator,
    Optional,
    Type,
    TypeVar,
    Union,
)

import fastavro

from tablemanifest.io import InputFile, InputStream, OutputFile, OutputStream
from tablemanifest.metrics import Metrics
from tablemanifest.schema import Schema
from tablemanifest.typedef import EMPTY_DICT, Record, StructProtocol
from tablemanifest.types import (
    DateType,
    IcebergType,
    ListType,
    MapType,
    PrimitiveType,
    StringType,
    StructType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
)
from tablemanifest.utils.datetime import date_to_days, datetime_to_micros, time_to_micros
from tablemanifest.utils.schema_conversion import AvroSchemaConversion

_SCHEMA_KEY = "avro.schema"
_CODEC_KEY = "avro.codec"
KNOWN_CODECS = {"null", "deflate"}

# Field id of the root record in read_types
ROOT_FIELD_ID = -1

D = TypeVar("D", bound=StructProtocol)


class _CountingOutputStream:
    """Counts the bytes on their way to the output stream, which does not have to be seekable."""

    def __init__(self, output_stream: OutputStream) -> None:
        self._output_stream = output_stream
        self.bytes_written = 0

    def write(self, b: bytes) -> int:
        self._output_stream.write(b)
        self.bytes_written += len(b)
        return len(b)

    def flush(self) -> None:
        if flush := getattr(self._output_stream, "flush", None):
            flush()

    def seekable(self) -> bool:
        return False

    def tell(self) -> int:
        return self.bytes_written

    def close(self) -> None:
        self._output_stream.close()


class AvroOutputFile(Generic[D]):
    """Appends records to a new Avro file.

    The header, including the file metadata, is written when the file is created. Records are
    buffered into blocks by fastavro and the last block goes out on close.

    Args:
        output_file (OutputFile): Where the file is created.
        schema (Union[Schema, StructType]): The table schema the records are positioned after.
        schema_name (str): The name of the Avro root record.
        metadata (Dict[str, str]): Key/value metadata stored in the header.
        codec (str): The block compression codec, `null` or `deflate`.
        overwrite (bool): Replace the file when it already exists.
    """

    output_file: OutputFile
    schema: StructType

    def __init__(
        self,
        output_file: OutputFile,
        schema: Union[Schema, StructType],
        schema_name: str,
        metadata: Dict[str, str] = EMPTY_DICT,
        codec: str = "null",
        overwrite: bool = True,
    ) -> None:
        if codec not in KNOWN_CODECS:
            raise ValueError(f"Unsupported codec: {codec}")
        self.output_file = output_file
        self.schema = schema.as_struct() if isinstance(schema, Schema) else schema
        avro_schema = AvroSchemaConversion().iceberg_to_avro(self.schema, schema_name=schema_name)
        self._output_stream = _CountingOutputStream(output_file.create(overwrite=overwrite))
        try:
            # The header is written here, a failure leaves nobody to close the stream
            self._writer = fastavro.write.Writer(self._output_stream, avro_schema, codec=codec, metadata=dict(metadata))
        except BaseException:
            self._output_stream.close()
            raise
        self._record_count = 0
        self._closed = False

    def __enter__(self) -> AvroOutputFile[D]:
        """Returns the appender, which is open from the moment it is constructed."""
        return self

    def __exit__(
        self, exctype: Optional[Type[BaseException]], excinst: Optional[BaseException], exctb: Optional[TracebackType]
    ) -> None:
        """Closes the appender."""
        self.close()

    def add(self, record: D) -> None:
        self._writer.write(_to_avro_datum(self.schema, record))
        self._record_count += 1

    def close(self) -> None:
        """Flushes the last block and closes the stream, only the first call has an effect."""
        if self._closed:
            return
        self._closed = True
        try:
            self._writer.flush()
        finally:
            self._output_stream.close()

    def length(self) -> int:
        """The number of bytes written so far, the length of the file once closed."""
        return self._output_stream.bytes_written

    def metrics(self) -> Metrics:
        return Metrics(record_count=self._record_count)


class AvroFile(Generic[D]):
    """Reads the records of an Avro file as StructProtocol instances.

    The table schema is derived from the Avro schema in the header. Records are built with the
    callables in `read_types` keyed by field id, using ROOT_FIELD_ID for the root record, and
    default to a Record. Integer values can be turned into enums with `read_enums`.
    """

    input_file: InputFile
    read_types: Dict[int, Callable[..., StructProtocol]]
    read_enums: Dict[int, Callable[..., Enum]]
    input_stream: InputStream
    metadata: Dict[str, str]
    schema: Schema

    def __init__(
        self,
        input_file: InputFile,
        read_types: Dict[int, Callable[..., StructProtocol]] = EMPTY_DICT,
        read_enums: Dict[int, Callable[..., Enum]] = EMPTY_DICT,
    ) -> None:
        self.input_file = input_file
        self.read_types = read_types
        self.read_enums = read_enums

    def __enter__(self) -> AvroFile[D]:
        """Opens the file and reads the header."""
        self.input_stream = self.input_file.open(seekable=False)
        try:
            self._reader = fastavro.reader(self.input_stream)
            self.metadata = dict(self._reader.metadata)
            if _SCHEMA_KEY not in self.metadata:
                raise ValueError("No schema found in Avro file headers")
            self.schema = AvroSchemaConversion().avro_to_iceberg(json.loads(self.metadata[_SCHEMA_KEY]))
        except BaseException:
            self.input_stream.close()
            raise
        self._struct = self.schema.as_struct()
        return self

    def __exit__(
        self, exctype: Optional[Type[BaseException]], excinst: Optional[BaseException], exctb: Optional[TracebackType]
    ) -> None:
        """Closes the input stream."""
        self.input_stream.close()

    def __iter__(self) -> Iterator[D]:
        """Returns the records, decoded lazily."""
        for datum in self._reader:
            yield _from_avro_datum(self._struct, datum, self.read_types, self.read_enums, ROOT_FIELD_ID)  # type: ignore


def _to_avro_datum(struct: StructType, record: StructProtocol) -> Dict[str, Any]:
    return {field.name: _to_avro_value(field.field_type, record[pos]) for pos, field in enumerate(struct.fields)}


def _to_avro_value(field_type: IcebergType, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(field_type, StructType):
        return _to_avro_datum(field_type, value)
    elif isinstance(field_type, ListType):
        return [_to_avro_value(field_type.element_type, element) for element in value]
    elif isinstance(field_type, MapType):
        if isinstance(field_type.key_type, StringType):
            return {key: _to_avro_value(field_type.value_type, val) for key, val in value.items()}
        return [
            {"key": _to_avro_value(field_type.key_type, key), "value": _to_avro_value(field_type.value_type, val)}
            for key, val in value.items()
        ]
    elif isinstance(field_type, UUIDType):
        return value.bytes if isinstance(value, uuid.UUID) else value
    elif isinstance(value, Enum):
        return value.value
    return value


def _from_avro_datum(
    struct: StructType,
    datum: Dict[str, Any],
    read_types: Dict[int, Callable[..., StructProtocol]],
    read_enums: Dict[int, Callable[..., Enum]],
    field_id: int,
) -> StructProtocol:
    values = []
    for field in struct.fields:
        value = _from_avro_value(field.field_type, datum.get(field.name), read_types, read_enums, field.field_id)
        if value is not None and field.field_id in read_enums:
            value = read_enums[field.field_id](value)
        values.append(value)
    if read_type := read_types.get(field_id):
        return read_type(*values)
    return Record(*values, struct=struct)


def _from_avro_value(
    field_type: IcebergType,
    value: Any,
    read_types: Dict[int, Callable[..., StructProtocol]],
    read_enums: Dict[int, Callable[..., Enum]],
    field_id: int,
) -> Any:
    if value is None:
        return None
    if isinstance(field_type, StructType):
        return _from_avro_datum(field_type, value, read_types, read_enums, field_id)
    elif isinstance(field_type, ListType):
        return [
            _from_avro_value(field_type.element_type, element, read_types, read_enums, field_type.element_id)
            for element in value
        ]
    elif isinstance(field_type, MapType):
        items = value.items() if isinstance(value, dict) else ((kv["key"], kv["value"]) for kv in value)
        return {
            _from_avro_value(field_type.key_type, key, read_types, read_enums, field_type.key_id): _from_avro_value(
                field_type.value_type, val, read_types, read_enums, field_type.value_id
            )
            for key, val in items
        }
    elif isinstance(field_type, PrimitiveType):
        return _from_avro_primitive(field_type, value)
    return value


@singledispatch
def _from_avro_primitive(_: PrimitiveType, value: Any) -> Any:
    return value


@_from_avro_primitive.register(DateType)
def _(_: DateType, value: Union[int, datetime.date]) -> int:
    return date_to_days(value) if isinstance(value, datetime.date) else value


@_from_avro_primitive.register(TimeType)
def _(_: TimeType, value: Union[int, datetime.time]) -> int:
    return time_to_micros(value) if isinstance(value, datetime.time) else value


@_from_avro_primitive.register(TimestampType)
@_from_avro_primitive.register(TimestamptzType)
def _(_: PrimitiveType, value: Union[int, datetime.datetime]) -> int:
    return datetime_to_micros(value) if isinstance(value, datetime.datetime) else value


@_from_avro_primitive.register(UUIDType)
def _(_: UUIDType, value: Union[bytes, str, uuid.UUID]) -> uuid.UUID:
    if isinstance(value, bytes):
        return uuid.UUID(bytes=value)
    elif isinstance(value, str):
        return uuid.UUID(value)
    return value
