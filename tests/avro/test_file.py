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
import json
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict
from uuid import UUID

import pytest
from fastavro import reader, writer

from tablemanifest.avro.file import AvroFile, AvroOutputFile
from tablemanifest.io.memory import MemoryFileIO
from tablemanifest.io.pyarrow import PyArrowFileIO
from tablemanifest.manifest import (
    MANIFEST_ENTRY_SCHEMA,
    DataFile,
    FileFormat,
    ManifestEntry,
    ManifestEntryStatus,
)
from tablemanifest.schema import Schema
from tablemanifest.typedef import Record
from tablemanifest.types import (
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    IntegerType,
    LongType,
    NestedField,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
)
from tablemanifest.utils.schema_conversion import AvroSchemaConversion


@pytest.fixture
def manifest_entry() -> ManifestEntry:
    data_file = DataFile(
        file_path="s3://some-path/some-file.parquet",
        file_format=FileFormat.PARQUET,
        partition=Record(),
        record_count=131327,
        file_size_in_bytes=220669226,
        column_sizes={1: 220661854},
        value_counts={1: 131327},
        null_value_counts={1: 0},
        nan_value_counts={},
        lower_bounds={1: b"aaaaaaaaaaaaaaaa"},
        upper_bounds={1: b"zzzzzzzzzzzzzzzz"},
        key_metadata=b"\xde\xad\xbe\xef",
        split_offsets=[4, 133697593],
        sort_order_id=4,
    )
    return ManifestEntry(status=ManifestEntryStatus.ADDED, snapshot_id=8638475580105682862, data_file=data_file)


# The entry above the way fastavro sees it, maps with int keys are arrays of key/value records
FASTAVRO_ENTRY: Dict[str, Any] = {
    "status": 1,
    "snapshot_id": 8638475580105682862,
    "sequence_number": -1,
    "data_file": {
        "file_path": "s3://some-path/some-file.parquet",
        "file_format": "PARQUET",
        "partition": {},
        "record_count": 131327,
        "file_size_in_bytes": 220669226,
        "block_size_in_bytes": 67108864,
        "column_sizes": [{"key": 1, "value": 220661854}],
        "value_counts": [{"key": 1, "value": 131327}],
        "null_value_counts": [{"key": 1, "value": 0}],
        "nan_value_counts": [],
        "lower_bounds": [{"key": 1, "value": b"aaaaaaaaaaaaaaaa"}],
        "upper_bounds": [{"key": 1, "value": b"zzzzzzzzzzzzzzzz"}],
        "key_metadata": b"\xde\xad\xbe\xef",
        "split_offsets": [4, 133697593],
        "sort_order_id": 4,
    },
}


def test_write_manifest_entry_read_with_fastavro(manifest_entry: ManifestEntry) -> None:
    io = MemoryFileIO()
    additional_metadata = {"foo": "bar"}

    with AvroOutputFile[ManifestEntry](
        io.new_output("memory://manifest_entry.avro"), MANIFEST_ENTRY_SCHEMA, "manifest_entry", additional_metadata
    ) as out:
        out.add(manifest_entry)

    with io.new_input("memory://manifest_entry.avro").open() as fo:
        r = reader(fo)
        for k, v in additional_metadata.items():
            assert r.metadata[k] == v
        assert json.loads(r.metadata["avro.schema"])["name"] == "manifest_entry"
        assert list(r) == [FASTAVRO_ENTRY]


def test_write_with_fastavro_read_manifest_entry(manifest_entry: ManifestEntry) -> None:
    io = MemoryFileIO()
    schema = AvroSchemaConversion().iceberg_to_avro(MANIFEST_ENTRY_SCHEMA, schema_name="manifest_entry")
    buffer = BytesIO()
    writer(buffer, schema, [FASTAVRO_ENTRY])
    io.files["memory://manifest_entry.avro"] = buffer.getvalue()

    with AvroFile[ManifestEntry](
        io.new_input("memory://manifest_entry.avro"),
        {-1: ManifestEntry, 2: DataFile},
        {0: ManifestEntryStatus},
    ) as avro_reader:
        entries = list(avro_reader)

    assert len(entries) == 1
    entry = entries[0]
    assert entry == manifest_entry
    assert isinstance(entry.status, ManifestEntryStatus)
    assert entry.data_file.file_format == FileFormat.PARQUET
    assert entry.data_file.column_sizes == {1: 220661854}
    assert entry.data_file.lower_bounds == {1: b"aaaaaaaaaaaaaaaa"}
    assert entry.data_file.nan_value_counts == {}
    assert entry.data_file.split_offsets == [4, 133697593]
    assert entry.data_file.partition == Record()


def test_records_default_to_record() -> None:
    io = MemoryFileIO()
    schema = Schema(
        NestedField(1, "id", LongType(), required=True),
        NestedField(2, "name", StringType(), required=False),
    )
    with AvroOutputFile[Record](io.new_output("memory://records.avro"), schema, "records") as out:
        out.add(Record(1, "a", struct=schema.as_struct()))
        out.add(Record(2, None, struct=schema.as_struct()))

    with AvroFile[Record](io.new_input("memory://records.avro")) as avro_reader:
        assert avro_reader.schema == schema
        records = list(avro_reader)

    assert records == [Record(id=1, name="a"), Record(id=2, name=None)]


def test_length_and_metrics(manifest_entry: ManifestEntry) -> None:
    io = MemoryFileIO()
    output_file = io.new_output("memory://manifest_entry.avro")
    out = AvroOutputFile[ManifestEntry](output_file, MANIFEST_ENTRY_SCHEMA, "manifest_entry")
    out.add(manifest_entry)
    out.add(manifest_entry)
    out.close()
    # closing twice has no effect
    out.close()

    assert out.metrics().record_count == 2
    assert out.length() == len(io.files["memory://manifest_entry.avro"])


def test_unknown_codec() -> None:
    with pytest.raises(ValueError) as exc_info:
        AvroOutputFile[Record](MemoryFileIO().new_output("memory://a.avro"), MANIFEST_ENTRY_SCHEMA, "manifest_entry", codec="zstd")

    assert "Unsupported codec: zstd" in str(exc_info.value)


def test_deflate_codec(manifest_entry: ManifestEntry) -> None:
    io = MemoryFileIO()
    with AvroOutputFile[ManifestEntry](
        io.new_output("memory://deflate.avro"), MANIFEST_ENTRY_SCHEMA, "manifest_entry", codec="deflate"
    ) as out:
        for _ in range(100):
            out.add(manifest_entry)

    with AvroFile[ManifestEntry](io.new_input("memory://deflate.avro"), {-1: ManifestEntry, 2: DataFile}) as avro_reader:
        assert avro_reader.metadata["avro.codec"] == "deflate"
        assert len(list(avro_reader)) == 100


def test_no_overwrite() -> None:
    io = MemoryFileIO()
    schema = Schema(NestedField(1, "id", LongType(), required=True))
    with AvroOutputFile[Record](io.new_output("memory://a.avro"), schema, "a"):
        pass

    with pytest.raises(FileExistsError):
        AvroOutputFile[Record](io.new_output("memory://a.avro"), schema, "a", overwrite=False)


# Column name, type and a value as the records carry it
PRIMITIVE_COLUMNS = [
    ("checksum", FixedType(16), b"\x124Vx\x124Vx\x124Vx\x124Vx"),
    ("price", DecimalType(6, 2), Decimal("123.45")),
    ("active", BooleanType(), True),
    ("quantity", IntegerType(), 123),
    ("bytes_read", LongType(), 429496729622),
    ("ratio", FloatType(), 0.5),
    ("score", DoubleType(), 429496729622.314),
    ("shipped_on", DateType(), 19052),
    ("shipped_at", TimeType(), 69922000000),
    ("created_at", TimestampType(), 1677629965000000),
    ("updated_at", TimestamptzType(), 1677629965000001),
    ("comment", StringType(), "this is a sentence"),
    ("order_id", UUIDType(), UUID("12345678-1234-5678-1234-567812345678")),
]


@pytest.mark.parametrize("required", [True, False])
def test_primitive_values_survive_local_file(required: bool, tmp_path: Any) -> None:
    schema = Schema(
        *(NestedField(pos, name, field_type, required=required) for pos, (name, field_type, _) in enumerate(PRIMITIVE_COLUMNS, 1))
    )
    record = Record(*(value for _, _, value in PRIMITIVE_COLUMNS), struct=schema.as_struct())
    location = str(tmp_path / "primitives.avro")

    io = PyArrowFileIO()
    with AvroOutputFile[Record](io.new_output(location), schema, "primitives") as out:
        out.add(record)

    with AvroFile[Record](io.new_input(location)) as avro_reader:
        assert avro_reader.schema == schema
        (read_back,) = list(avro_reader)

    assert read_back == record
